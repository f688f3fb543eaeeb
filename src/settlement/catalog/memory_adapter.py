"""In-memory catalog for development and testing."""

from decimal import Decimal

from settlement.catalog.port import Catalog, ProductEntry, VariantEntry


class InMemoryCatalog(Catalog):
    def __init__(self) -> None:
        self.products: dict[str, ProductEntry] = {}

    def add_product(
        self,
        product_id: str,
        name: str,
        sku: str,
        price,
        category_id: str | None = None,
        variants: list[dict] | None = None,
    ) -> ProductEntry:
        """Register a product. ``variants`` is a list of dicts with variant_id, name, sku, price."""
        entry = ProductEntry(
            product_id=str(product_id),
            name=name,
            sku=sku,
            price=Decimal(str(price)),
            category_id=str(category_id) if category_id else None,
            variants=tuple(
                VariantEntry(
                    variant_id=str(v["variant_id"]),
                    name=v["name"],
                    sku=v.get("sku"),
                    price=Decimal(str(v["price"])) if v.get("price") is not None else None,
                )
                for v in (variants or [])
            ),
        )
        self.products[entry.product_id] = entry
        return entry

    def remove_product(self, product_id: str) -> None:
        self.products.pop(str(product_id), None)

    def find_product(self, product_id: str) -> ProductEntry | None:
        return self.products.get(str(product_id))
