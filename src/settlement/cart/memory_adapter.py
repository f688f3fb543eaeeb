"""In-memory cart store for development and testing."""

from settlement.cart.port import CartLine, CartProvider


class InMemoryCartProvider(CartProvider):
    def __init__(self) -> None:
        self.carts: dict[str, list[CartLine]] = {}
        self.clear_calls: list[str] = []

    def add_item(self, owner_id: str, product_id: str, quantity: int = 1, variant_id: str | None = None) -> None:
        lines = self.carts.setdefault(str(owner_id), [])
        lines.append(CartLine(product_id=str(product_id), quantity=quantity, variant_id=variant_id))

    def get_items(self, owner_id: str) -> list[CartLine]:
        return list(self.carts.get(str(owner_id), []))

    def clear(self, owner_id: str) -> None:
        self.clear_calls.append(str(owner_id))
        self.carts.pop(str(owner_id), None)
