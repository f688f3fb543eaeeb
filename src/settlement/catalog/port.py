"""Catalog port (abstract interface).

The checkout flow never trusts a client-supplied price: every line item is
re-priced through this port at the moment the order is created.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class VariantEntry:
    variant_id: str
    name: str
    sku: str | None = None
    price: Decimal | None = None


@dataclass(frozen=True)
class ProductEntry:
    product_id: str
    name: str
    sku: str
    price: Decimal
    category_id: str | None = None
    variants: tuple[VariantEntry, ...] = ()

    def variant(self, variant_id: str) -> VariantEntry | None:
        return next((v for v in self.variants if v.variant_id == str(variant_id)), None)


class Catalog(ABC):
    @abstractmethod
    def find_product(self, product_id: str) -> ProductEntry | None:
        """Return the current catalog entry for a product, or None if it does not exist."""
        ...
