"""Cart provider port: reads a customer's current cart and clears it after checkout."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class CartLine:
    product_id: str
    quantity: int
    variant_id: str | None = None


class CartProvider(ABC):
    @abstractmethod
    def get_items(self, owner_id: str) -> list[CartLine]:
        """Return the owner's current cart lines (empty list when there is no cart)."""
        ...

    @abstractmethod
    def clear(self, owner_id: str) -> None:
        """Empty the owner's cart."""
        ...
