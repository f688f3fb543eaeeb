"""Cart provider factory (get_cart_provider / set_cart_provider / reset_cart_provider)."""

from settlement.cart.memory_adapter import InMemoryCartProvider
from settlement.cart.port import CartLine, CartProvider

_current_provider: CartProvider | None = None


def get_cart_provider() -> CartProvider:
    global _current_provider
    if _current_provider is None:
        _current_provider = InMemoryCartProvider()
    return _current_provider


def set_cart_provider(provider: CartProvider) -> None:
    global _current_provider
    _current_provider = provider


def reset_cart_provider() -> None:
    global _current_provider
    _current_provider = None


__all__ = ["CartLine", "CartProvider", "get_cart_provider", "reset_cart_provider", "set_cart_provider"]
