"""Store-wide pricing configuration.

``StoreSettings`` is passed explicitly into the pricing functions so that
pricing never reads ambient state. ``SettingsProvider`` is the port through
which the checkout flow obtains the current value.
"""

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class StoreSettings:
    free_shipping_threshold: Decimal = Decimal("500")
    flat_shipping_rate: Decimal = Decimal("50")
    tax_percent: Decimal = Decimal("18")
    currency: str = "INR"
    # Tax is levied on the pre-discount subtotal unless this is switched on.
    tax_on_discounted_subtotal: bool = False

    @classmethod
    def from_env(cls) -> "StoreSettings":
        defaults = cls()
        return cls(
            free_shipping_threshold=Decimal(os.getenv("FREE_SHIPPING_THRESHOLD", str(defaults.free_shipping_threshold))),
            flat_shipping_rate=Decimal(os.getenv("FLAT_SHIPPING_RATE", str(defaults.flat_shipping_rate))),
            tax_percent=Decimal(os.getenv("TAX_PERCENT", str(defaults.tax_percent))),
            currency=os.getenv("STORE_CURRENCY", defaults.currency),
            tax_on_discounted_subtotal=_env_bool("TAX_ON_DISCOUNTED_SUBTOTAL", defaults.tax_on_discounted_subtotal),
        )


class SettingsProvider(ABC):
    @abstractmethod
    def get_settings(self) -> StoreSettings:
        """Return the store settings in effect right now."""
        ...


class StaticSettingsProvider(SettingsProvider):
    """Serves a fixed ``StoreSettings`` value (environment-derived by default)."""

    def __init__(self, settings: StoreSettings | None = None) -> None:
        self.settings = settings or StoreSettings.from_env()

    def get_settings(self) -> StoreSettings:
        return self.settings
