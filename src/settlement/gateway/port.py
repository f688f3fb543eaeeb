"""Payment gateway port (abstract interface).

One implementation per payment method. Synchronous methods (cash on
delivery) settle outside the gateway and never create an intent; gateway
methods create a remote intent after the order is committed and confirm it
later through a signed callback.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount (rupees) to minor units (paise)."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class PaymentIntent:
    """Client-facing handle for a remote payment pre-authorization."""

    gateway: str
    gateway_order_id: str
    amount_minor: int
    currency: str
    receipt: str
    key_id: str | None = None
    status: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    name: str = ""
    requires_confirmation: bool = True

    @property
    def public_key(self) -> str | None:
        """Key the storefront needs to open the gateway's payment UI."""
        return None

    @abstractmethod
    def create_intent(self, amount: Decimal, currency: str, receipt: str) -> PaymentIntent:
        """Create a remote payment intent for ``amount`` (major units)."""
        ...

    @abstractmethod
    def verify_payment_signature(self, gateway_order_id: str, payment_id: str, signature: str) -> bool:
        """Verify the signature the client received after completing payment."""
        ...

    @abstractmethod
    def verify_webhook_signature(self, payload: bytes | str, signature: str) -> bool:
        """Verify that a webhook payload is authentically from the gateway."""
        ...
