"""Payment gateway registry: one gateway per payment method.

Provides get_gateway() / set_gateway() to swap implementations:
- CashOnDeliveryGateway for "cod" (synchronous, no intent)
- RazorpayGateway for "razorpay" (configured from the environment)
- FakeGateway for development and testing, registered under any method name
"""

from protean.exceptions import ValidationError

from settlement.gateway.cod_adapter import CashOnDeliveryGateway
from settlement.gateway.fake_adapter import FakeGateway
from settlement.gateway.port import PaymentGateway, PaymentIntent
from settlement.gateway.razorpay_adapter import RazorpayGateway

_gateways: dict[str, PaymentGateway] = {}


def _default_gateways() -> dict[str, PaymentGateway]:
    return {
        "cod": CashOnDeliveryGateway(),
        "razorpay": RazorpayGateway.from_env(),
    }


def get_gateway(payment_method: str) -> PaymentGateway:
    """Return the gateway registered for ``payment_method``."""
    if not _gateways:
        _gateways.update(_default_gateways())
    gateway = _gateways.get((payment_method or "").lower())
    if gateway is None:
        raise ValidationError({"payment_method": [f"Unsupported payment method: {payment_method}"]})
    return gateway


def set_gateway(payment_method: str, gateway: PaymentGateway) -> None:
    """Register or override the gateway for a payment method (useful for tests)."""
    if not _gateways:
        _gateways.update(_default_gateways())
    _gateways[payment_method.lower()] = gateway


def supported_methods() -> list[str]:
    if not _gateways:
        _gateways.update(_default_gateways())
    return sorted(_gateways)


def reset_gateways() -> None:
    """Reset to the default registrations."""
    _gateways.clear()


__all__ = [
    "CashOnDeliveryGateway",
    "FakeGateway",
    "PaymentGateway",
    "PaymentIntent",
    "RazorpayGateway",
    "get_gateway",
    "reset_gateways",
    "set_gateway",
    "supported_methods",
]
