"""Configurable fake signing gateway for development and testing.

Behaves like a real asynchronous gateway (intent ids, HMAC-signed callbacks)
without any network calls. ``sign_payment`` produces the signature a real
checkout page would receive, so tests can drive ``verify_payment`` end to end.
"""

from decimal import Decimal
from uuid import uuid4

from settlement.errors import PaymentGatewayError
from settlement.gateway.port import PaymentGateway, PaymentIntent, to_minor_units
from settlement.gateway.signing import payment_signature, sign, signatures_match


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    requires_confirmation = True

    def __init__(self, name: str = "fake", secret: str = "test-secret", key_id: str = "key_test_fake") -> None:
        self.name = name
        self.secret = secret
        self.key_id = key_id
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway unavailable"
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Gateway unavailable") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    @property
    def public_key(self) -> str | None:
        return self.key_id

    def create_intent(self, amount: Decimal, currency: str, receipt: str) -> PaymentIntent:
        self.calls.append(
            {
                "method": "create_intent",
                "amount": amount,
                "currency": currency,
                "receipt": receipt,
            }
        )
        if not self.should_succeed:
            raise PaymentGatewayError(self.failure_reason)

        return PaymentIntent(
            gateway=self.name,
            gateway_order_id=f"order_{uuid4().hex[:14]}",
            amount_minor=to_minor_units(amount),
            currency=currency,
            receipt=receipt,
            key_id=self.key_id,
            status="created",
        )

    def sign_payment(self, gateway_order_id: str, payment_id: str) -> str:
        return payment_signature(self.secret, gateway_order_id, payment_id)

    def sign_webhook(self, payload: bytes | str) -> str:
        return sign(self.secret, payload)

    def verify_payment_signature(self, gateway_order_id: str, payment_id: str, signature: str) -> bool:
        return signatures_match(payment_signature(self.secret, gateway_order_id, payment_id), signature)

    def verify_webhook_signature(self, payload: bytes | str, signature: str) -> bool:
        return signatures_match(sign(self.secret, payload), signature)
