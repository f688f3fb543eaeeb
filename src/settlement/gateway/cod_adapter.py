"""Cash on delivery: a synchronous method settled at the doorstep."""

from decimal import Decimal

from settlement.errors import PaymentGatewayError
from settlement.gateway.port import PaymentGateway, PaymentIntent


class CashOnDeliveryGateway(PaymentGateway):
    name = "cod"
    requires_confirmation = False

    def create_intent(self, amount: Decimal, currency: str, receipt: str) -> PaymentIntent:
        raise PaymentGatewayError("Cash on delivery orders do not create payment intents")

    def verify_payment_signature(self, gateway_order_id: str, payment_id: str, signature: str) -> bool:  # noqa: ARG002
        return False

    def verify_webhook_signature(self, payload: bytes | str, signature: str) -> bool:  # noqa: ARG002
        return False
