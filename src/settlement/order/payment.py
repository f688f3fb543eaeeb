"""Payment lifecycle commands: intent recorded, payment confirmed or failed."""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from settlement.domain import settlement
from settlement.order.order import Order, PaymentAttempt


@settlement.command(part_of="Order")
class RecordPaymentIntent:
    order_id = Identifier(required=True)
    gateway = String(required=True, max_length=50)
    gateway_order_id = String(required=True, max_length=255)


@settlement.command(part_of="Order")
class ConfirmPayment:
    """The gateway reported a successful payment with a verified signature."""

    order_id = Identifier(required=True)
    payment_id = String(required=True, max_length=255)
    gateway_order_id = String(max_length=255)


@settlement.command(part_of="Order")
class RecordPaymentFailure:
    order_id = Identifier(required=True)
    reason = String(max_length=500)


@settlement.command_handler(part_of=Order)
class OrderPaymentHandler:
    @handle(RecordPaymentIntent)
    def record_intent(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        attempt = order.record_payment_intent(command.gateway, command.gateway_order_id)
        repo.add(order)
        current_domain.repository_for(PaymentAttempt).add(attempt)

    @handle(ConfirmPayment)
    def confirm_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        changed = order.confirm_payment(command.payment_id, gateway_order_id=command.gateway_order_id)
        if changed:
            repo.add(order)
        return changed

    @handle(RecordPaymentFailure)
    def record_failure(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        changed = order.record_payment_failure(command.reason)
        if changed:
            repo.add(order)
        return changed
