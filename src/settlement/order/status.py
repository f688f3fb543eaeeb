"""Operator status updates and customer cancellation."""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from settlement.domain import settlement
from settlement.errors import NotOrderOwner
from settlement.order.order import Order, OrderStatus

logger = structlog.get_logger(__name__)


@settlement.command(part_of="Order")
class UpdateOrderStatus:
    """Privileged: move an order along its lifecycle."""

    order_id = Identifier(required=True)
    status = String(required=True, choices=OrderStatus)
    tracking_number = String(max_length=255)
    carrier = String(max_length=100)


@settlement.command(part_of="Order")
class CancelOrder:
    """Customer-initiated cancellation of an order that has not started processing."""

    order_id = Identifier(required=True)
    requester_id = Identifier(required=True)


@settlement.command_handler(part_of=Order)
class OrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        changed = order.transition_to(
            command.status,
            tracking_number=command.tracking_number,
            carrier=command.carrier,
        )
        if changed:
            repo.add(order)
            logger.info("Order status updated", order_id=str(order.id), status=order.status)
        return changed

    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if not order.is_owned_by(command.requester_id):
            raise NotOrderOwner(f"Order {order.order_number} does not belong to the requester")

        changed = order.cancel(cancelled_by=command.requester_id)
        if changed:
            repo.add(order)
            logger.info("Order cancelled", order_id=str(order.id), order_number=order.order_number)
        return changed
