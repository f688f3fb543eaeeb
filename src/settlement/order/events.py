"""Domain events for the Order aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from settlement.domain import settlement


@settlement.event(part_of="Order")
class OrderPlaced:
    """An order and its line items were committed at checkout."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    owner_id = Identifier()
    status = String(required=True)
    payment_method = String(required=True)
    item_count = Integer(required=True)
    subtotal = Float(required=True)
    discount_amount = Float()
    shipping_fee = Float()
    tax_amount = Float()
    total_amount = Float(required=True)
    currency = String(required=True)
    coupon_code = String()
    placed_at = DateTime(required=True)


@settlement.event(part_of="Order")
class PaymentIntentRecorded:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    gateway = String(required=True)
    gateway_order_id = String(required=True)
    recorded_at = DateTime(required=True)


@settlement.event(part_of="Order")
class PaymentConfirmed:
    """The gateway confirmed payment with a verified signature."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    gateway_order_id = String()
    payment_id = String()
    amount = Float(required=True)
    paid_at = DateTime(required=True)


@settlement.event(part_of="Order")
class PaymentFailed:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    gateway_order_id = String()
    reason = String()
    failed_at = DateTime(required=True)


@settlement.event(part_of="Order")
class OrderStatusChanged:
    """An operator or payment confirmation moved the order along its lifecycle."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    tracking_number = String()
    carrier = String()
    changed_at = DateTime(required=True)


@settlement.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    cancelled_by = Identifier()
    cancelled_at = DateTime(required=True)
