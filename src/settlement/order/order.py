"""Order aggregate: the durable, price-correct record of a checkout.

The order header and its line items are written together by the placement
handler. Money fields are computed server-side and never change afterwards.

State Machine:
    PENDING_PAYMENT → PROCESSING (payment confirmed) | CANCELLED
    PENDING → CONFIRMED | PROCESSING | CANCELLED
    CONFIRMED → PROCESSING | CANCELLED
    PROCESSING → SHIPPED → DELIVERED
    DELIVERED → RETURNED | REFUNDED
    RETURNED → REFUNDED
    CANCELLED, REFUNDED are terminal
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import InvalidOperationError, ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from settlement.domain import settlement
from settlement.errors import InvalidTransition
from settlement.order.events import (
    OrderCancelled,
    OrderPlaced,
    OrderStatusChanged,
    PaymentConfirmed,
    PaymentFailed,
    PaymentIntentRecorded,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING_PAYMENT = "pending_payment"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"
    REFUNDED = "refunded"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING_PAYMENT: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: {OrderStatus.RETURNED, OrderStatus.REFUNDED},
    OrderStatus.RETURNED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.REFUNDED: set(),  # Terminal
}

# Reaching one of these states stamps the matching timestamp exactly once
_STATUS_TIMESTAMPS = {
    OrderStatus.SHIPPED: "shipped_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
    OrderStatus.RETURNED: "returned_at",
    OrderStatus.REFUNDED: "refunded_at",
}


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return target in _VALID_TRANSITIONS.get(current, set())


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@settlement.entity(part_of="Order")
class OrderItem:
    """A priced line, frozen at checkout. Catalog price changes never touch it."""

    product_id = Identifier(required=True)
    variant_id = Identifier()
    product_name = String(required=True, max_length=255)
    variant_name = String(max_length=255)
    sku = String(max_length=100)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    subtotal = Float(required=True, min_value=0.0)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@settlement.aggregate
class Order:
    order_number = String(required=True, max_length=50, unique=True)
    owner_id = Identifier()  # Null for guest orders
    guest_email = String(max_length=255)
    guest_phone = String(max_length=20)
    shipping_address_id = Identifier(required=True)
    billing_address_id = Identifier(required=True)
    items = HasMany(OrderItem)
    subtotal = Float(required=True, min_value=0.0)
    discount_amount = Float(default=0.0, min_value=0.0)
    shipping_fee = Float(default=0.0, min_value=0.0)
    tax_amount = Float(default=0.0, min_value=0.0)
    total_amount = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="INR")
    coupon_code = String(max_length=50)
    payment_method = String(required=True, max_length=50)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    notes = Text()
    gateway_order_id = String(max_length=255)
    payment_id = String(max_length=255)
    payment_failure_reason = String(max_length=500)
    tracking_number = String(max_length=255)
    carrier = String(max_length=100)
    created_at = DateTime()
    updated_at = DateTime()
    paid_at = DateTime()
    shipped_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    returned_at = DateTime()
    refunded_at = DateTime()

    @invariant.post
    def total_must_match_components(self):
        if self.subtotal is None or self.total_amount is None:
            return
        discount = self.discount_amount or 0.0
        if discount > self.subtotal + 0.005:
            raise ValidationError({"discount_amount": ["Discount cannot exceed the subtotal"]})
        expected = max(self.subtotal - discount + (self.shipping_fee or 0.0) + (self.tax_amount or 0.0), 0.0)
        if abs(expected - self.total_amount) > 0.005:
            raise ValidationError({"total_amount": ["Total must equal subtotal - discount + shipping + tax"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number,
        shipping_address_id,
        billing_address_id,
        lines,
        pricing,
        payment_method,
        requires_confirmation,
        owner_id=None,
        guest_email=None,
        guest_phone=None,
        coupon_code=None,
        notes=None,
    ):
        """Create an order from resolved lines and a computed price breakdown.

        Args:
            lines: ``LineItem`` values from the pricing engine.
            pricing: ``PriceBreakdown`` for those lines.
            requires_confirmation: True for gateway methods, which start in
                ``pending_payment`` until the gateway confirms payment.
        """
        now = datetime.now(UTC)
        status = OrderStatus.PENDING_PAYMENT if requires_confirmation else OrderStatus.PENDING

        order = cls(
            order_number=order_number,
            owner_id=owner_id,
            guest_email=guest_email,
            guest_phone=guest_phone,
            shipping_address_id=shipping_address_id,
            billing_address_id=billing_address_id,
            subtotal=float(pricing.subtotal),
            discount_amount=float(pricing.discount_amount),
            shipping_fee=float(pricing.shipping_fee),
            tax_amount=float(pricing.tax_amount),
            total_amount=float(pricing.total),
            currency=pricing.currency,
            coupon_code=coupon_code,
            payment_method=payment_method,
            payment_status=PaymentStatus.PENDING.value,
            status=status.value,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        for line in lines:
            order.add_items(
                OrderItem(
                    product_id=line.product_id,
                    variant_id=line.variant_id,
                    product_name=line.product_name,
                    variant_name=line.variant_name,
                    sku=line.sku,
                    unit_price=float(line.unit_price),
                    quantity=line.quantity,
                    subtotal=float(line.subtotal),
                )
            )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order.order_number,
                owner_id=str(owner_id) if owner_id else None,
                status=order.status,
                payment_method=payment_method,
                item_count=len(lines),
                subtotal=order.subtotal,
                discount_amount=order.discount_amount,
                shipping_fee=order.shipping_fee,
                tax_amount=order.tax_amount,
                total_amount=order.total_amount,
                currency=order.currency,
                coupon_code=coupon_code,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID.value

    def is_owned_by(self, requester_id) -> bool:
        return bool(self.owner_id) and requester_id is not None and str(self.owner_id) == str(requester_id)

    # -------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target: OrderStatus):
        current = OrderStatus(self.status)
        if not can_transition(current, target):
            raise InvalidTransition(current.value, target.value)

    def _move_to(self, target: OrderStatus, now: datetime):
        self.status = target.value
        stamp = _STATUS_TIMESTAMPS.get(target)
        if stamp and getattr(self, stamp) is None:
            setattr(self, stamp, now)
        self.updated_at = now

    def transition_to(self, target, tracking_number=None, carrier=None) -> bool:
        """Move the order to ``target``. Returns False when it is already there."""
        target = OrderStatus(target)
        if target == OrderStatus.CANCELLED:
            return self.cancel()

        previous = self.status
        if OrderStatus(previous) == target:
            return False

        self._assert_can_transition(target)
        now = datetime.now(UTC)
        if tracking_number:
            self.tracking_number = tracking_number
        if carrier:
            self.carrier = carrier
        self._move_to(target, now)

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                previous_status=previous,
                new_status=target.value,
                tracking_number=self.tracking_number,
                carrier=self.carrier,
                changed_at=now,
            )
        )
        return True

    def cancel(self, cancelled_by=None) -> bool:
        previous = self.status
        if OrderStatus(previous) == OrderStatus.CANCELLED:
            return False

        self._assert_can_transition(OrderStatus.CANCELLED)
        now = datetime.now(UTC)
        self._move_to(OrderStatus.CANCELLED, now)

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                order_number=self.order_number,
                previous_status=previous,
                cancelled_by=str(cancelled_by) if cancelled_by else None,
                cancelled_at=now,
            )
        )
        return True

    # -------------------------------------------------------------------
    # Payment lifecycle
    # -------------------------------------------------------------------
    def record_payment_intent(self, gateway: str, gateway_order_id: str) -> "PaymentAttempt":
        """Point the order at a fresh gateway order. Earlier attempts stay matchable."""
        if self.status != OrderStatus.PENDING_PAYMENT.value or self.is_paid:
            raise InvalidOperationError(f"Order {self.order_number} is not awaiting payment")

        now = datetime.now(UTC)
        self.gateway_order_id = gateway_order_id
        self.payment_status = PaymentStatus.PENDING.value
        self.payment_failure_reason = None
        self.updated_at = now

        attempt = PaymentAttempt(
            order_id=str(self.id),
            gateway=gateway,
            gateway_order_id=gateway_order_id,
            created_at=now,
        )

        self.raise_(
            PaymentIntentRecorded(
                order_id=str(self.id),
                order_number=self.order_number,
                gateway=gateway,
                gateway_order_id=gateway_order_id,
                recorded_at=now,
            )
        )
        return attempt

    def confirm_payment(self, payment_id, gateway_order_id=None) -> bool:
        """Mark the order paid and move it to processing. Returns False for a repeat."""
        if self.is_paid:
            return False

        if self.status != OrderStatus.PENDING_PAYMENT.value:
            raise InvalidTransition(self.status, OrderStatus.PROCESSING.value)

        now = datetime.now(UTC)
        self.payment_status = PaymentStatus.PAID.value
        self.payment_id = payment_id
        if gateway_order_id:
            self.gateway_order_id = gateway_order_id
        self.paid_at = now
        self._move_to(OrderStatus.PROCESSING, now)

        self.raise_(
            PaymentConfirmed(
                order_id=str(self.id),
                order_number=self.order_number,
                gateway_order_id=self.gateway_order_id,
                payment_id=payment_id,
                amount=self.total_amount,
                paid_at=now,
            )
        )
        return True

    def record_payment_failure(self, reason=None) -> bool:
        """Record a failed attempt. The order stays in pending_payment and can be retried."""
        if self.is_paid or self.status != OrderStatus.PENDING_PAYMENT.value:
            return False

        now = datetime.now(UTC)
        self.payment_status = PaymentStatus.FAILED.value
        self.payment_failure_reason = reason
        self.updated_at = now

        self.raise_(
            PaymentFailed(
                order_id=str(self.id),
                order_number=self.order_number,
                gateway_order_id=self.gateway_order_id,
                reason=reason,
                failed_at=now,
            )
        )
        return True


@settlement.aggregate
class PaymentAttempt:
    """One gateway order opened for an order. A retry adds an attempt and never removes one."""

    order_id = Identifier(required=True)
    gateway = String(required=True, max_length=50)
    gateway_order_id = String(required=True, max_length=255, unique=True)
    created_at = DateTime()


@settlement.repository(part_of=PaymentAttempt)
class PaymentAttemptRepository:
    def find_by_gateway_order_id(self, gateway_order_id: str) -> PaymentAttempt | None:
        results = self._dao.query.filter(gateway_order_id=gateway_order_id).all().items
        return results[0] if results else None

    def find_for_order(self, order_id: str) -> list[PaymentAttempt]:
        attempts = self._dao.query.filter(order_id=str(order_id)).all().items
        return sorted(attempts, key=lambda a: a.created_at)


@settlement.repository(part_of=Order)
class OrderRepository:
    def find_by_order_number(self, order_number: str) -> Order | None:
        results = self._dao.query.filter(order_number=order_number).all().items
        return results[0] if results else None

    def find_by_gateway_order_id(self, gateway_order_id: str) -> Order | None:
        """The order behind any gateway order ever opened for it, not only the latest."""
        if not gateway_order_id:
            return None
        results = self._dao.query.filter(gateway_order_id=gateway_order_id).all().items
        if results:
            return results[0]
        attempt = current_domain.repository_for(PaymentAttempt).find_by_gateway_order_id(gateway_order_id)
        return self.get(attempt.order_id) if attempt is not None else None

    def _matching(self, owner_id, status) -> list[Order]:
        criteria = {}
        if owner_id:
            criteria["owner_id"] = str(owner_id)
        if status:
            criteria["status"] = OrderStatus(status).value

        query = self._dao.query.filter(**criteria) if criteria else self._dao.query
        return query.all().items

    def list_orders(self, owner_id=None, status=None, page=None, limit=None) -> list[Order]:
        """Orders newest first, optionally narrowed by owner and status.

        With ``limit`` set, only that many orders from the 1-based ``page``
        are returned.
        """
        orders = sorted(self._matching(owner_id, status), key=lambda o: o.created_at, reverse=True)
        if limit:
            start = (max(page or 1, 1) - 1) * limit
            orders = orders[start : start + limit]
        return orders

    def count_orders(self, owner_id=None, status=None) -> int:
        return len(self._matching(owner_id, status))
