"""OrderService: the checkout and payment settlement use cases.

State changes go through Protean commands so each one runs in its own unit
of work. The service owns what happens around those commits: reading the
cart, calling the payment gateway after the order is durable, and the
best-effort side effects (cart clearing, notifications) whose failures are
logged and never surface to the caller.
"""

import json
import math
from dataclasses import dataclass
from decimal import Decimal

import structlog
from protean.exceptions import (
    ExpectedVersionError,
    InvalidOperationError,
    ObjectNotFoundError,
    ValidationError,
)
from protean.utils.globals import current_domain

from settlement.cart import get_cart_provider
from settlement.catalog import get_catalog
from settlement.coupon.validation import CouponEvaluation, CouponValidator
from settlement.errors import (
    EmptyOrder,
    NotOrderOwner,
    PaymentGatewayError,
    PaymentVerificationFailed,
    PersistenceFailure,
    SettlementError,
)
from settlement.gateway import get_gateway
from settlement.gateway.port import PaymentIntent
from settlement.notifier import get_notifier
from settlement.order.order import Order, OrderStatus
from settlement.order.payment import ConfirmPayment, RecordPaymentFailure, RecordPaymentIntent
from settlement.order.placement import PlaceOrder
from settlement.order.status import CancelOrder, UpdateOrderStatus
from settlement.pricing.engine import resolve_line_items, subtotal_of
from settlement.utils.logging import bind_checkout_context, bind_payment_context

logger = structlog.get_logger(__name__)

# Failures the caller must see as they are; anything else escaping a
# placement commit is reported as a persistence failure.
_DOMAIN_ERRORS = (ValidationError, InvalidOperationError, ObjectNotFoundError, SettlementError)

WEBHOOK_PAYMENT_CAPTURED = "payment.captured"
WEBHOOK_PAYMENT_FAILED = "payment.failed"

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class CheckoutResult:
    order_id: str
    order_number: str
    status: str
    total_amount: float
    currency: str
    payment: PaymentIntent | None = None


@dataclass(frozen=True)
class OrderPage:
    orders: list[Order]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0


def _order_snapshot(order: Order) -> dict:
    return {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "owner_id": str(order.owner_id) if order.owner_id else None,
        "guest_email": order.guest_email,
        "status": order.status,
        "payment_status": order.payment_status,
        "payment_method": order.payment_method,
        "total_amount": order.total_amount,
        "currency": order.currency,
    }


def _result_for(order: Order, intent: PaymentIntent | None = None) -> CheckoutResult:
    return CheckoutResult(
        order_id=str(order.id),
        order_number=order.order_number,
        status=order.status,
        total_amount=order.total_amount,
        currency=order.currency,
        payment=intent,
    )


class OrderService:
    # -------------------------------------------------------------------
    # Checkout
    # -------------------------------------------------------------------
    def create_order(
        self,
        payment_method,
        owner_id=None,
        items=None,
        use_cart=False,
        shipping_address=None,
        shipping_address_id=None,
        billing_address=None,
        billing_address_id=None,
        coupon_code=None,
        guest_email=None,
        guest_phone=None,
        notes=None,
    ) -> CheckoutResult:
        """Place an order and, for gateway methods, open a payment intent.

        ``items`` is a list of ``{product_id, variant_id, quantity}`` dicts.
        When it is omitted (or ``use_cart`` is set) the owner's current cart
        is used instead. An explicit empty list is an empty order. Prices
        always come from the catalog.

        Raises ``PaymentGatewayError`` (carrying ``order_id``) when the order
        was committed but the gateway could not create an intent; the order
        stays ``pending_payment`` and ``retry_payment_intent`` can be used.
        """
        bind_checkout_context(owner_id=str(owner_id) if owner_id else None, payment_method=payment_method)
        requested = self._requested_lines(owner_id, items, use_cart)

        def build_command():
            return PlaceOrder(
                owner_id=owner_id,
                guest_email=guest_email,
                guest_phone=guest_phone,
                shipping_address=json.dumps(shipping_address) if shipping_address else None,
                shipping_address_id=shipping_address_id,
                billing_address=json.dumps(billing_address) if billing_address else None,
                billing_address_id=billing_address_id,
                items=json.dumps(requested),
                payment_method=payment_method,
                coupon_code=coupon_code,
                notes=notes,
            )

        order_id = self._place(build_command)
        order = current_domain.repository_for(Order).get(order_id)
        bind_checkout_context(order_id=str(order.id), order_number=order.order_number)

        gateway = get_gateway(order.payment_method)
        if not gateway.requires_confirmation:
            # Settled outside any gateway: the cart is done with now
            self._clear_cart(order)
        self._notify("order_created", order)

        if not gateway.requires_confirmation:
            return _result_for(order)

        intent = self._open_intent(order, gateway)
        return _result_for(order, intent)

    def retry_payment_intent(self, order_id, requester_id=None) -> CheckoutResult:
        """Open a fresh payment intent for an order still awaiting payment."""
        order = current_domain.repository_for(Order).get(order_id)
        if requester_id is not None and order.owner_id and not order.is_owned_by(requester_id):
            raise NotOrderOwner(f"Order {order.order_number} does not belong to the requester")
        if order.status != OrderStatus.PENDING_PAYMENT.value or order.is_paid:
            raise InvalidOperationError(f"Order {order.order_number} is not awaiting payment")

        gateway = get_gateway(order.payment_method)
        if not gateway.requires_confirmation:
            raise InvalidOperationError(f"Payment method {order.payment_method} does not use a payment intent")

        intent = self._open_intent(order, gateway)
        return _result_for(order, intent)

    # -------------------------------------------------------------------
    # Payment confirmation
    # -------------------------------------------------------------------
    def verify_payment(self, gateway_order_id, payment_id, signature) -> Order:
        """Confirm a gateway payment from the signed checkout callback.

        A repeated callback for an order that is already paid changes nothing
        and repeats no side effects.
        """
        bind_checkout_context(gateway_order_id=gateway_order_id)
        order = current_domain.repository_for(Order).find_by_gateway_order_id(gateway_order_id)
        if order is None:
            logger.warning("Payment callback for unknown gateway order")
            raise PaymentVerificationFailed(f"No order awaits payment for {gateway_order_id}")
        bind_payment_context(order, gateway_order_id)

        gateway = get_gateway(order.payment_method)
        if not gateway.verify_payment_signature(gateway_order_id, payment_id, signature):
            logger.error("Payment signature mismatch", payment_id=payment_id, signature=signature)
            raise PaymentVerificationFailed("Payment signature verification failed")

        return self._confirm(order, payment_id, gateway_order_id)

    def handle_webhook(self, payment_method, payload: bytes | str, signature) -> str:
        """Apply a signed gateway webhook. Returns ``processed`` or ``ignored``."""
        gateway = get_gateway(payment_method)
        if not gateway.verify_webhook_signature(payload, signature):
            logger.error("Webhook signature mismatch", gateway=payment_method, signature=signature)
            raise PaymentVerificationFailed("Webhook signature verification failed")

        try:
            data = json.loads(payload)
            entity = data["payload"]["payment"]["entity"]
            event = data["event"]
        except (ValueError, KeyError, TypeError):
            raise ValidationError({"payload": ["Malformed webhook payload"]})

        if event not in (WEBHOOK_PAYMENT_CAPTURED, WEBHOOK_PAYMENT_FAILED):
            logger.info("Ignoring webhook event", gateway=payment_method, webhook_event=event)
            return "ignored"

        gateway_order_id = entity.get("order_id")
        order = current_domain.repository_for(Order).find_by_gateway_order_id(gateway_order_id)
        if order is None:
            logger.warning("Webhook for unknown gateway order", gateway_order_id=gateway_order_id)
            return "ignored"
        bind_payment_context(order, gateway_order_id)

        if event == WEBHOOK_PAYMENT_CAPTURED:
            self._confirm(order, entity.get("id"), gateway_order_id)
        else:
            reason = entity.get("error_description") or entity.get("error_reason")
            current_domain.process(RecordPaymentFailure(order_id=str(order.id), reason=reason), asynchronous=False)
            logger.warning("Payment failed", order_id=str(order.id), order_number=order.order_number, reason=reason)
        return "processed"

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def update_status(self, order_id, status, tracking_number=None, carrier=None) -> bool:
        return current_domain.process(
            UpdateOrderStatus(
                order_id=order_id,
                status=status,
                tracking_number=tracking_number,
                carrier=carrier,
            ),
            asynchronous=False,
        )

    def cancel_order(self, order_id, requester_id) -> bool:
        return current_domain.process(CancelOrder(order_id=order_id, requester_id=requester_id), asynchronous=False)

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def get_order(self, order_id) -> Order:
        return current_domain.repository_for(Order).get(order_id)

    def get_order_by_number(self, order_number) -> Order:
        order = current_domain.repository_for(Order).find_by_order_number(order_number)
        if order is None:
            raise ObjectNotFoundError(f"Order {order_number} does not exist")
        return order

    def list_orders(self, owner_id=None, status=None) -> list[Order]:
        return current_domain.repository_for(Order).list_orders(owner_id=owner_id, status=status)

    def page_orders(self, owner_id=None, status=None, page=1, limit=DEFAULT_PAGE_SIZE) -> OrderPage:
        """One page of orders, newest first, with the total across all pages."""
        if page < 1:
            raise ValidationError({"page": ["Page must be at least 1"]})
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError({"limit": [f"Limit must be between 1 and {MAX_PAGE_SIZE}"]})

        repo = current_domain.repository_for(Order)
        return OrderPage(
            orders=repo.list_orders(owner_id=owner_id, status=status, page=page, limit=limit),
            total=repo.count_orders(owner_id=owner_id, status=status),
            page=page,
            limit=limit,
        )

    def preview_coupon(self, code, items, owner_id=None) -> tuple[CouponEvaluation, Decimal]:
        """Validate a coupon against a basket without placing an order or recording usage."""
        lines = resolve_line_items(self._requested_lines(owner_id, items, use_cart=False), get_catalog())
        subtotal = subtotal_of(lines)
        return CouponValidator().validate(code, subtotal, user_id=owner_id, line_items=lines), subtotal

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _requested_lines(self, owner_id, items, use_cart) -> list[dict]:
        if items is not None and not use_cart:
            if not items:
                raise EmptyOrder()
            return [
                {
                    "product_id": str(item["product_id"]),
                    "variant_id": str(item["variant_id"]) if item.get("variant_id") else None,
                    "quantity": item.get("quantity", 1),
                }
                for item in items
            ]

        if not owner_id:
            raise EmptyOrder()
        lines = get_cart_provider().get_items(owner_id)
        return [
            {"product_id": line.product_id, "variant_id": line.variant_id, "quantity": line.quantity}
            for line in lines
        ]

    def _place(self, build_command) -> str:
        """Run the placement command, retrying once if a coupon update raced another checkout."""
        for attempt in (1, 2):
            try:
                return current_domain.process(build_command(), asynchronous=False)
            except ExpectedVersionError as exc:
                if attempt == 2:
                    raise PersistenceFailure("Order could not be saved due to concurrent updates") from exc
                # The retry re-validates the coupon against the committed used_count
                logger.warning("Concurrent coupon redemption, retrying checkout", error=str(exc))
            except _DOMAIN_ERRORS:
                raise
            except Exception as exc:
                logger.error("Order placement failed to commit", error=str(exc))
                raise PersistenceFailure("Order could not be saved") from exc

    def _open_intent(self, order: Order, gateway) -> PaymentIntent:
        try:
            intent = gateway.create_intent(Decimal(str(order.total_amount)), order.currency, order.order_number)
        except PaymentGatewayError as exc:
            logger.error(
                "Payment intent creation failed",
                order_id=str(order.id),
                order_number=order.order_number,
                gateway=order.payment_method,
                error=str(exc),
            )
            raise PaymentGatewayError(str(exc), order_id=str(order.id)) from exc

        current_domain.process(
            RecordPaymentIntent(
                order_id=str(order.id),
                gateway=order.payment_method,
                gateway_order_id=intent.gateway_order_id,
            ),
            asynchronous=False,
        )
        logger.info(
            "Payment intent created",
            order_id=str(order.id),
            order_number=order.order_number,
            gateway_order_id=intent.gateway_order_id,
            amount_minor=intent.amount_minor,
        )
        return intent

    def _confirm(self, order: Order, payment_id, gateway_order_id) -> Order:
        changed = current_domain.process(
            ConfirmPayment(order_id=str(order.id), payment_id=payment_id, gateway_order_id=gateway_order_id),
            asynchronous=False,
        )
        order = current_domain.repository_for(Order).get(order.id)
        if not changed:
            logger.info("Duplicate payment confirmation ignored", order_id=str(order.id), payment_id=payment_id)
            return order

        logger.info("Payment confirmed", order_id=str(order.id), order_number=order.order_number, payment_id=payment_id)
        self._clear_cart(order)
        self._notify("payment_received", order)
        return order

    def _clear_cart(self, order: Order) -> None:
        if not order.owner_id:
            return
        try:
            get_cart_provider().clear(str(order.owner_id))
        except Exception as exc:
            logger.warning("Cart clear failed", order_id=str(order.id), owner_id=str(order.owner_id), error=str(exc))

    def _notify(self, kind: str, order: Order) -> None:
        try:
            getattr(get_notifier(), kind)(_order_snapshot(order))
        except Exception as exc:
            logger.warning("Notification failed", notification=kind, order_id=str(order.id), error=str(exc))
