"""FastAPI routes for the Settlement domain: orders, payments and coupons."""

import json

from fastapi import APIRouter, Query, Request
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from settlement.api.schemas import (
    AvailableCouponResponse,
    CancelOrderRequest,
    CouponIdResponse,
    CouponPreviewResponse,
    CouponResponse,
    CreateCouponRequest,
    CreateOrderRequest,
    CreateOrderResponse,
    OrderItemResponse,
    OrderPageResponse,
    OrderResponse,
    PaymentIntentSchema,
    RetryPaymentRequest,
    StatusResponse,
    SuccessResponse,
    UpdateCouponRequest,
    UpdateStatusRequest,
    ValidateCouponRequest,
    VerifyPaymentRequest,
)
from settlement.checkout.service import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, CheckoutResult, OrderService
from settlement.coupon.coupon import Coupon
from settlement.coupon.management import CreateCoupon, DeactivateCoupon, UpdateCoupon
from settlement.errors import CouponRejected
from settlement.order.order import Order, OrderStatus

_service = OrderService()

# Header names gateways use to sign webhook bodies
_SIGNATURE_HEADERS = ("x-razorpay-signature", "x-webhook-signature")


def _checkout_response(result: CheckoutResult) -> CreateOrderResponse:
    payment = None
    if result.payment is not None:
        payment = PaymentIntentSchema(
            gateway=result.payment.gateway,
            gateway_order_id=result.payment.gateway_order_id,
            amount_minor=result.payment.amount_minor,
            currency=result.payment.currency,
            key_id=result.payment.key_id,
        )
    return CreateOrderResponse(
        order_id=result.order_id,
        order_number=result.order_number,
        total_amount=result.total_amount,
        currency=result.currency,
        status=result.status,
        payment=payment,
    )


def _order_response(order: Order) -> OrderResponse:
    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        owner_id=str(order.owner_id) if order.owner_id else None,
        status=order.status,
        payment_status=order.payment_status,
        payment_method=order.payment_method,
        subtotal=order.subtotal,
        discount_amount=order.discount_amount or 0.0,
        shipping_fee=order.shipping_fee or 0.0,
        tax_amount=order.tax_amount or 0.0,
        total_amount=order.total_amount,
        currency=order.currency,
        coupon_code=order.coupon_code,
        tracking_number=order.tracking_number,
        carrier=order.carrier,
        shipping_address_id=str(order.shipping_address_id),
        billing_address_id=str(order.billing_address_id),
        items=[
            OrderItemResponse(
                product_id=str(item.product_id),
                variant_id=str(item.variant_id) if item.variant_id else None,
                product_name=item.product_name,
                variant_name=item.variant_name,
                sku=item.sku,
                unit_price=item.unit_price,
                quantity=item.quantity,
                subtotal=item.subtotal,
            )
            for item in order.items
        ],
        created_at=order.created_at,
        paid_at=order.paid_at,
        shipped_at=order.shipped_at,
        delivered_at=order.delivered_at,
        cancelled_at=order.cancelled_at,
    )


def _available_coupon_response(coupon: Coupon) -> AvailableCouponResponse:
    return AvailableCouponResponse(
        code=coupon.code,
        description=coupon.description,
        discount_type=coupon.discount_type,
        discount_value=coupon.discount_value,
        min_order_amount=coupon.min_order_amount,
        max_discount_amount=coupon.max_discount_amount,
        valid_until=coupon.valid_until,
    )


def _coupon_response(coupon: Coupon) -> CouponResponse:
    return CouponResponse(
        coupon_id=str(coupon.id),
        code=coupon.code,
        description=coupon.description,
        discount_type=coupon.discount_type,
        discount_value=coupon.discount_value,
        min_order_amount=coupon.min_order_amount,
        max_discount_amount=coupon.max_discount_amount,
        usage_limit=coupon.usage_limit,
        per_user_limit=coupon.per_user_limit,
        used_count=coupon.used_count or 0,
        product_ids=coupon.allowed_product_ids,
        category_ids=coupon.allowed_category_ids,
        valid_from=coupon.valid_from,
        valid_until=coupon.valid_until,
        is_active=coupon.is_active,
        created_at=coupon.created_at,
    )


def _coupon_by_code(code: str) -> Coupon:
    coupon = current_domain.repository_for(Coupon).find_by_code(code)
    if coupon is None:
        raise ObjectNotFoundError(f"Coupon {code} does not exist")
    return coupon


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=CreateOrderResponse)
async def create_order(body: CreateOrderRequest) -> CreateOrderResponse:
    result = _service.create_order(
        payment_method=body.payment_method,
        owner_id=body.owner_id,
        items=[item.model_dump() for item in body.items] if body.items is not None else None,
        use_cart=body.use_cart,
        shipping_address=body.shipping_address.model_dump(exclude_none=True) if body.shipping_address else None,
        shipping_address_id=body.shipping_address_id,
        billing_address=body.billing_address.model_dump(exclude_none=True) if body.billing_address else None,
        billing_address_id=body.billing_address_id,
        coupon_code=body.coupon_code,
        guest_email=body.guest_email,
        guest_phone=body.guest_phone,
        notes=body.notes,
    )
    return _checkout_response(result)


@order_router.post("/verify-payment", response_model=SuccessResponse)
async def verify_payment(body: VerifyPaymentRequest) -> SuccessResponse:
    _service.verify_payment(body.gateway_order_id, body.payment_id, body.signature)
    return SuccessResponse()


@order_router.post("/{order_id}/retry-payment", response_model=CreateOrderResponse)
async def retry_payment(order_id: str, body: RetryPaymentRequest) -> CreateOrderResponse:
    return _checkout_response(_service.retry_payment_intent(order_id, requester_id=body.requester_id))


@order_router.post("/{order_id}/cancel", response_model=SuccessResponse)
async def cancel_order(order_id: str, body: CancelOrderRequest) -> SuccessResponse:
    _service.cancel_order(order_id, body.requester_id)
    return SuccessResponse()


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str) -> OrderResponse:
    return _order_response(_service.get_order(order_id))


@order_router.get("", response_model=OrderPageResponse)
async def list_orders(
    owner_id: str | None = None,
    status: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> OrderPageResponse:
    if status and status not in {s.value for s in OrderStatus}:
        raise ValidationError({"status": [f"Unknown order status: {status}"]})
    result = _service.page_orders(owner_id=owner_id, status=status, page=page, limit=limit)
    return OrderPageResponse(
        orders=[_order_response(order) for order in result.orders],
        total=result.total,
        page=result.page,
        limit=result.limit,
        pages=result.pages,
    )


# ---------------------------------------------------------------------------
# Admin Router
# ---------------------------------------------------------------------------
admin_router = APIRouter(prefix="/admin/orders", tags=["admin"])


@admin_router.put("/{order_id}/status", response_model=SuccessResponse)
async def update_order_status(order_id: str, body: UpdateStatusRequest) -> SuccessResponse:
    _service.update_status(order_id, body.status, tracking_number=body.tracking_number, carrier=body.carrier)
    return SuccessResponse()


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/webhook/{payment_method}", response_model=StatusResponse)
async def payment_webhook(payment_method: str, request: Request) -> StatusResponse:
    """Gateway webhook. The signature covers the raw body, so it is read unparsed."""
    payload = await request.body()
    signature = next((request.headers[h] for h in _SIGNATURE_HEADERS if h in request.headers), "")
    outcome = _service.handle_webhook(payment_method, payload, signature)
    return StatusResponse(status=outcome)


# ---------------------------------------------------------------------------
# Coupon Router
# ---------------------------------------------------------------------------
coupon_router = APIRouter(prefix="/coupons", tags=["coupons"])


@coupon_router.post("", status_code=201, response_model=CouponIdResponse)
async def create_coupon(body: CreateCouponRequest) -> CouponIdResponse:
    command = CreateCoupon(
        code=body.code,
        description=body.description,
        discount_type=body.discount_type,
        discount_value=body.discount_value,
        min_order_amount=body.min_order_amount,
        max_discount_amount=body.max_discount_amount,
        usage_limit=body.usage_limit,
        per_user_limit=body.per_user_limit,
        product_ids=json.dumps(body.product_ids),
        category_ids=json.dumps(body.category_ids),
        valid_from=body.valid_from,
        valid_until=body.valid_until,
        is_active=body.is_active,
    )
    result = current_domain.process(command, asynchronous=False)
    return CouponIdResponse(coupon_id=result)


@coupon_router.put("/{code}/deactivate", response_model=SuccessResponse)
async def deactivate_coupon(code: str) -> SuccessResponse:
    current_domain.process(DeactivateCoupon(code=code), asynchronous=False)
    return SuccessResponse()


@coupon_router.get("", response_model=list[CouponResponse])
async def list_coupons() -> list[CouponResponse]:
    return [_coupon_response(coupon) for coupon in current_domain.repository_for(Coupon).list_all()]


@coupon_router.get("/available", response_model=list[AvailableCouponResponse])
async def available_coupons() -> list[AvailableCouponResponse]:
    """Coupons a shopper can use right now."""
    return [_available_coupon_response(coupon) for coupon in current_domain.repository_for(Coupon).list_available()]


@coupon_router.get("/{code}", response_model=CouponResponse)
async def get_coupon(code: str) -> CouponResponse:
    return _coupon_response(_coupon_by_code(code))


@coupon_router.put("/{code}", response_model=CouponResponse)
async def update_coupon(code: str, body: UpdateCouponRequest) -> CouponResponse:
    current_domain.process(
        UpdateCoupon(
            code=code,
            description=body.description,
            discount_type=body.discount_type,
            discount_value=body.discount_value,
            min_order_amount=body.min_order_amount,
            max_discount_amount=body.max_discount_amount,
            usage_limit=body.usage_limit,
            per_user_limit=body.per_user_limit,
            product_ids=json.dumps(body.product_ids) if body.product_ids is not None else None,
            category_ids=json.dumps(body.category_ids) if body.category_ids is not None else None,
            valid_from=body.valid_from,
            valid_until=body.valid_until,
            is_active=body.is_active,
        ),
        asynchronous=False,
    )
    return _coupon_response(_coupon_by_code(code))


@coupon_router.post("/validate", response_model=CouponPreviewResponse)
async def validate_coupon(body: ValidateCouponRequest) -> CouponPreviewResponse:
    """Preview a coupon against a basket. Nothing is recorded."""
    items = [item.model_dump() for item in body.items]
    try:
        evaluation, subtotal = _service.preview_coupon(body.code, items, owner_id=body.owner_id)
    except CouponRejected as exc:
        return CouponPreviewResponse(
            valid=False,
            code=body.code,
            reason=exc.reason.value,
            message=exc.messages["coupon_code"][0],
        )
    return CouponPreviewResponse(
        valid=True,
        code=evaluation.code,
        discount_amount=float(evaluation.discount_amount),
        subtotal=float(subtotal),
    )
