"""Pydantic request/response schemas for the Settlement API.

These are external contracts (anti-corruption layer): separate from
internal Protean commands.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    full_name: str
    phone: str | None = None
    address_line1: str
    address_line2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str
    country: str | None = None
    address_type: str | None = None


class RequestedItemSchema(BaseModel):
    """A line the customer wants. Prices are never accepted from the client."""

    product_id: str
    variant_id: str | None = None
    quantity: int = Field(ge=1, default=1)


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class CreateOrderRequest(BaseModel):
    owner_id: str | None = None
    guest_email: str | None = None
    guest_phone: str | None = None
    items: list[RequestedItemSchema] | None = None
    use_cart: bool = False
    shipping_address: AddressSchema | None = None
    shipping_address_id: str | None = None
    billing_address: AddressSchema | None = None
    billing_address_id: str | None = None
    payment_method: str
    coupon_code: str | None = None
    notes: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "owner_id": "user-001",
                    "items": [{"product_id": "prod-001", "quantity": 2}],
                    "shipping_address": {
                        "full_name": "Asha Rao",
                        "phone": "9876543210",
                        "address_line1": "12 MG Road",
                        "city": "Bengaluru",
                        "state": "Karnataka",
                        "postal_code": "560001",
                    },
                    "payment_method": "razorpay",
                    "coupon_code": "WELCOME50",
                }
            ]
        }
    }


class VerifyPaymentRequest(BaseModel):
    gateway_order_id: str
    payment_id: str
    signature: str


class RetryPaymentRequest(BaseModel):
    requester_id: str | None = None


class UpdateStatusRequest(BaseModel):
    status: str
    tracking_number: str | None = None
    carrier: str | None = None


class CancelOrderRequest(BaseModel):
    requester_id: str


# ---------------------------------------------------------------------------
# Coupon Request Schemas
# ---------------------------------------------------------------------------
class CreateCouponRequest(BaseModel):
    code: str
    description: str | None = None
    discount_type: str
    discount_value: float = Field(ge=0)
    min_order_amount: float | None = Field(default=None, ge=0)
    max_discount_amount: float | None = Field(default=None, ge=0)
    usage_limit: int | None = Field(default=None, ge=1)
    per_user_limit: int | None = Field(default=None, ge=1)
    product_ids: list[str] = []
    category_ids: list[str] = []
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    is_active: bool = True


class UpdateCouponRequest(BaseModel):
    """Partial update: omitted fields keep their current value."""

    description: str | None = None
    discount_type: str | None = None
    discount_value: float | None = Field(default=None, ge=0)
    min_order_amount: float | None = Field(default=None, ge=0)
    max_discount_amount: float | None = Field(default=None, ge=0)
    usage_limit: int | None = Field(default=None, ge=1)
    per_user_limit: int | None = Field(default=None, ge=1)
    product_ids: list[str] | None = None
    category_ids: list[str] | None = None
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    is_active: bool | None = None


class ValidateCouponRequest(BaseModel):
    code: str
    owner_id: str | None = None
    items: list[RequestedItemSchema]


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class PaymentIntentSchema(BaseModel):
    gateway: str
    gateway_order_id: str
    amount_minor: int
    currency: str
    key_id: str | None = None


class CreateOrderResponse(BaseModel):
    order_id: str
    order_number: str
    total_amount: float
    currency: str
    status: str
    payment: PaymentIntentSchema | None = None


class OrderItemResponse(BaseModel):
    product_id: str
    variant_id: str | None = None
    product_name: str
    variant_name: str | None = None
    sku: str | None = None
    unit_price: float
    quantity: int
    subtotal: float


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    owner_id: str | None = None
    status: str
    payment_status: str
    payment_method: str
    subtotal: float
    discount_amount: float
    shipping_fee: float
    tax_amount: float
    total_amount: float
    currency: str
    coupon_code: str | None = None
    tracking_number: str | None = None
    carrier: str | None = None
    shipping_address_id: str
    billing_address_id: str
    items: list[OrderItemResponse] = []
    created_at: datetime | None = None
    paid_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None


class OrderPageResponse(BaseModel):
    orders: list[OrderResponse]
    total: int
    page: int
    limit: int
    pages: int


class CouponIdResponse(BaseModel):
    coupon_id: str


class AvailableCouponResponse(BaseModel):
    """What a shopper may see about a coupon. Usage counters stay private."""

    code: str
    description: str | None = None
    discount_type: str
    discount_value: float
    min_order_amount: float | None = None
    max_discount_amount: float | None = None
    valid_until: datetime | None = None


class CouponResponse(AvailableCouponResponse):
    coupon_id: str
    usage_limit: int | None = None
    per_user_limit: int | None = None
    used_count: int = 0
    product_ids: list[str] = []
    category_ids: list[str] = []
    valid_from: datetime | None = None
    is_active: bool
    created_at: datetime | None = None


class CouponPreviewResponse(BaseModel):
    valid: bool
    code: str
    discount_amount: float = 0.0
    subtotal: float = 0.0
    reason: str | None = None
    message: str | None = None


class SuccessResponse(BaseModel):
    success: bool = True


class StatusResponse(BaseModel):
    status: str = "ok"
