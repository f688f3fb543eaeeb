"""Domain events for the Coupon aggregate."""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String

from settlement.domain import settlement


@settlement.event(part_of="Coupon")
class CouponCreated:
    """A new coupon code was made available."""

    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)
    discount_type = String(required=True)
    discount_value = Float(required=True)
    created_at = DateTime(required=True)


@settlement.event(part_of="Coupon")
class CouponRedeemed:
    """A coupon was applied to an order that committed successfully."""

    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)
    order_id = Identifier(required=True)
    user_id = Identifier()
    discount_amount = Float(required=True)
    used_count = Integer(required=True)
    redeemed_at = DateTime(required=True)


@settlement.event(part_of="Coupon")
class CouponDeactivated:
    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)
    deactivated_at = DateTime(required=True)


@settlement.event(part_of="Coupon")
class CouponUpdated:
    """A coupon's terms were changed by an administrator."""

    __version__ = 1

    coupon_id = Identifier(required=True)
    code = String(required=True)
    discount_type = String(required=True)
    discount_value = Float(required=True)
    is_active = Boolean()
    updated_at = DateTime(required=True)
