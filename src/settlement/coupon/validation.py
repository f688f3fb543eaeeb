"""Coupon eligibility evaluation.

Checks run in a fixed order and stop at the first failure:

    1. exists and active          -> not_found
    2. inside validity window     -> not_yet_active / expired
    3. total usage limit          -> usage_limit_reached
    4. per-user usage limit       -> per_user_limit_reached (guests always pass)
    5. minimum order amount       -> minimum_not_met
    6. product/category allow-list -> not_applicable

Validation never records usage; redemption happens when the order commits.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal

import structlog
from protean.utils.globals import current_domain

from settlement.coupon.coupon import Coupon, CouponUsage, DiscountType, as_utc
from settlement.errors import CouponRejected, RejectionReason
from settlement.pricing.engine import LineItem, round_money

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CouponEvaluation:
    coupon: Coupon
    discount_amount: Decimal

    @property
    def code(self) -> str:
        return self.coupon.code


def compute_discount(coupon: Coupon, order_subtotal: Decimal) -> Decimal:
    """Discount for ``order_subtotal``, capped and never larger than the subtotal."""
    subtotal = Decimal(str(order_subtotal))
    value = Decimal(str(coupon.discount_value or 0))

    if coupon.discount_type == DiscountType.PERCENTAGE.value:
        discount = subtotal * value / 100
        if coupon.max_discount_amount:
            discount = min(discount, Decimal(str(coupon.max_discount_amount)))
    else:
        discount = value

    return round_money(min(discount, subtotal))


def _applies_to(coupon: Coupon, line_items: list[LineItem]) -> bool:
    product_ids = set(coupon.allowed_product_ids)
    category_ids = set(coupon.allowed_category_ids)
    for line in line_items:
        if str(line.product_id) in product_ids:
            return True
        if line.category_id is not None and str(line.category_id) in category_ids:
            return True
    return False


class CouponValidator:
    """Evaluates a coupon code against an order. Must run inside a domain context."""

    def __init__(self, clock=None):
        self._clock = clock or (lambda: datetime.now(UTC))

    def validate(self, code, order_subtotal, user_id=None, line_items=None) -> CouponEvaluation:
        coupon = current_domain.repository_for(Coupon).find_by_code(code)
        return self.evaluate(coupon, code, order_subtotal, user_id, line_items or [])

    def evaluate(self, coupon, code, order_subtotal, user_id, line_items) -> CouponEvaluation:
        if coupon is None or not coupon.is_active:
            raise CouponRejected(code, RejectionReason.NOT_FOUND)

        now = self._clock()
        if coupon.valid_from and as_utc(coupon.valid_from) > now:
            raise CouponRejected(code, RejectionReason.NOT_YET_ACTIVE)
        if coupon.valid_until and as_utc(coupon.valid_until) < now:
            raise CouponRejected(code, RejectionReason.EXPIRED)

        if coupon.is_exhausted():
            raise CouponRejected(code, RejectionReason.USAGE_LIMIT_REACHED)

        if coupon.per_user_limit and user_id:
            prior = current_domain.repository_for(CouponUsage).count_for_user(coupon.id, user_id)
            if prior >= coupon.per_user_limit:
                raise CouponRejected(code, RejectionReason.PER_USER_LIMIT_REACHED)

        subtotal = Decimal(str(order_subtotal))
        if coupon.min_order_amount and subtotal < Decimal(str(coupon.min_order_amount)):
            raise CouponRejected(code, RejectionReason.MINIMUM_NOT_MET)

        if coupon.is_restricted and not _applies_to(coupon, line_items):
            raise CouponRejected(code, RejectionReason.NOT_APPLICABLE)

        discount = compute_discount(coupon, subtotal)
        logger.debug(
            "Coupon accepted",
            code=coupon.code,
            subtotal=str(subtotal),
            discount=str(discount),
        )
        return CouponEvaluation(coupon=coupon, discount_amount=discount)
