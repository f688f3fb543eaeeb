"""Coupon redemption: counts a coupon use and appends its usage row.

Called from inside the order placement unit of work, so the usage row, the
used-count increment and the order itself commit or roll back together.
Redemption is keyed by order id: a second call for the same order is a no-op.
"""

from datetime import UTC, datetime

import structlog
from protean.utils.globals import current_domain

from settlement.coupon.coupon import Coupon, CouponUsage

logger = structlog.get_logger(__name__)


def redeem_coupon(coupon: Coupon, order_id: str, user_id: str | None, discount_amount) -> CouponUsage:
    usage_repo = current_domain.repository_for(CouponUsage)
    existing = usage_repo.find_for_order(order_id)
    if existing is not None:
        logger.info("Coupon already redeemed for order", code=coupon.code, order_id=str(order_id))
        return existing

    coupon.redeem(order_id=order_id, user_id=user_id, discount_amount=discount_amount)
    current_domain.repository_for(Coupon).add(coupon)

    usage = CouponUsage(
        coupon_id=str(coupon.id),
        user_id=str(user_id) if user_id else None,
        order_id=str(order_id),
        discount_amount=float(discount_amount),
        used_at=datetime.now(UTC),
    )
    usage_repo.add(usage)
    return usage
