"""Coupon aggregate and the append-only CouponUsage record.

A coupon's ``used_count`` only ever moves through ``redeem()``, which runs in
the same unit of work that persists the order it was applied to. Coupon is a
versioned aggregate, so two checkouts that loaded the same version cannot
both commit an increment.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from settlement.coupon.events import CouponCreated, CouponDeactivated, CouponRedeemed, CouponUpdated
from settlement.domain import settlement
from settlement.errors import CouponRejected, RejectionReason


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC so validity windows compare consistently."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@settlement.aggregate
class Coupon:
    code = String(required=True, max_length=50, unique=True)
    description = String(max_length=500)
    discount_type = String(required=True, choices=DiscountType)
    discount_value = Float(required=True, min_value=0.0)
    min_order_amount = Float(min_value=0.0)
    max_discount_amount = Float(min_value=0.0)
    usage_limit = Integer(min_value=1)
    per_user_limit = Integer(min_value=1)
    product_ids = Text()  # JSON array of product ids
    category_ids = Text()  # JSON array of category ids
    valid_from = DateTime()
    valid_until = DateTime()
    is_active = Boolean(default=True)
    used_count = Integer(default=0)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def percentage_cannot_exceed_hundred(self):
        if self.discount_type == DiscountType.PERCENTAGE.value and (self.discount_value or 0) > 100:
            raise ValidationError({"discount_value": ["Percentage discount cannot exceed 100"]})

    @invariant.post
    def validity_window_must_be_ordered(self):
        if self.valid_from and self.valid_until and as_utc(self.valid_from) > as_utc(self.valid_until):
            raise ValidationError({"valid_until": ["Coupon cannot expire before it becomes valid"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        code,
        discount_type,
        discount_value,
        description=None,
        min_order_amount=None,
        max_discount_amount=None,
        usage_limit=None,
        per_user_limit=None,
        product_ids=None,
        category_ids=None,
        valid_from=None,
        valid_until=None,
        is_active=True,
    ):
        now = datetime.now(UTC)
        coupon = cls(
            code=normalize_code(code),
            description=description,
            discount_type=discount_type,
            discount_value=discount_value,
            min_order_amount=min_order_amount,
            max_discount_amount=max_discount_amount,
            usage_limit=usage_limit,
            per_user_limit=per_user_limit,
            product_ids=json.dumps([str(p) for p in (product_ids or [])]),
            category_ids=json.dumps([str(c) for c in (category_ids or [])]),
            valid_from=valid_from,
            valid_until=valid_until,
            is_active=is_active,
            used_count=0,
            created_at=now,
        )
        coupon.raise_(
            CouponCreated(
                coupon_id=str(coupon.id),
                code=coupon.code,
                discount_type=coupon.discount_type,
                discount_value=coupon.discount_value,
                created_at=now,
            )
        )
        return coupon

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def allowed_product_ids(self) -> list[str]:
        return json.loads(self.product_ids) if self.product_ids else []

    @property
    def allowed_category_ids(self) -> list[str]:
        return json.loads(self.category_ids) if self.category_ids else []

    @property
    def is_restricted(self) -> bool:
        return bool(self.allowed_product_ids or self.allowed_category_ids)

    def is_exhausted(self) -> bool:
        return self.usage_limit is not None and (self.used_count or 0) >= self.usage_limit

    # -------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------
    def redeem(self, order_id, user_id, discount_amount):
        """Count one redemption against this coupon for a committed order."""
        if self.is_exhausted():
            raise CouponRejected(self.code, RejectionReason.USAGE_LIMIT_REACHED)

        self.used_count = (self.used_count or 0) + 1
        self.raise_(
            CouponRedeemed(
                coupon_id=str(self.id),
                code=self.code,
                order_id=str(order_id),
                user_id=str(user_id) if user_id else None,
                discount_amount=float(discount_amount),
                used_count=self.used_count,
                redeemed_at=datetime.now(UTC),
            )
        )

    def update_terms(
        self,
        description=None,
        discount_type=None,
        discount_value=None,
        min_order_amount=None,
        max_discount_amount=None,
        usage_limit=None,
        per_user_limit=None,
        product_ids=None,
        category_ids=None,
        valid_from=None,
        valid_until=None,
        is_active=None,
    ):
        """Change the given terms. Arguments left as None keep their current value.

        The code itself and ``used_count`` never change here. Lowering
        ``usage_limit`` below ``used_count`` is allowed and simply exhausts
        the coupon.
        """
        changes = {
            "description": description,
            "discount_type": discount_type,
            "discount_value": discount_value,
            "min_order_amount": min_order_amount,
            "max_discount_amount": max_discount_amount,
            "usage_limit": usage_limit,
            "per_user_limit": per_user_limit,
            "valid_from": valid_from,
            "valid_until": valid_until,
            "is_active": is_active,
        }
        # Invariants see the new terms together, not one field at a time
        with atomic_change(self):
            for field_name, value in changes.items():
                if value is not None:
                    setattr(self, field_name, value)
            if product_ids is not None:
                self.product_ids = json.dumps([str(p) for p in product_ids])
            if category_ids is not None:
                self.category_ids = json.dumps([str(c) for c in category_ids])

        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(
            CouponUpdated(
                coupon_id=str(self.id),
                code=self.code,
                discount_type=self.discount_type,
                discount_value=self.discount_value,
                is_active=self.is_active,
                updated_at=now,
            )
        )

    def deactivate(self):
        if not self.is_active:
            return
        self.is_active = False
        self.raise_(
            CouponDeactivated(
                coupon_id=str(self.id),
                code=self.code,
                deactivated_at=datetime.now(UTC),
            )
        )


@settlement.aggregate
class CouponUsage:
    """One successful redemption of a coupon by one order. Never updated or deleted."""

    coupon_id = Identifier(required=True)
    user_id = Identifier()  # Null for guest checkouts
    order_id = Identifier(required=True, unique=True)
    discount_amount = Float(required=True, min_value=0.0)
    used_at = DateTime()


@settlement.repository(part_of=Coupon)
class CouponRepository:
    def find_by_code(self, code: str) -> Coupon | None:
        results = self._dao.query.filter(code=normalize_code(code)).all().items
        return results[0] if results else None

    def list_all(self) -> list[Coupon]:
        """Every coupon, newest first."""
        return sorted(self._dao.query.all().items, key=lambda c: c.created_at, reverse=True)

    def list_available(self, now: datetime | None = None) -> list[Coupon]:
        """Coupons a customer could apply right now: active, inside their window, not used up."""
        now = now or datetime.now(UTC)
        return [
            coupon
            for coupon in self.list_all()
            if coupon.is_active
            and not coupon.is_exhausted()
            and (coupon.valid_from is None or as_utc(coupon.valid_from) <= now)
            and (coupon.valid_until is None or as_utc(coupon.valid_until) >= now)
        ]


@settlement.repository(part_of=CouponUsage)
class CouponUsageRepository:
    def count_for_user(self, coupon_id: str, user_id: str) -> int:
        return len(self._dao.query.filter(coupon_id=str(coupon_id), user_id=str(user_id)).all().items)

    def find_for_order(self, order_id: str) -> CouponUsage | None:
        results = self._dao.query.filter(order_id=str(order_id)).all().items
        return results[0] if results else None
