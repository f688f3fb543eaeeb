"""Coupon administration: commands and handler."""

import json

from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Boolean, DateTime, Float, Integer, String, Text
from protean.utils.globals import current_domain

from settlement.coupon.coupon import Coupon, DiscountType, normalize_code
from settlement.domain import settlement


@settlement.command(part_of="Coupon")
class CreateCoupon:
    """Make a new coupon code available."""

    code = String(required=True, max_length=50)
    description = String(max_length=500)
    discount_type = String(required=True, choices=DiscountType)
    discount_value = Float(required=True, min_value=0.0)
    min_order_amount = Float()
    max_discount_amount = Float()
    usage_limit = Integer()
    per_user_limit = Integer()
    product_ids = Text()  # JSON array
    category_ids = Text()  # JSON array
    valid_from = DateTime()
    valid_until = DateTime()
    is_active = Boolean(default=True)


@settlement.command(part_of="Coupon")
class UpdateCoupon:
    """Change a coupon's terms. Unset fields keep their current value."""

    code = String(required=True, max_length=50)
    description = String(max_length=500)
    discount_type = String(choices=DiscountType)
    discount_value = Float(min_value=0.0)
    min_order_amount = Float()
    max_discount_amount = Float()
    usage_limit = Integer()
    per_user_limit = Integer()
    product_ids = Text()  # JSON array
    category_ids = Text()  # JSON array
    valid_from = DateTime()
    valid_until = DateTime()
    is_active = Boolean()


@settlement.command(part_of="Coupon")
class DeactivateCoupon:
    code = String(required=True, max_length=50)


def _existing(repo, code) -> Coupon:
    coupon = repo.find_by_code(code)
    if coupon is None:
        raise ObjectNotFoundError(f"Coupon {normalize_code(code)} does not exist")
    return coupon


@settlement.command_handler(part_of=Coupon)
class ManageCouponsHandler:
    @handle(CreateCoupon)
    def create_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        if repo.find_by_code(command.code) is not None:
            raise ValidationError({"code": [f"Coupon code {normalize_code(command.code)} already exists"]})

        coupon = Coupon.create(
            code=command.code,
            discount_type=command.discount_type,
            discount_value=command.discount_value,
            description=command.description,
            min_order_amount=command.min_order_amount,
            max_discount_amount=command.max_discount_amount,
            usage_limit=command.usage_limit,
            per_user_limit=command.per_user_limit,
            product_ids=json.loads(command.product_ids) if command.product_ids else None,
            category_ids=json.loads(command.category_ids) if command.category_ids else None,
            valid_from=command.valid_from,
            valid_until=command.valid_until,
            is_active=command.is_active if command.is_active is not None else True,
        )
        repo.add(coupon)
        return str(coupon.id)

    @handle(UpdateCoupon)
    def update_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        coupon = _existing(repo, command.code)
        coupon.update_terms(
            description=command.description,
            discount_type=command.discount_type,
            discount_value=command.discount_value,
            min_order_amount=command.min_order_amount,
            max_discount_amount=command.max_discount_amount,
            usage_limit=command.usage_limit,
            per_user_limit=command.per_user_limit,
            product_ids=json.loads(command.product_ids) if command.product_ids else None,
            category_ids=json.loads(command.category_ids) if command.category_ids else None,
            valid_from=command.valid_from,
            valid_until=command.valid_until,
            is_active=command.is_active,
        )
        repo.add(coupon)

    @handle(DeactivateCoupon)
    def deactivate_coupon(self, command):
        repo = current_domain.repository_for(Coupon)
        coupon = _existing(repo, command.code)
        coupon.deactivate()
        repo.add(coupon)
