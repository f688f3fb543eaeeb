"""Order placement: command and handler.

Everything that can reject a checkout (addresses, line items, coupon) is
checked before the first write. The writes that follow (new addresses, the
order with its items, the coupon redemption and its usage row) share the
command's unit of work and commit or roll back together.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from settlement.address.resolution import AddressResolver, clean_candidate
from settlement.catalog import get_catalog
from settlement.coupon.redemption import redeem_coupon
from settlement.coupon.validation import CouponValidator
from settlement.domain import settlement
from settlement.errors import InvalidAddress
from settlement.gateway import get_gateway
from settlement.order.numbering import allocate_order_number
from settlement.order.order import Order
from settlement.pricing.engine import price_order, resolve_line_items, subtotal_of
from settlement.settings import get_settings_provider

logger = structlog.get_logger(__name__)


@settlement.command(part_of="Order")
class PlaceOrder:
    owner_id = Identifier()
    guest_email = String(max_length=255)
    guest_phone = String(max_length=20)
    shipping_address = Text()  # JSON: address dict
    shipping_address_id = Identifier()
    billing_address = Text()  # JSON: address dict, defaults to shipping
    billing_address_id = Identifier()
    items = Text(required=True)  # JSON: list of {product_id, variant_id, quantity}
    payment_method = String(required=True, max_length=50)
    coupon_code = String(max_length=50)
    notes = Text()


def _load(payload):
    if not payload:
        return None
    return json.loads(payload) if isinstance(payload, str) else payload


@settlement.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        owner_id = command.owner_id
        if not owner_id and not (command.guest_email or command.guest_phone):
            raise ValidationError({"guest_email": ["Guest orders need a contact email or phone"]})

        gateway = get_gateway(command.payment_method)
        resolver = AddressResolver()

        # Validate both addresses before anything is written
        shipping = _load(command.shipping_address)
        billing = _load(command.billing_address)
        if shipping is None and not command.shipping_address_id:
            raise InvalidAddress({"shipping_address": ["Shipping address is required"]})
        shipping_id = resolver.resolve_saved(owner_id, command.shipping_address_id) if shipping is None else None
        if shipping is not None:
            clean_candidate(shipping)

        billing_id = None
        if billing is not None:
            clean_candidate(billing)
        elif command.billing_address_id:
            billing_id = resolver.resolve_saved(owner_id, command.billing_address_id)

        lines = resolve_line_items(_load(command.items) or [], get_catalog())

        evaluation = None
        if command.coupon_code:
            evaluation = CouponValidator().validate(
                command.coupon_code,
                subtotal_of(lines),
                user_id=owner_id,
                line_items=lines,
            )

        pricing = price_order(lines, get_settings_provider().get_settings(), evaluation)

        # Writes start here
        if shipping is not None:
            shipping_id = resolver.resolve(owner_id, shipping)
        if billing is not None:
            billing_id = resolver.resolve(owner_id, billing)

        repo = current_domain.repository_for(Order)
        order = Order.place(
            order_number=allocate_order_number(repo),
            shipping_address_id=shipping_id,
            billing_address_id=billing_id or shipping_id,
            lines=lines,
            pricing=pricing,
            payment_method=command.payment_method.lower(),
            requires_confirmation=gateway.requires_confirmation,
            owner_id=owner_id,
            guest_email=command.guest_email,
            guest_phone=command.guest_phone,
            coupon_code=evaluation.code if evaluation else None,
            notes=command.notes,
        )
        repo.add(order)

        if evaluation is not None:
            redeem_coupon(evaluation.coupon, order.id, owner_id, evaluation.discount_amount)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order.order_number,
            status=order.status,
            total=order.total_amount,
            coupon=order.coupon_code,
        )
        return str(order.id)
