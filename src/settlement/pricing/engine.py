"""Checkout pricing: pure functions, no I/O beyond the catalog passed in.

    subtotal  = sum(unit_price * quantity)
    shipping  = 0 if subtotal >= free_shipping_threshold else flat_shipping_rate
    tax       = round(taxable * tax_percent / 100)
    total     = max(subtotal - discount + shipping + tax, 0)

``taxable`` is the pre-discount subtotal unless the store settings switch on
``tax_on_discounted_subtotal``. All amounts are rounded half-up to the
currency's minor unit.
"""

from decimal import ROUND_HALF_UP, Decimal

from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, Integer, String

from settlement.catalog.port import Catalog
from settlement.domain import settlement
from settlement.errors import EmptyOrder, UnknownProduct
from settlement.settings.store import StoreSettings

MINOR_UNIT = Decimal("0.01")
ZERO = Decimal("0")


def round_money(value) -> Decimal:
    return Decimal(str(value)).quantize(MINOR_UNIT, rounding=ROUND_HALF_UP)


@settlement.value_object
class LineItem:
    """A catalog-priced line, captured at order time and never re-priced."""

    product_id = Identifier(required=True)
    product_name = String(required=True, max_length=255)
    sku = String(required=True, max_length=100)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    variant_id = Identifier()
    variant_name = String(max_length=255)
    category_id = Identifier()

    @property
    def subtotal(self) -> Decimal:
        return round_money(Decimal(str(self.unit_price)) * self.quantity)


@settlement.value_object
class PriceBreakdown:
    """Order totals in the store currency, rounded to the minor unit."""

    subtotal = Float(default=0.0)
    discount_amount = Float(default=0.0)
    shipping_fee = Float(default=0.0)
    tax_amount = Float(default=0.0)
    total = Float(default=0.0)
    currency = String(max_length=3, default="INR")



def resolve_line_items(requested: list[dict], catalog: Catalog) -> list[LineItem]:
    """Price requested lines against the live catalog.

    ``requested`` is a list of dicts with product_id, quantity and an optional
    variant_id. Any client-supplied price is ignored. A single unknown product
    or variant aborts the whole resolution.
    """
    if not requested:
        raise EmptyOrder()

    lines = []
    for entry in requested:
        product_id = str(entry["product_id"])
        variant_id = str(entry["variant_id"]) if entry.get("variant_id") else None
        quantity = int(entry.get("quantity") or 0)
        if quantity < 1:
            raise ValidationError({"quantity": [f"Quantity for product {product_id} must be at least 1"]})

        product = catalog.find_product(product_id)
        if product is None:
            raise UnknownProduct(product_id)

        variant = None
        if variant_id:
            variant = product.variant(variant_id)
            if variant is None:
                raise UnknownProduct(product_id, variant_id)

        # Variant price wins only when it is set and positive
        if variant is not None and variant.price is not None and variant.price > 0:
            unit_price = variant.price
        else:
            unit_price = product.price

        lines.append(
            LineItem(
                product_id=product_id,
                product_name=product.name,
                sku=(variant.sku if variant is not None and variant.sku else product.sku),
                unit_price=float(round_money(unit_price)),
                quantity=quantity,
                variant_id=variant_id,
                variant_name=variant.name if variant is not None else None,
                category_id=product.category_id,
            )
        )
    return lines


def subtotal_of(lines: list[LineItem]) -> Decimal:
    return round_money(sum((line.subtotal for line in lines), ZERO))


def shipping_fee_for(subtotal: Decimal, settings: StoreSettings) -> Decimal:
    if subtotal >= settings.free_shipping_threshold:
        return ZERO.quantize(MINOR_UNIT)
    return round_money(settings.flat_shipping_rate)


def tax_for(subtotal: Decimal, discount: Decimal, settings: StoreSettings) -> Decimal:
    taxable = subtotal - discount if settings.tax_on_discounted_subtotal else subtotal
    return round_money(max(taxable, ZERO) * settings.tax_percent / 100)


def price_order(lines: list[LineItem], settings: StoreSettings, coupon_evaluation=None) -> PriceBreakdown:
    """Compute the full price breakdown for a set of resolved lines.

    ``coupon_evaluation`` is the result of ``CouponValidator.validate`` (or
    None); only its ``discount_amount`` is used.
    """
    if not lines:
        raise EmptyOrder()

    subtotal = subtotal_of(lines)
    discount = ZERO
    if coupon_evaluation is not None:
        discount = min(round_money(coupon_evaluation.discount_amount), subtotal)

    shipping = shipping_fee_for(subtotal, settings)
    tax = tax_for(subtotal, discount, settings)
    total = max(subtotal - discount + shipping + tax, ZERO)

    return PriceBreakdown(
        subtotal=float(subtotal),
        discount_amount=float(round_money(discount)),
        shipping_fee=float(shipping),
        tax_amount=float(tax),
        total=float(round_money(total)),
        currency=settings.currency,
    )
