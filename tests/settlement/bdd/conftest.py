"""Shared BDD fixtures and step definitions for checkout and payment settlement."""

from decimal import Decimal

import pytest
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then
from settlement.checkout.service import OrderService
from settlement.errors import CouponRejected, PaymentVerificationFailed, UnknownProduct
from settlement.order.order import Order
from settlement.settings import StaticSettingsProvider, StoreSettings, set_settings_provider


@pytest.fixture()
def service():
    return OrderService()


@pytest.fixture()
def checkout():
    """Container for the latest checkout outcome (result or captured error)."""
    return {"result": None, "error": None}


def _current_order(checkout):
    assert checkout["result"] is not None, f"No order was placed: {checkout['error']!r}"
    return current_domain.repository_for(Order).get(checkout["result"].order_id)


@pytest.fixture()
def attempt(checkout):
    """Run a checkout action, capturing the rejection instead of raising it."""

    def _attempt(action):
        try:
            checkout["result"] = action()
            checkout["error"] = None
        except (ValidationError, PaymentVerificationFailed) as exc:
            checkout["error"] = exc

    return _attempt


@pytest.fixture()
def current_order(checkout):
    return lambda: _current_order(checkout)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse(
        "the store ships free from {threshold:d} with a flat rate of {rate:d} and charges {tax:d}% tax"
    )
)
def _(threshold, rate, tax):
    set_settings_provider(
        StaticSettingsProvider(
            StoreSettings(
                free_shipping_threshold=Decimal(threshold),
                flat_shipping_rate=Decimal(rate),
                tax_percent=Decimal(tax),
            )
        )
    )


@given(parsers.cfparse('the catalog lists "{product_id}" at {price:d}'))
def _(adapters, product_id, price):
    adapters.catalog.add_product(product_id, name=product_id.title(), sku=product_id.upper(), price=price)


@given(parsers.cfparse('customer "{owner_id}" has {quantity:d} of "{product_id}" in their cart'))
def _(adapters, owner_id, quantity, product_id):
    adapters.cart.add_item(owner_id, product_id, quantity=quantity)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def _(checkout, status):
    assert _current_order(checkout).status == status


@then(parsers.cfparse('the payment status is "{status}"'))
def _(checkout, status):
    assert _current_order(checkout).payment_status == status


@then(parsers.cfparse('the checkout is rejected because "{reason}"'))
def _(checkout, reason):
    assert isinstance(checkout["error"], CouponRejected)
    assert checkout["error"].reason.value == reason


@then("the checkout is rejected as an unknown product")
def _(checkout):
    assert isinstance(checkout["error"], UnknownProduct)


@then("no order was saved")
def _():
    assert current_domain.repository_for(Order).list_orders() == []


@then(parsers.cfparse("{count:d} order was saved"))
def _(count):
    assert len(current_domain.repository_for(Order).list_orders()) == count
