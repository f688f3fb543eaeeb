"""BDD tests for payment confirmation."""

from pytest_bdd import parsers, scenarios, then, when
from settlement.errors import PaymentVerificationFailed

scenarios("features/payment_settlement.feature")


@when(parsers.cfparse('customer "{owner_id}" checks out their cart with the payment gateway'))
def _(service, attempt, shipping_address, owner_id):
    attempt(
        lambda: service.create_order(
            payment_method="razorpay",
            owner_id=owner_id,
            use_cart=True,
            shipping_address=shipping_address,
        )
    )


@when(parsers.cfparse('the gateway confirms the payment "{payment_id}" with a valid signature'))
def _(service, adapters, checkout, payment_id):
    gateway_order_id = checkout["result"].payment.gateway_order_id
    signature = adapters.gateway.sign_payment(gateway_order_id, payment_id)
    service.verify_payment(gateway_order_id, payment_id, signature)


@when(parsers.cfparse('a callback for payment "{payment_id}" arrives with signature "{signature}"'))
def _(service, checkout, payment_id, signature):
    try:
        service.verify_payment(checkout["result"].payment.gateway_order_id, payment_id, signature)
    except PaymentVerificationFailed as exc:
        checkout["error"] = exc


@then("the payment verification fails")
def _(checkout):
    assert isinstance(checkout["error"], PaymentVerificationFailed)


@then(parsers.re(r'the cart of "(?P<owner_id>[^"]+)" was cleared (?P<count>\d+) times?'))
def _(adapters, owner_id, count):
    assert adapters.cart.clear_calls.count(owner_id) == int(count)
