"""Application tests for OrderService.create_order."""

import pytest
from protean import current_domain
from protean.exceptions import ValidationError
from settlement.address.address import Address
from settlement.checkout.service import OrderService
from settlement.coupon.coupon import Coupon, CouponUsage
from settlement.coupon.management import CreateCoupon
from settlement.errors import (
    CouponRejected,
    EmptyOrder,
    InvalidAddress,
    PaymentGatewayError,
    PersistenceFailure,
    RejectionReason,
    UnknownProduct,
)
from settlement.order.order import Order, OrderStatus, PaymentStatus


@pytest.fixture()
def service():
    return OrderService()


def _orders():
    return current_domain.repository_for(Order).list_orders()


def _create_coupon(**overrides):
    defaults = {"code": "WELCOME50", "discount_type": "fixed", "discount_value": 50.0, "min_order_amount": 200.0}
    defaults.update(overrides)
    return current_domain.process(CreateCoupon(**defaults), asynchronous=False)


class TestCashOnDeliveryCheckout:
    def test_creates_pending_order(self, service, shipping_address):
        result = service.create_order(
            payment_method="cod",
            owner_id="user-1",
            items=[{"product_id": "prod-tee", "quantity": 2}],
            shipping_address=shipping_address,
        )
        assert result.status == OrderStatus.PENDING.value
        assert result.total_amount == 1180.0
        assert result.currency == "INR"
        assert result.payment is None

    def test_persists_order_with_items(self, service, shipping_address):
        result = service.create_order(
            payment_method="cod",
            owner_id="user-1",
            items=[{"product_id": "prod-tee", "quantity": 2}, {"product_id": "prod-mug", "quantity": 1}],
            shipping_address=shipping_address,
        )
        order = current_domain.repository_for(Order).get(result.order_id)
        assert order.order_number == result.order_number
        assert len(order.items) == 2
        assert order.subtotal == 1150.0

    def test_billing_defaults_to_shipping(self, service, shipping_address):
        result = service.create_order(
            payment_method="cod",
            owner_id="user-1",
            items=[{"product_id": "prod-mug", "quantity": 1}],
            shipping_address=shipping_address,
        )
        order = service.get_order(result.order_id)
        assert order.billing_address_id == order.shipping_address_id

    def test_separate_billing_address(self, service, shipping_address):
        billing = {**shipping_address, "address_line1": "1 Office Park", "address_type": "work"}
        result = service.create_order(
            payment_method="cod",
            owner_id="user-1",
            items=[{"product_id": "prod-mug", "quantity": 1}],
            shipping_address=shipping_address,
            billing_address=billing,
        )
        order = service.get_order(result.order_id)
        assert order.billing_address_id != order.shipping_address_id

    def test_repeat_checkout_reuses_address(self, service, shipping_address):
        first = service.create_order(
            payment_method="cod",
            owner_id="user-1",
            items=[{"product_id": "prod-mug", "quantity": 1}],
            shipping_address=shipping_address,
        )
        second = service.create_order(
            payment_method="cod",
            owner_id="user-1",
            items=[{"product_id": "prod-book", "quantity": 1}],
            shipping_address=dict(shipping_address),
        )
        assert service.get_order(first.order_id).shipping_address_id == (
            service.get_order(second.order_id).shipping_address_id
        )

    def test_saved_address_id(self, service, shipping_address):
        first = service.create_order(
            payment_method="cod",
            owner_id="user-1",
            items=[{"product_id": "prod-mug", "quantity": 1}],
            shipping_address=shipping_address,
        )
        address_id = service.get_order(first.order_id).shipping_address_id

        second = service.create_order(
            payment_method="cod",
            owner_id="user-1",
            items=[{"product_id": "prod-mug", "quantity": 1}],
            shipping_address_id=address_id,
        )
        assert service.get_order(second.order_id).shipping_address_id == address_id

    def test_clears_cart_and_notifies(self, service, adapters, shipping_address):
        adapters.cart.add_item("user-1", "prod-mug", quantity=1)
        service.create_order(payment_method="cod", owner_id="user-1", use_cart=True, shipping_address=shipping_address)

        assert adapters.cart.clear_calls == ["user-1"]
        assert [n["kind"] for n in adapters.notifier.sent] == ["order_created"]

    def test_uses_cart_when_items_omitted(self, service, adapters, shipping_address):
        adapters.cart.add_item("user-1", "prod-tee", quantity=1, variant_id="var-tee-xl")
        result = service.create_order(payment_method="cod", owner_id="user-1", shipping_address=shipping_address)

        order = service.get_order(result.order_id)
        assert order.items[0].unit_price == 550.0

    def test_notification_failure_does_not_fail_checkout(self, service, adapters, shipping_address):
        adapters.notifier.configure(should_succeed=False)
        result = service.create_order(
            payment_method="cod",
            owner_id="user-1",
            items=[{"product_id": "prod-mug", "quantity": 1}],
            shipping_address=shipping_address,
        )
        assert service.get_order(result.order_id).status == OrderStatus.PENDING.value

    def test_guest_checkout(self, service, shipping_address):
        result = service.create_order(
            payment_method="cod",
            guest_email="guest@example.com",
            items=[{"product_id": "prod-mug", "quantity": 1}],
            shipping_address=shipping_address,
        )
        order = service.get_order(result.order_id)
        assert order.owner_id is None
        assert order.guest_email == "guest@example.com"

    def test_guest_needs_contact(self, service, shipping_address):
        with pytest.raises(ValidationError):
            service.create_order(
                payment_method="cod",
                items=[{"product_id": "prod-mug", "quantity": 1}],
                shipping_address=shipping_address,
            )

    def test_order_numbers_are_unique(self, service, shipping_address):
        numbers = {
            service.create_order(
                payment_method="cod",
                owner_id="user-1",
                items=[{"product_id": "prod-mug", "quantity": 1}],
                shipping_address=shipping_address,
            ).order_number
            for _ in range(5)
        }
        assert len(numbers) == 5


class TestRejectedCheckout:
    def test_unknown_product_persists_nothing(self, service, shipping_address):
        with pytest.raises(UnknownProduct):
            service.create_order(
                payment_method="cod",
                owner_id="user-1",
                items=[{"product_id": "prod-mug", "quantity": 1}, {"product_id": "prod-ghost", "quantity": 1}],
                shipping_address=shipping_address,
            )
        assert _orders() == []
        assert current_domain.repository_for(Address).find_for_owner("user-1") == []

    def test_invalid_address_persists_nothing(self, service, adapters, shipping_address):
        with pytest.raises(InvalidAddress):
            service.create_order(
                payment_method="razorpay",
                owner_id="user-1",
                items=[{"product_id": "prod-mug", "quantity": 1}],
                shipping_address={**shipping_address, "full_name": ""},
            )
        assert _orders() == []
        assert adapters.gateway.calls == []

    def test_missing_address(self, service):
        with pytest.raises(InvalidAddress):
            service.create_order(payment_method="cod", owner_id="user-1", items=[{"product_id": "prod-mug"}])

    def test_empty_cart(self, service, shipping_address):
        with pytest.raises(EmptyOrder):
            service.create_order(payment_method="cod", owner_id="user-1", shipping_address=shipping_address)

    def test_explicit_empty_items_do_not_fall_back_to_cart(self, service, adapters, shipping_address):
        adapters.cart.add_item("user-1", "prod-mug", quantity=1)
        with pytest.raises(EmptyOrder):
            service.create_order(payment_method="cod", owner_id="user-1", items=[], shipping_address=shipping_address)
        assert _orders() == []

    def test_use_cart_overrides_empty_items(self, service, adapters, shipping_address):
        adapters.cart.add_item("user-1", "prod-mug", quantity=1)
        result = service.create_order(
            payment_method="cod", owner_id="user-1", items=[], use_cart=True, shipping_address=shipping_address
        )
        assert service.get_order(result.order_id).subtotal == 150.0

    def test_unsupported_payment_method(self, service, shipping_address):
        with pytest.raises(ValidationError):
            service.create_order(
                payment_method="barter",
                owner_id="user-1",
                items=[{"product_id": "prod-mug", "quantity": 1}],
                shipping_address=shipping_address,
            )

    def test_cart_untouched_on_failure(self, service, adapters, shipping_address):
        adapters.cart.add_item("user-1", "prod-ghost", quantity=1)
        with pytest.raises(UnknownProduct):
            service.create_order(payment_method="cod", owner_id="user-1", shipping_address=shipping_address)
        assert adapters.cart.clear_calls == []


class TestCouponCheckout:
    def test_fixed_coupon_applied(self, service, shipping_address):
        _create_coupon()
        result = service.create_order(
            payment_method="cod",
            owner_id="user-1",
            items=[{"product_id": "prod-book", "quantity": 1}],
            shipping_address=shipping_address,
            coupon_code="welcome50",
        )
        order = service.get_order(result.order_id)
        assert order.discount_amount == 50.0
        assert order.total_amount == 354.0
        assert order.coupon_code == "WELCOME50"

    def test_usage_recorded_with_order(self, service, shipping_address):
        coupon_id = _create_coupon()
        result = service.create_order(
            payment_method="cod",
            owner_id="user-1",
            items=[{"product_id": "prod-book", "quantity": 1}],
            shipping_address=shipping_address,
            coupon_code="WELCOME50",
        )
        usage = current_domain.repository_for(CouponUsage).find_for_order(result.order_id)
        assert usage is not None
        assert str(usage.coupon_id) == coupon_id
        assert current_domain.repository_for(Coupon).get(coupon_id).used_count == 1

    def test_rejected_coupon_aborts_checkout(self, service, shipping_address):
        _create_coupon()
        with pytest.raises(CouponRejected) as exc:
            service.create_order(
                payment_method="cod",
                owner_id="user-1",
                items=[{"product_id": "prod-mug", "quantity": 1}],
                shipping_address=shipping_address,
                coupon_code="WELCOME50",
            )
        assert exc.value.reason == RejectionReason.MINIMUM_NOT_MET
        assert _orders() == []

    def test_single_use_coupon_redeemed_once(self, service, shipping_address):
        _create_coupon(usage_limit=1)
        checkout = {
            "payment_method": "cod",
            "items": [{"product_id": "prod-book", "quantity": 1}],
            "shipping_address": shipping_address,
            "coupon_code": "WELCOME50",
        }
        service.create_order(owner_id="user-1", **checkout)

        with pytest.raises(CouponRejected) as exc:
            service.create_order(owner_id="user-2", **checkout)
        assert exc.value.reason == RejectionReason.USAGE_LIMIT_REACHED
        assert len(_orders()) == 1

    def test_per_user_limit_across_orders(self, service, shipping_address):
        _create_coupon(per_user_limit=1)
        checkout = {
            "payment_method": "cod",
            "owner_id": "user-1",
            "items": [{"product_id": "prod-book", "quantity": 1}],
            "shipping_address": shipping_address,
            "coupon_code": "WELCOME50",
        }
        service.create_order(**checkout)
        with pytest.raises(CouponRejected) as exc:
            service.create_order(**checkout)
        assert exc.value.reason == RejectionReason.PER_USER_LIMIT_REACHED


class TestGatewayCheckout:
    def test_returns_payment_intent(self, service, adapters, shipping_address):
        result = service.create_order(
            payment_method="razorpay",
            owner_id="user-1",
            items=[{"product_id": "prod-tee", "quantity": 2}],
            shipping_address=shipping_address,
        )
        assert result.status == OrderStatus.PENDING_PAYMENT.value
        assert result.payment.amount_minor == 118000
        assert result.payment.currency == "INR"
        assert result.payment.key_id == adapters.gateway.key_id
        assert adapters.gateway.calls[0]["receipt"] == result.order_number

    def test_records_gateway_order_id(self, service, shipping_address):
        result = service.create_order(
            payment_method="razorpay",
            owner_id="user-1",
            items=[{"product_id": "prod-mug", "quantity": 1}],
            shipping_address=shipping_address,
        )
        order = service.get_order(result.order_id)
        assert order.gateway_order_id == result.payment.gateway_order_id
        assert order.payment_status == PaymentStatus.PENDING.value

    def test_cart_kept_until_payment(self, service, adapters, shipping_address):
        adapters.cart.add_item("user-1", "prod-mug", quantity=1)
        service.create_order(payment_method="razorpay", owner_id="user-1", shipping_address=shipping_address)
        assert adapters.cart.clear_calls == []

    def test_gateway_failure_leaves_order_retryable(self, service, adapters, shipping_address):
        adapters.gateway.configure(should_succeed=False, failure_reason="Gateway timeout")
        with pytest.raises(PaymentGatewayError) as exc:
            service.create_order(
                payment_method="razorpay",
                owner_id="user-1",
                items=[{"product_id": "prod-mug", "quantity": 1}],
                shipping_address=shipping_address,
            )

        order = service.get_order(exc.value.order_id)
        assert order.status == OrderStatus.PENDING_PAYMENT.value
        assert order.gateway_order_id is None

        adapters.gateway.configure(should_succeed=True)
        retried = service.retry_payment_intent(order.id, requester_id="user-1")
        assert retried.payment is not None
        assert service.get_order(order.id).gateway_order_id == retried.payment.gateway_order_id


def _serve_stale_coupons(monkeypatch, *stale):
    """Make coupon lookups return copies loaded before a competing checkout committed."""
    repo_cls = type(current_domain.repository_for(Coupon))
    original = repo_cls.find_by_code
    pending = list(stale)

    def find_by_code(self, code):
        return pending.pop(0) if pending else original(self, code)

    monkeypatch.setattr(repo_cls, "find_by_code", find_by_code)


class TestConcurrentRedemption:
    @pytest.fixture()
    def checkout(self, shipping_address):
        return {
            "payment_method": "cod",
            "items": [{"product_id": "prod-book", "quantity": 1}],
            "shipping_address": shipping_address,
            "coupon_code": "WELCOME50",
        }

    def test_losing_checkout_is_retried_and_rejected(self, service, monkeypatch, checkout):
        coupon_id = _create_coupon(usage_limit=1)
        stale = current_domain.repository_for(Coupon).get(coupon_id)

        service.create_order(owner_id="user-1", **checkout)
        _serve_stale_coupons(monkeypatch, stale)

        with pytest.raises(CouponRejected) as exc:
            service.create_order(owner_id="user-2", **checkout)

        assert exc.value.reason == RejectionReason.USAGE_LIMIT_REACHED
        assert current_domain.repository_for(Coupon).get(coupon_id).used_count == 1
        assert current_domain.repository_for(CouponUsage).count_for_user(coupon_id, "user-2") == 0

    def test_second_conflict_is_a_persistence_failure(self, service, monkeypatch, checkout):
        coupon_id = _create_coupon(usage_limit=5)
        repo = current_domain.repository_for(Coupon)
        first_stale, second_stale = repo.get(coupon_id), repo.get(coupon_id)

        service.create_order(owner_id="user-1", **checkout)
        _serve_stale_coupons(monkeypatch, first_stale, second_stale)

        with pytest.raises(PersistenceFailure):
            service.create_order(owner_id="user-2", **checkout)

        assert repo.get(coupon_id).used_count == 1
