"""Integration tests for the Settlement API endpoints via TestClient."""

import json

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from settlement.api import admin_router, coupon_router, order_router, payment_router, register_exception_handlers


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(order_router)
    app.include_router(admin_router)
    app.include_router(payment_router)
    app.include_router(coupon_router)
    register_exception_handlers(app)
    return TestClient(app)


def _place_order(client, shipping_address, **overrides):
    body = {
        "owner_id": "user-api-1",
        "items": [{"product_id": "prod-tee", "quantity": 2}],
        "shipping_address": shipping_address,
        "payment_method": "cod",
    }
    body.update(overrides)
    return client.post("/orders", json=body)


class TestCreateOrderAPI:
    def test_cod_returns_201(self, client, shipping_address):
        response = _place_order(client, shipping_address)
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "pending"
        assert data["total_amount"] == 1180.0
        assert data["order_number"].startswith("ORD-")
        assert data["payment"] is None

    def test_gateway_order_returns_intent(self, client, shipping_address, adapters):
        response = _place_order(client, shipping_address, payment_method="razorpay")
        assert response.status_code == 201
        payment = response.json()["payment"]
        assert payment["amount_minor"] == 118000
        assert payment["currency"] == "INR"
        assert payment["key_id"] == adapters.gateway.key_id

    def test_unknown_product_returns_400(self, client, shipping_address):
        response = _place_order(client, shipping_address, items=[{"product_id": "prod-ghost", "quantity": 1}])
        assert response.status_code == 400

    def test_invalid_address_returns_400(self, client, shipping_address):
        response = _place_order(client, {**shipping_address, "postal_code": " "})
        assert response.status_code == 400

    def test_rejected_coupon_returns_400(self, client, shipping_address):
        response = _place_order(client, shipping_address, coupon_code="NOPE")
        assert response.status_code == 400

    def test_gateway_failure_returns_502_with_order_id(self, client, shipping_address, adapters):
        adapters.gateway.configure(should_succeed=False)
        response = _place_order(client, shipping_address, payment_method="razorpay")
        assert response.status_code == 502
        order_id = response.json()["order_id"]

        adapters.gateway.configure(should_succeed=True)
        retry = client.post(f"/orders/{order_id}/retry-payment", json={"requester_id": "user-api-1"})
        assert retry.status_code == 200
        assert retry.json()["payment"]["gateway_order_id"].startswith("order_")


class TestVerifyPaymentAPI:
    def test_valid_signature(self, client, shipping_address, adapters):
        placed = _place_order(client, shipping_address, payment_method="razorpay").json()
        gateway_order_id = placed["payment"]["gateway_order_id"]

        response = client.post(
            "/orders/verify-payment",
            json={
                "gateway_order_id": gateway_order_id,
                "payment_id": "pay_api_1",
                "signature": adapters.gateway.sign_payment(gateway_order_id, "pay_api_1"),
            },
        )
        assert response.status_code == 200
        assert response.json() == {"success": True}

        order = client.get(f"/orders/{placed['order_id']}").json()
        assert order["status"] == "processing"
        assert order["payment_status"] == "paid"

    def test_bad_signature_returns_400(self, client, shipping_address):
        placed = _place_order(client, shipping_address, payment_method="razorpay").json()
        response = client.post(
            "/orders/verify-payment",
            json={
                "gateway_order_id": placed["payment"]["gateway_order_id"],
                "payment_id": "pay_api_1",
                "signature": "forged",
            },
        )
        assert response.status_code == 400


class TestWebhookAPI:
    def test_signed_webhook_processed(self, client, shipping_address, adapters):
        placed = _place_order(client, shipping_address, payment_method="razorpay").json()
        body = json.dumps(
            {
                "event": "payment.captured",
                "payload": {
                    "payment": {"entity": {"id": "pay_wh_1", "order_id": placed["payment"]["gateway_order_id"]}}
                },
            }
        )
        response = client.post(
            "/payments/webhook/razorpay",
            content=body,
            headers={"X-Razorpay-Signature": adapters.gateway.sign_webhook(body), "Content-Type": "application/json"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "processed"

    def test_unsigned_webhook_rejected(self, client):
        response = client.post("/payments/webhook/razorpay", content=b"{}")
        assert response.status_code == 400


class TestOrderLifecycleAPI:
    def test_admin_status_update(self, client, shipping_address):
        order_id = _place_order(client, shipping_address).json()["order_id"]
        response = client.put(f"/admin/orders/{order_id}/status", json={"status": "processing"})
        assert response.status_code == 200

        response = client.put(
            f"/admin/orders/{order_id}/status",
            json={"status": "shipped", "tracking_number": "TRK-API", "carrier": "BlueDart"},
        )
        assert response.status_code == 200
        assert client.get(f"/orders/{order_id}").json()["tracking_number"] == "TRK-API"

    def test_invalid_transition_returns_409(self, client, shipping_address):
        order_id = _place_order(client, shipping_address).json()["order_id"]
        response = client.put(f"/admin/orders/{order_id}/status", json={"status": "delivered"})
        assert response.status_code == 409
        assert response.json()["current_status"] == "pending"

    def test_cancel_by_owner(self, client, shipping_address):
        order_id = _place_order(client, shipping_address).json()["order_id"]
        response = client.post(f"/orders/{order_id}/cancel", json={"requester_id": "user-api-1"})
        assert response.status_code == 200
        assert client.get(f"/orders/{order_id}").json()["status"] == "cancelled"

    def test_cancel_by_stranger_returns_403(self, client, shipping_address):
        order_id = _place_order(client, shipping_address).json()["order_id"]
        response = client.post(f"/orders/{order_id}/cancel", json={"requester_id": "someone-else"})
        assert response.status_code == 403

    def test_get_unknown_order_returns_404(self, client):
        assert client.get("/orders/does-not-exist").status_code == 404

    def test_get_order_includes_items(self, client, shipping_address):
        order_id = _place_order(client, shipping_address).json()["order_id"]
        order = client.get(f"/orders/{order_id}").json()
        assert order["items"][0]["product_name"] == "Cotton Tee"
        assert order["items"][0]["subtotal"] == 1000.0

    def test_list_orders_by_owner(self, client, shipping_address):
        _place_order(client, shipping_address)
        _place_order(client, shipping_address, owner_id="user-api-2")
        response = client.get("/orders", params={"owner_id": "user-api-1"})
        assert response.status_code == 200
        data = response.json()
        assert len(data["orders"]) == 1
        assert data["total"] == 1
        assert data["page"] == 1

    def test_list_orders_paginates(self, client, shipping_address):
        placed = [_place_order(client, shipping_address).json()["order_id"] for _ in range(3)]

        response = client.get("/orders", params={"owner_id": "user-api-1", "page": 2, "limit": 2})

        data = response.json()
        assert data["total"] == 3
        assert data["pages"] == 2
        assert [o["order_id"] for o in data["orders"]] == [placed[0]]

    def test_list_orders_rejects_oversized_page(self, client):
        assert client.get("/orders", params={"limit": 500}).status_code == 422

    def test_list_orders_unknown_status(self, client):
        assert client.get("/orders", params={"status": "lost"}).status_code == 400


class TestCouponAPI:
    def _create(self, client, **overrides):
        body = {"code": "welcome50", "discount_type": "fixed", "discount_value": 50, "min_order_amount": 200}
        body.update(overrides)
        return client.post("/coupons", json=body)

    def test_create_returns_201(self, client):
        response = self._create(client)
        assert response.status_code == 201
        assert "coupon_id" in response.json()

    def test_duplicate_code_returns_400(self, client):
        self._create(client)
        assert self._create(client, code="WELCOME50").status_code == 400

    def test_preview_valid(self, client):
        self._create(client)
        response = client.post(
            "/coupons/validate",
            json={"code": "welcome50", "items": [{"product_id": "prod-book", "quantity": 1}]},
        )
        data = response.json()
        assert data["valid"] is True
        assert data["discount_amount"] == 50.0
        assert data["subtotal"] == 300.0

    def test_preview_rejected_reports_reason(self, client):
        self._create(client)
        response = client.post(
            "/coupons/validate",
            json={"code": "WELCOME50", "items": [{"product_id": "prod-mug", "quantity": 1}]},
        )
        data = response.json()
        assert data["valid"] is False
        assert data["reason"] == "minimum_not_met"

    def test_deactivate(self, client):
        self._create(client)
        assert client.put("/coupons/welcome50/deactivate").status_code == 200
        response = client.post(
            "/coupons/validate",
            json={"code": "WELCOME50", "items": [{"product_id": "prod-book", "quantity": 1}]},
        )
        assert response.json()["reason"] == "not_found"

    def test_coupon_applied_at_checkout(self, client, shipping_address):
        self._create(client)
        response = _place_order(
            client,
            shipping_address,
            items=[{"product_id": "prod-book", "quantity": 1}],
            coupon_code="WELCOME50",
        )
        assert response.json()["total_amount"] == 354.0

    def test_list_coupons_for_admin(self, client):
        self._create(client)
        self._create(client, code="tenoff", discount_type="percentage", discount_value=10)

        coupons = client.get("/coupons").json()

        assert {c["code"] for c in coupons} == {"WELCOME50", "TENOFF"}
        assert all("used_count" in c for c in coupons)

    def test_get_coupon(self, client):
        self._create(client, product_ids=["prod-book"])
        data = client.get("/coupons/welcome50").json()
        assert data["code"] == "WELCOME50"
        assert data["product_ids"] == ["prod-book"]
        assert data["is_active"] is True

    def test_get_unknown_coupon_returns_404(self, client):
        assert client.get("/coupons/NOPE").status_code == 404

    def test_update_changes_only_given_terms(self, client):
        self._create(client)
        response = client.put("/coupons/WELCOME50", json={"discount_value": 75, "usage_limit": 10})

        assert response.status_code == 200
        data = response.json()
        assert data["discount_value"] == 75.0
        assert data["usage_limit"] == 10
        assert data["min_order_amount"] == 200.0

    def test_update_rejects_percentage_over_hundred(self, client):
        self._create(client, code="tenoff", discount_type="percentage", discount_value=10)
        assert client.put("/coupons/TENOFF", json={"discount_value": 150}).status_code == 400

    def test_available_lists_only_usable_coupons(self, client):
        self._create(client)
        self._create(client, code="retired")
        client.put("/coupons/RETIRED/deactivate")
        self._create(client, code="later", valid_from="2999-01-01T00:00:00Z")

        coupons = client.get("/coupons/available").json()

        assert [c["code"] for c in coupons] == ["WELCOME50"]
        assert "used_count" not in coupons[0]
