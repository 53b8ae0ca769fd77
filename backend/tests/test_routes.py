"""
HTTP surface tests.

Verifies:
- Missing or unknown X-User-Id returns 401, wrong role returns 403
- Service errors come back as {"error", "code", "details"} with the mapped status
- Happy paths for checkout, order management, refunds, revenue and pricing
"""

import pytest

from techstore.errors import CommerceError
from techstore.models.catalog import DISCOUNT_PERCENTAGE
from techstore.time_utils import utcnow


CARD = {
    "card_number": "4242 4242 4242 4242",
    "card_holder": "Alan Turing",
    "expiry_month": "6",
    "expiry_year": "2029",
    "cvv": "999",
}


def _checkout_body(product, quantity=1, **overrides):
    body = {
        "items": [{"product_id": product.id, "quantity": quantity}],
        "delivery_address": "Bletchley Park",
        "payment": CARD,
    }
    body.update(overrides)
    return body


# =============================================================================
# AUTH: 401 / 403
# =============================================================================


class TestActorResolution:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/api/checkout"),
            ("GET", "/api/orders"),
            ("GET", "/api/orders/mine"),
            ("PATCH", "/api/orders/1/status"),
            ("PATCH", "/api/orders/1/cancel"),
            ("POST", "/api/refunds"),
            ("GET", "/api/refunds"),
            ("GET", "/api/revenue/range"),
            ("GET", "/api/revenue/monthly"),
        ],
    )
    def test_requires_actor(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_unknown_user_id(self, client, db_session):
        resp = client.get("/api/orders/mine", headers={"X-User-Id": "99999"})
        assert resp.status_code == 401

    def test_customer_cannot_list_all_orders(self, client, customer, headers_for):
        resp = client.get("/api/orders", headers=headers_for(customer))
        assert resp.status_code == 403
        assert resp.json["code"] == "forbidden"

    def test_product_manager_cannot_read_revenue(self, client, product_manager, headers_for):
        resp = client.get("/api/revenue/monthly?year=2026", headers=headers_for(product_manager))
        assert resp.status_code == 403


# =============================================================================
# CHECKOUT
# =============================================================================


class TestCheckoutRoute:

    def test_creates_order(self, client, services, customer, make_product, headers_for):
        product = make_product(price_cents=25_000, stock=3)

        resp = client.post("/api/checkout", json=_checkout_body(product, 2), headers=headers_for(customer))

        assert resp.status_code == 201
        body = resp.json
        assert body["order"]["id"] == body["order_id"]
        assert body["order"]["status"] == "processing"
        assert body["order"]["total_amount_cents"] == 50_000
        assert body["order"]["lines"][0]["unit_price_cents"] == 25_000
        assert services.inventory.stock_level(product.id) == 1

    def test_insufficient_stock_is_409(self, client, customer, make_product, headers_for):
        product = make_product(stock=1)

        resp = client.post("/api/checkout", json=_checkout_body(product, 2), headers=headers_for(customer))

        assert resp.status_code == 409
        assert resp.json["code"] == "insufficient_stock"
        assert resp.json["details"]["product_id"] == product.id

    def test_invalid_card_is_400(self, client, customer, make_product, headers_for):
        product = make_product()
        body = _checkout_body(product, payment=dict(CARD, cvv="1"))

        resp = client.post("/api/checkout", json=body, headers=headers_for(customer))

        assert resp.status_code == 400
        assert resp.json["code"] == "invalid_payment_details"

    def test_malformed_items_is_400(self, client, customer, headers_for):
        resp = client.post(
            "/api/checkout",
            json={"items": [{"product_id": "abc", "quantity": 1}], "delivery_address": "x", "payment": CARD},
            headers=headers_for(customer),
        )
        assert resp.status_code == 400
        assert resp.json["code"] == "invalid_cart"

    def test_unknown_product_is_404(self, client, customer, headers_for):
        resp = client.post(
            "/api/checkout",
            json={"items": [{"product_id": 777_777, "quantity": 1}], "delivery_address": "x", "payment": CARD},
            headers=headers_for(customer),
        )
        assert resp.status_code == 404
        assert resp.json["code"] == "not_found"


# =============================================================================
# ORDERS
# =============================================================================


class TestOrderRoutes:

    def test_my_orders(self, client, customer, other_customer, make_product, place_order, headers_for):
        product = make_product()
        mine = place_order(customer, [(product, 1)])
        place_order(other_customer, [(product, 1)])

        resp = client.get("/api/orders/mine", headers=headers_for(customer))
        assert resp.status_code == 200
        assert [o["id"] for o in resp.json["orders"]] == [mine.id]

    def test_get_order_owner_and_stranger(self, client, customer, other_customer, make_product, place_order, headers_for):
        order = place_order(customer, [(make_product(), 1)])

        resp = client.get(f"/api/orders/{order.id}", headers=headers_for(customer))
        assert resp.status_code == 200
        assert resp.json["order"]["payment"]["card_last4"] == "4242"

        resp = client.get(f"/api/orders/{order.id}", headers=headers_for(other_customer))
        assert resp.status_code == 403

    def test_list_orders_with_status_filter(self, client, customer, product_manager, make_product, place_order, headers_for):
        order = place_order(customer, [(make_product(), 1)])

        resp = client.get("/api/orders?status=processing", headers=headers_for(product_manager))
        assert resp.status_code == 200
        assert [o["id"] for o in resp.json["orders"]] == [order.id]

        resp = client.get("/api/orders?status=nope", headers=headers_for(product_manager))
        assert resp.status_code == 400

    def test_status_update_and_invalid_transition(self, client, customer, product_manager, make_product, place_order, headers_for):
        order = place_order(customer, [(make_product(), 1)])

        resp = client.patch(
            f"/api/orders/{order.id}/status",
            json={"status": "delivered", "admin_note": "Signed by neighbour"},
            headers=headers_for(product_manager),
        )
        assert resp.status_code == 200
        assert resp.json["order"]["status"] == "delivered"
        assert resp.json["order"]["delivered_at"] is not None

        resp = client.patch(
            f"/api/orders/{order.id}/status",
            json={"status": "in-transit"},
            headers=headers_for(product_manager),
        )
        assert resp.status_code == 409
        assert resp.json["code"] == "invalid_transition"
        assert resp.json["details"] == {"current": "delivered", "target": "in-transit"}

    def test_customer_cannot_update_status(self, client, customer, make_product, place_order, headers_for):
        order = place_order(customer, [(make_product(), 1)])
        resp = client.patch(f"/api/orders/{order.id}/status", json={"status": "delivered"}, headers=headers_for(customer))
        assert resp.status_code == 403

    def test_cancel(self, client, services, customer, other_customer, make_product, place_order, headers_for):
        product = make_product(stock=2)
        order = place_order(customer, [(product, 2)])

        resp = client.patch(f"/api/orders/{order.id}/cancel", json={}, headers=headers_for(other_customer))
        assert resp.status_code == 403

        resp = client.patch(f"/api/orders/{order.id}/cancel", json={"reason": "Too slow"}, headers=headers_for(customer))
        assert resp.status_code == 200
        assert resp.json["order"]["status"] == "cancelled"
        assert services.inventory.stock_level(product.id) == 2

    def test_unknown_order_is_404(self, client, product_manager, headers_for):
        resp = client.patch("/api/orders/424242/status", json={"status": "delivered"}, headers=headers_for(product_manager))
        assert resp.status_code == 404


# =============================================================================
# REFUNDS
# =============================================================================


class TestRefundRoutes:

    def test_request_and_approve(
        self, client, services, customer, sales_manager, make_product, place_order, deliver, headers_for
    ):
        product = make_product(stock=4)
        order = deliver(place_order(customer, [(product, 1)]))

        resp = client.post("/api/refunds", json={"order_id": order.id, "reason": "Dead pixel"}, headers=headers_for(customer))
        assert resp.status_code == 201
        refund_id = resp.json["refund"]["id"]

        resp = client.get(f"/api/refunds/order/{order.id}", headers=headers_for(customer))
        assert resp.status_code == 200
        assert resp.json["refund"]["status"] == "requested"

        resp = client.patch(f"/api/refunds/{refund_id}/approve", json={"admin_note": "OK"}, headers=headers_for(sales_manager))
        assert resp.status_code == 200
        assert resp.json["refund"]["status"] == "approved"
        assert resp.json["order"]["status"] == "refund-approved"
        assert services.inventory.stock_level(product.id) == 4

    def test_deny(self, client, customer, sales_manager, make_product, place_order, deliver, headers_for):
        order = deliver(place_order(customer, [(make_product(), 1)]))
        refund = client.post("/api/refunds", json={"order_id": order.id, "reason": "Meh"}, headers=headers_for(customer))

        resp = client.patch(f"/api/refunds/{refund.json['refund']['id']}/deny", headers=headers_for(sales_manager))
        assert resp.status_code == 200
        assert resp.json["order"]["status"] == "refund-denied"

    def test_refund_on_processing_order_is_409(self, client, customer, make_product, place_order, headers_for):
        order = place_order(customer, [(make_product(), 1)])
        resp = client.post("/api/refunds", json={"order_id": order.id, "reason": "Never mind"}, headers=headers_for(customer))
        assert resp.status_code == 409
        assert resp.json["details"]["current"] == "processing"

    def test_missing_order_id_is_400(self, client, customer, headers_for):
        resp = client.post("/api/refunds", json={"reason": "?"}, headers=headers_for(customer))
        assert resp.status_code == 400

    def test_customer_cannot_approve(self, client, customer, make_product, place_order, deliver, headers_for):
        order = deliver(place_order(customer, [(make_product(), 1)]))
        refund = client.post("/api/refunds", json={"order_id": order.id, "reason": "Broken"}, headers=headers_for(customer))
        resp = client.patch(f"/api/refunds/{refund.json['refund']['id']}/approve", headers=headers_for(customer))
        assert resp.status_code == 403

    def test_list_refunds(self, client, customer, sales_manager, make_product, place_order, deliver, headers_for):
        order = deliver(place_order(customer, [(make_product(), 1)]))
        client.post("/api/refunds", json={"order_id": order.id, "reason": "Broken"}, headers=headers_for(customer))

        resp = client.get("/api/refunds?status=requested", headers=headers_for(sales_manager))
        assert resp.status_code == 200
        assert [r["order_id"] for r in resp.json["refunds"]] == [order.id]


# =============================================================================
# REVENUE / PRICING / HEALTH
# =============================================================================


class TestReportingRoutes:

    def test_revenue_range(self, client, customer, sales_manager, make_product, place_order, headers_for):
        product = make_product(price_cents=10_000, cost_cents=5_000)
        place_order(customer, [(product, 1)])
        today = utcnow().date().isoformat()

        resp = client.get(f"/api/revenue/range?start={today}&end={today}", headers=headers_for(sales_manager))

        assert resp.status_code == 200
        assert resp.json["total_revenue_cents"] == 10_000
        assert resp.json["total_profit_cents"] == 5_000

    def test_revenue_range_bad_date(self, client, sales_manager, headers_for):
        resp = client.get("/api/revenue/range?start=yesterday&end=2026-01-01", headers=headers_for(sales_manager))
        assert resp.status_code == 400
        assert resp.json["code"] == "invalid_date"

    def test_monthly(self, client, sales_manager, headers_for):
        resp = client.get("/api/revenue/monthly?year=2026", headers=headers_for(sales_manager))
        assert resp.status_code == 200
        assert len(resp.json["months"]) == 12
        assert resp.json["months"][11]["month_name"] == "December"

    def test_monthly_requires_year(self, client, sales_manager, headers_for):
        resp = client.get("/api/revenue/monthly", headers=headers_for(sales_manager))
        assert resp.status_code == 400

    def test_revenue_range_ending_on_last_day_is_400(self, client, sales_manager, headers_for):
        resp = client.get("/api/revenue/range?start=9999-12-01&end=9999-12-31", headers=headers_for(sales_manager))
        assert resp.status_code == 400
        assert resp.json["code"] == "invalid_range"

    def test_monthly_year_9999_is_400(self, client, sales_manager, headers_for):
        resp = client.get("/api/revenue/monthly?year=9999", headers=headers_for(sales_manager))
        assert resp.status_code == 400
        assert resp.json["code"] == "invalid_year"

    def test_price_quote(self, client, make_product, make_discount):
        product = make_product(price_cents=10_000)
        make_discount(product, DISCOUNT_PERCENTAGE, 2_000)

        resp = client.get(f"/api/pricing/products/{product.id}")
        assert resp.status_code == 200
        assert resp.json["quote"]["unit_price_cents"] == 8_000
        assert resp.json["quote"]["has_discount"] is True

    def test_price_quote_unpriced_product(self, client, make_product):
        product = make_product(price_cents=None, price_approved=False)
        resp = client.get(f"/api/pricing/products/{product.id}")
        assert resp.status_code == 400
        assert resp.json["code"] == "product_not_purchasable"

    def test_health(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json["checks"]["database"]["status"] == "healthy"


def test_route_errors_are_built_by_the_route(app, client, customer, other_customer, make_product, place_order, headers_for):
    registered = [
        exc_class
        for handlers in app.error_handler_spec.get(None, {}).values()
        for exc_class in handlers
    ]
    assert CommerceError not in registered

    order = place_order(customer, [(make_product(), 1)])
    resp = client.get(f"/api/orders/{order.id}", headers=headers_for(other_customer))
    assert resp.status_code == 403
    assert resp.json == {
        "error": "You can only view your own orders",
        "code": "forbidden",
        "details": {"order_id": order.id},
    }
