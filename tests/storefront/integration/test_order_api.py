"""Integration tests for the order endpoints via TestClient."""

CUSTOMER = {"X-User-Id": "cust-api-001"}
STRANGER = {"X-User-Id": "cust-api-999"}


class TestPlaceOrderApi:
    def test_place_order(self, placed_order):
        assert placed_order["status"] == "pending"
        assert placed_order["total"] == 1000.0
        assert placed_order["order_number"].startswith("ORD")
        assert placed_order["warnings"] == []

    def test_billing_defaults_to_shipping(self, client, placed_order, address):
        body = client.get(f"/orders/{placed_order['order_id']}", headers=CUSTOMER).json()
        assert body["billing_address"]["city"] == address["city"]
        assert body["items"][0]["quantity"] == 2
        assert body["items"][0]["price_at_purchase"] == 500.0

    def test_login_required(self, client, address):
        response = client.post("/orders", json={"shipping_address": address})
        assert response.status_code == 401

    def test_empty_cart(self, client, address):
        response = client.post("/orders", json={"shipping_address": address}, headers=CUSTOMER)
        assert response.status_code == 400
        assert response.json() == {"error": "BadRequest", "code": "EmptyCart", "detail": {"cart": ["Cart is empty"]}}

    def test_incomplete_address(self, client, add_to_cart, product_id, address):
        add_to_cart(product_id)
        del address["pin_code"]
        response = client.post("/orders", json={"shipping_address": address}, headers=CUSTOMER)
        assert response.status_code == 422

    def test_cart_is_empty_afterwards(self, client, placed_order):
        assert client.get("/cart", headers=CUSTOMER).json()["items"] == []

    def test_stock_is_reserved(self, client, placed_order, product_id):
        levels = client.get(f"/products/{product_id}").json()["stock_levels"]
        assert {s["size"]: s["stock"] for s in levels}["M"] == 8


class TestOrderReadsApi:
    def test_my_orders(self, client, placed_order):
        body = client.get("/orders", headers=CUSTOMER).json()
        assert body["total"] == 1
        assert body["orders"][0]["order_id"] == placed_order["order_id"]

    def test_by_number(self, client, placed_order):
        response = client.get(f"/orders/number/{placed_order['order_number']}", headers=CUSTOMER)
        assert response.status_code == 200
        assert response.json()["order_id"] == placed_order["order_id"]

    def test_other_customer_is_refused(self, client, placed_order):
        response = client.get(f"/orders/{placed_order['order_id']}", headers=STRANGER)
        assert response.status_code == 400
        assert response.json()["code"] == "OrderNotOwned"

    def test_unknown_order(self, client):
        response = client.get("/orders/missing", headers=CUSTOMER)
        assert response.status_code == 404
        assert response.json()["error"] == "NotFound"

    def test_admin_listing(self, client, placed_order):
        body = client.get("/orders/admin/all", params={"page": 1, "limit": 5}).json()
        assert body["total"] == 1
        assert body["page"] == 1
        assert body["limit"] == 5

    def test_admin_listing_bad_limit(self, client):
        assert client.get("/orders/admin/all", params={"limit": 0}).status_code == 400

    def test_admin_stats(self, client, placed_order):
        assert client.get("/orders/admin/stats").json() == {"pending": {"count": 1, "total_amount": 1000.0}}


class TestOrderLifecycleApi:
    def test_cancel(self, client, placed_order, product_id):
        response = client.post(
            f"/orders/{placed_order['order_id']}/cancel", json={"reason": "Ordered twice"}, headers=CUSTOMER
        )
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

        levels = client.get(f"/products/{product_id}").json()["stock_levels"]
        assert {s["size"]: s["stock"] for s in levels}["M"] == 10

    def test_cancel_twice(self, client, placed_order):
        url = f"/orders/{placed_order['order_id']}/cancel"
        client.post(url, json={"reason": "Ordered twice"}, headers=CUSTOMER)
        response = client.post(url, json={"reason": "Ordered twice"}, headers=CUSTOMER)
        assert response.status_code == 400
        assert response.json()["code"] == "InvalidStatusTransition"

    def test_reason_is_required(self, client, placed_order):
        response = client.post(f"/orders/{placed_order['order_id']}/cancel", json={"reason": ""}, headers=CUSTOMER)
        assert response.status_code == 422

    def test_ship_deliver_return(self, client, placed_order):
        order_id = placed_order["order_id"]
        client.put(f"/orders/{order_id}/status", json={"status": "processing"})
        shipped = client.put(f"/orders/{order_id}/status", json={"status": "shipped", "tracking_number": "TRK-1"})
        assert shipped.json()["status"] == "shipped"
        client.put(f"/orders/{order_id}/status", json={"status": "delivered"})

        response = client.post(f"/orders/{order_id}/return", json={"reason": "Too small"}, headers=CUSTOMER)

        assert response.json()["status"] == "returned"
        assert client.get(f"/orders/{order_id}", headers=CUSTOMER).json()["tracking_number"] == "TRK-1"

    def test_invalid_transition(self, client, placed_order):
        response = client.put(f"/orders/{placed_order['order_id']}/status", json={"status": "delivered"})
        assert response.status_code == 400
        assert response.json()["error"] == "BadRequest"

    def test_unknown_status_value(self, client, placed_order):
        response = client.put(f"/orders/{placed_order['order_id']}/status", json={"status": "lost"})
        assert response.status_code == 422


class TestOrderSearchApi:
    def test_customer_search(self, client, placed_order):
        body = client.get("/orders/search", params={"q": "tee-api"}, headers=CUSTOMER).json()
        assert body["total"] == 1
        assert body["orders"][0]["order_number"] == placed_order["order_number"]

    def test_customer_search_is_scoped(self, client, placed_order):
        body = client.get("/orders/search", params={"q": "classic"}, headers=STRANGER).json()
        assert body == {"orders": [], "total": 0, "page": 1, "limit": 10}

    def test_search_requires_user(self, client):
        assert client.get("/orders/search", params={"q": "tee"}).status_code == 401

    def test_blank_term(self, client):
        response = client.get("/orders/search", params={"q": "  "}, headers=CUSTOMER)
        assert response.status_code == 400

    def test_admin_search(self, client, placed_order):
        body = client.get("/orders/admin/search", params={"q": placed_order["order_number"]}).json()
        assert [order["order_id"] for order in body["orders"]] == [placed_order["order_id"]]

        other = client.get("/orders/admin/search", params={"q": "classic", "customer_id": "someone-else"}).json()
        assert other["total"] == 0
