"""Integration tests for the cart endpoints."""

CUSTOMER = {"X-User-Id": "cust-api-001"}
GUEST = {"X-Session-Id": "sess-api-001"}


class TestCartOwnership:
    def test_owner_header_is_required(self, client):
        response = client.get("/cart")
        assert response.status_code == 400

    def test_empty_cart_view(self, client):
        response = client.get("/cart", headers=CUSTOMER)
        assert response.status_code == 200
        assert response.json()["items"] == []
        assert response.json()["totals"]["total"] == 0.0


class TestCartItemsApi:
    def test_add_item_returns_priced_cart(self, add_to_cart, product_id):
        response = add_to_cart(product_id, 2)

        assert response.status_code == 201
        body = response.json()
        assert body["totals"] == {"subtotal": 1000.0, "discount_amount": 0.0, "total": 1000.0, "item_count": 1}
        line = body["items"][0]
        assert line["product_name"] == "Classic Tee"
        assert line["image"] == "https://img.example.com/navy.jpg"

    def test_add_beyond_stock(self, add_to_cart, product_id):
        response = add_to_cart(product_id, 2, size="L")
        assert response.status_code == 400
        assert response.json()["code"] == "InsufficientStock"

    def test_update_quantity(self, client, add_to_cart, product_id):
        item_id = add_to_cart(product_id, 1).json()["items"][0]["item_id"]
        response = client.patch(f"/cart/items/{item_id}", json={"quantity": 3}, headers=CUSTOMER)
        assert response.status_code == 200
        assert response.json()["items"][0]["quantity"] == 3

    def test_remove_unknown_item(self, client, add_to_cart, product_id):
        add_to_cart(product_id)
        response = client.delete("/cart/items/missing", headers=CUSTOMER)
        assert response.status_code == 404

    def test_clear(self, client, add_to_cart, product_id):
        add_to_cart(product_id)
        response = client.delete("/cart", headers=CUSTOMER)
        assert response.status_code == 200
        assert response.json()["items"] == []

    def test_guest_cart(self, client, add_to_cart, product_id):
        add_to_cart(product_id, headers=GUEST)
        assert len(client.get("/cart", headers=GUEST).json()["items"]) == 1
        assert client.get("/cart", headers=CUSTOMER).json()["items"] == []


class TestCartDiscountsApi:
    def _create_coupon(self, client, code="SAVE10"):
        response = client.post(
            "/discounts",
            json={
                "code": code,
                "kind": "coupon",
                "discount_type": "percentage",
                "value": 10,
                "valid_until": "2099-12-31T23:59:59Z",
            },
        )
        assert response.status_code == 201

    def test_apply_and_remove(self, client, add_to_cart, product_id):
        self._create_coupon(client)
        add_to_cart(product_id, 2)

        applied = client.post("/cart/discounts", json={"code": "save10"}, headers=CUSTOMER)
        assert applied.status_code == 200
        assert applied.json()["applied_coupon"]["code"] == "SAVE10"
        assert applied.json()["totals"]["total"] == 900.0

        removed = client.delete("/cart/discounts/coupon", headers=CUSTOMER)
        assert removed.json()["applied_coupon"] is None
        assert removed.json()["totals"]["total"] == 1000.0

    def test_unknown_code(self, client, add_to_cart, product_id):
        add_to_cart(product_id)
        response = client.post("/cart/discounts", json={"code": "NOPE"}, headers=CUSTOMER)
        assert response.status_code == 404

    def test_nothing_to_remove(self, client, add_to_cart, product_id):
        add_to_cart(product_id)
        response = client.delete("/cart/discounts/voucher", headers=CUSTOMER)
        assert response.status_code == 400
        assert response.json()["code"] == "NoDiscountApplied"


class TestCartValidationApi:
    def test_reports_and_fixes(self, client, add_to_cart, product_id):
        add_to_cart(product_id, 5)
        client.put(f"/products/{product_id}/stock", json={"color_name": "Navy", "size": "M", "stock": 2})

        report = client.get("/cart/validation", headers=CUSTOMER).json()
        assert report["valid"] is False
        assert report["issues"][0]["issue"] == "Only 2 items available"

        fixed = client.post("/cart/validation", headers=CUSTOMER).json()
        assert fixed["items"][0]["quantity"] == 2
        assert len(fixed["warnings"]) == 1


class TestMergeApi:
    def test_requires_both_identities(self, client):
        assert client.post("/cart/merge", headers=GUEST).status_code == 401
        assert client.post("/cart/merge", headers=CUSTOMER).status_code == 400

    def test_guest_lines_move_to_customer(self, client, add_to_cart, product_id):
        add_to_cart(product_id, 2, headers=GUEST)

        response = client.post("/cart/merge", headers={**CUSTOMER, **GUEST})

        assert response.status_code == 200
        assert response.json()["items"][0]["quantity"] == 2
        assert client.get("/cart", headers=GUEST).json()["items"] == []
