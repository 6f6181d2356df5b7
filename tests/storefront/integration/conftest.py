import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from storefront.api import (
    cart_router,
    discount_router,
    order_router,
    payment_router,
    product_router,
    register_exception_handlers,
)

CUSTOMER = {"X-User-Id": "cust-api-001"}


@pytest.fixture()
def client():
    app = FastAPI()
    register_exception_handlers(app)
    for router in (product_router, cart_router, discount_router, order_router, payment_router):
        app.include_router(router)
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture()
def product_id(client):
    """A 500.00 tee in Navy with sizes M (10) and L (1)."""
    response = client.post("/products", json={"code": "TEE-API", "name": "Classic Tee", "price": 500.0})
    assert response.status_code == 201
    product_id = response.json()["product_id"]
    client.post(
        f"/products/{product_id}/colors",
        json={"name": "Navy", "hex_code": "#000080", "images": ["https://img.example.com/navy.jpg"]},
    )
    client.put(f"/products/{product_id}/stock", json={"color_name": "Navy", "size": "M", "stock": 10})
    client.put(f"/products/{product_id}/stock", json={"color_name": "Navy", "size": "L", "stock": 1})
    return product_id


@pytest.fixture()
def address():
    return {
        "name": "Asha Rao",
        "address_line1": "12 MG Road",
        "city": "Bengaluru",
        "state": "Karnataka",
        "pin_code": "560001",
        "phone": "9876543210",
    }


@pytest.fixture()
def add_to_cart(client):
    def _add(product_id, quantity=1, size="M", headers=None):
        return client.post(
            "/cart/items",
            json={"product_id": product_id, "quantity": quantity, "color_name": "Navy", "size": size},
            headers=headers or CUSTOMER,
        )

    return _add


@pytest.fixture()
def placed_order(client, product_id, add_to_cart, address):
    """Order for 2 x 500.00 placed by ``CUSTOMER``; returns the summary body."""
    add_to_cart(product_id, 2)
    response = client.post("/orders", json={"shipping_address": address}, headers=CUSTOMER)
    assert response.status_code == 201
    return response.json()
