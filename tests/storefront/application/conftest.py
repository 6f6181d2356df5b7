import json

import pytest
from protean.utils.globals import current_domain

from storefront.cart.discounts import ApplyDiscount
from storefront.cart.items import AddCartItem
from storefront.order.placement import PlaceOrder


@pytest.fixture()
def fill_cart():
    def _fill(product_id, quantity=1, customer_id="cust-001", color_name="Navy", size="M"):
        return current_domain.process(
            AddCartItem(
                customer_id=customer_id,
                product_id=product_id,
                quantity=quantity,
                color_name=color_name,
                size=size,
            ),
            asynchronous=False,
        )

    return _fill


@pytest.fixture()
def apply_code():
    def _apply(code, kind="coupon", customer_id="cust-001"):
        return current_domain.process(ApplyDiscount(customer_id=customer_id, code=code, kind=kind), asynchronous=False)

    return _apply


@pytest.fixture()
def place_order(shipping_address):
    def _place(customer_id="cust-001", payment_method="razorpay", notes=None):
        return current_domain.process(
            PlaceOrder(
                customer_id=customer_id,
                shipping_address=json.dumps(shipping_address),
                billing_address=json.dumps(shipping_address),
                payment_method=payment_method,
                notes=notes,
            ),
            asynchronous=False,
        )

    return _place


@pytest.fixture()
def checkout(make_product, fill_cart, place_order):
    """Buy ``quantity`` units of a fresh product and return ``(product_id, summary)``."""

    def _checkout(price=500.0, quantity=2, stock=10, customer_id="cust-001", payment_method="razorpay"):
        product_id = make_product(price=price, stock={"Navy": {"M": stock}})
        fill_cart(product_id, quantity, customer_id=customer_id)
        return product_id, place_order(customer_id=customer_id, payment_method=payment_method)

    return _checkout
