"""Shared BDD fixtures and step definitions for the storefront domain."""

import pytest
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then

from storefront.order.events import OrderCancelled, OrderDelivered, OrderProcessing, OrderReopened, OrderShipped
from storefront.order.order import Order

_ORDER_EVENT_CLASSES = {
    "OrderProcessing": OrderProcessing,
    "OrderShipped": OrderShipped,
    "OrderDelivered": OrderDelivered,
    "OrderCancelled": OrderCancelled,
    "OrderReopened": OrderReopened,
}

ADDRESS = {
    "name": "Asha Rao",
    "address_line1": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "pin_code": "560001",
    "phone": "9876543210",
}


@pytest.fixture()
def error():
    """Container for the exception a When step captured."""
    return {"exc": None}


def build_order(total=1000.0):
    order = Order.place(
        order_number="ORD1700000000000001",
        customer_id="cust-001",
        lines=[
            {
                "product_id": "prod-001",
                "product_name": "Classic Tee",
                "product_code": "TEE-001",
                "color_name": "Navy",
                "size": "M",
                "quantity": 2,
                "price_at_purchase": total / 2,
                "item_total": total,
            }
        ],
        shipping_address=ADDRESS,
        billing_address=ADDRESS,
        subtotal=total,
        total_discount_amount=0.0,
        shipping_charge=0.0,
        tax_amount=0.0,
        total=total,
        payment_method="razorpay",
    )
    order._events.clear()
    return order


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse("a {status} order"), target_fixture="order")
def order_in_status(status):
    order = build_order()
    path = {
        "pending": [],
        "processing": [order.start_processing],
        "shipped": [order.start_processing, order.ship],
        "delivered": [order.start_processing, order.ship, order.deliver],
        "failed": [order.fail],
    }
    for step in path[status]:
        step()
    order._events.clear()
    return order


# ---------------------------------------------------------------------------
# Then steps (shared)
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def order_status_is(order, status):
    assert order.status == status


@then("the order action fails with a validation error")
def order_action_fails(error):
    assert error["exc"] is not None, "Expected a validation error but none was raised"
    assert isinstance(error["exc"], ValidationError)


@then(parsers.cfparse("an {event_type} order event is raised"))
def order_event_raised(order, event_type):
    event_cls = _ORDER_EVENT_CLASSES[event_type]
    assert any(
        isinstance(e, event_cls) for e in order._events
    ), f"No {event_type} event found. Events: {[type(e).__name__ for e in order._events]}"
