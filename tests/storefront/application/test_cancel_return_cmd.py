import pytest
from protean.utils.globals import current_domain

from storefront.errors import InvalidStatusTransition, OrderNotOwned
from storefront.inventory.stock import get_available_stock
from storefront.order.cancellation import CancelOrder, ReturnOrder
from storefront.order.order import OrderStatus
from storefront.order.queries import get_order
from storefront.order.status import UpdateOrderStatus


def _set_status(order_id, status, **kwargs):
    return current_domain.process(UpdateOrderStatus(order_id=order_id, status=status, **kwargs), asynchronous=False)


def _cancel(order_id, customer_id="cust-001", reason="Changed my mind"):
    return current_domain.process(
        CancelOrder(order_id=order_id, reason=reason, customer_id=customer_id), asynchronous=False
    )


def _deliver(order_id):
    for status in ("processing", "shipped", "delivered"):
        _set_status(order_id, status)


class TestCancelOrder:
    def test_pending_order_restores_stock(self, checkout):
        product_id, summary = checkout(quantity=3, stock=10)
        assert get_available_stock(product_id, "Navy", "M") == 7

        result = _cancel(summary.order_id)

        assert result.status == OrderStatus.CANCELLED.value
        assert result.item_count == summary.item_count == 1
        assert result.warnings == []
        assert get_available_stock(product_id, "Navy", "M") == 10
        order = get_order(summary.order_id)
        assert order.cancellation_reason == "Changed my mind"
        assert order.cancelled_at is not None

    def test_processing_order_can_be_cancelled(self, checkout):
        product_id, summary = checkout(quantity=2, stock=5)
        _set_status(summary.order_id, "processing")

        _cancel(summary.order_id)

        assert get_available_stock(product_id, "Navy", "M") == 5

    def test_second_cancel_does_not_restore_twice(self, checkout):
        product_id, summary = checkout(quantity=2, stock=5)
        _cancel(summary.order_id)

        with pytest.raises(InvalidStatusTransition):
            _cancel(summary.order_id)

        assert get_available_stock(product_id, "Navy", "M") == 5

    def test_shipped_order_cannot_be_cancelled_by_customer(self, checkout):
        _, summary = checkout()
        _set_status(summary.order_id, "processing")
        _set_status(summary.order_id, "shipped")

        with pytest.raises(InvalidStatusTransition):
            _cancel(summary.order_id)

    def test_other_customers_order(self, checkout):
        _, summary = checkout()
        with pytest.raises(OrderNotOwned):
            _cancel(summary.order_id, customer_id="cust-999")
        assert get_order(summary.order_id).status == OrderStatus.PENDING.value

    def test_admin_cancel_without_customer(self, checkout):
        product_id, summary = checkout(quantity=1, stock=3)
        _cancel(summary.order_id, customer_id=None)
        assert get_available_stock(product_id, "Navy", "M") == 3


class TestReturnOrder:
    def test_delivered_order_restores_stock(self, checkout):
        product_id, summary = checkout(quantity=2, stock=4)
        _deliver(summary.order_id)

        result = current_domain.process(
            ReturnOrder(order_id=summary.order_id, reason="Too small", customer_id="cust-001"), asynchronous=False
        )

        assert result.status == OrderStatus.RETURNED.value
        assert get_available_stock(product_id, "Navy", "M") == 4
        assert get_order(summary.order_id).return_reason == "Too small"

    def test_undelivered_order_cannot_be_returned(self, checkout):
        _, summary = checkout()
        with pytest.raises(InvalidStatusTransition):
            current_domain.process(
                ReturnOrder(order_id=summary.order_id, reason="Too small", customer_id="cust-001"),
                asynchronous=False,
            )


class TestUpdateOrderStatus:
    def test_ship_with_tracking_number(self, checkout):
        _, summary = checkout()
        _set_status(summary.order_id, "processing")
        _set_status(summary.order_id, "shipped", tracking_number="TRK-42")

        order = get_order(summary.order_id)
        assert order.status == OrderStatus.SHIPPED.value
        assert order.tracking_number == "TRK-42"

    def test_ship_generates_tracking_number(self, checkout):
        _, summary = checkout()
        _set_status(summary.order_id, "processing")
        _set_status(summary.order_id, "shipped")
        assert get_order(summary.order_id).tracking_number.startswith("TRK")

    def test_processing_sets_estimated_delivery(self, checkout):
        _, summary = checkout()
        _set_status(summary.order_id, "processing")
        assert get_order(summary.order_id).estimated_delivery_date is not None

    def test_skipping_states_is_rejected(self, checkout):
        _, summary = checkout()
        with pytest.raises(InvalidStatusTransition):
            _set_status(summary.order_id, "delivered")
        assert get_order(summary.order_id).status == OrderStatus.PENDING.value

    def test_admin_cancel_of_shipped_order_restores_stock(self, checkout):
        product_id, summary = checkout(quantity=2, stock=6)
        _set_status(summary.order_id, "processing")
        _set_status(summary.order_id, "shipped")

        _set_status(summary.order_id, "cancelled", reason="Lost in transit")

        assert get_available_stock(product_id, "Navy", "M") == 6
        assert get_order(summary.order_id).cancellation_reason == "Lost in transit"

    def test_terminal_states_stay_terminal(self, checkout):
        _, summary = checkout()
        _set_status(summary.order_id, "cancelled")
        with pytest.raises(InvalidStatusTransition):
            _set_status(summary.order_id, "pending")
