"""Order cancellation and returns: commands and handler.

Both paths hand the purchased units back to stock, one line at a time. A
line that cannot be restored is logged and reported; the status change
still happens. A second cancel or return fails on the state machine before
any stock moves, so units are never restored twice.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.errors import InvalidStatusTransition, OrderNotOwned
from storefront.inventory.stock import StockLine, restore_lines
from storefront.order.order import CANCELLABLE_STATES, Order, OrderStatus
from storefront.order.placement import OrderSummary
from storefront.order.queries import get_order

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    customer_id = Identifier()  # Set for customer requests; admins leave it empty


@storefront.command(part_of="Order")
class ReturnOrder:
    order_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    customer_id = Identifier()


def load_order(order_id, customer_id=None):
    """Load an order, checking ownership when a customer is given."""
    order = get_order(order_id)
    if customer_id and not order.belongs_to(customer_id):
        raise OrderNotOwned({"order_id": ["Order does not belong to user"]})
    return order


def restore_order_stock(order):
    """Return every line's units to stock. Returns a warning per failed line."""
    warnings = restore_lines(
        [StockLine(str(item.product_id), item.color_name, item.size, item.quantity) for item in order.items]
    )
    if warnings:
        logger.error(
            "order_stock_partially_restored",
            order_id=str(order.id),
            order_number=order.order_number,
            failed_lines=len(warnings),
        )
    return warnings


def summarize(order, warnings=None):
    return OrderSummary(
        order_id=str(order.id),
        order_number=order.order_number,
        total=order.total,
        item_count=order.item_count,
        status=order.status,
        warnings=warnings or [],
    )


@storefront.command_handler(part_of=Order)
class OrderCancellationHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        order = load_order(command.order_id, command.customer_id)

        if OrderStatus(order.status) not in CANCELLABLE_STATES:
            raise InvalidStatusTransition({"status": [f"Cannot cancel order with status: {order.status}"]})

        order.cancel(command.reason)
        warnings = restore_order_stock(order)
        current_domain.repository_for(Order).add(order)

        logger.info("order_cancelled", order_id=str(order.id), order_number=order.order_number)
        return summarize(order, warnings)

    @handle(ReturnOrder)
    def return_order(self, command):
        order = load_order(command.order_id, command.customer_id)
        if OrderStatus(order.status) != OrderStatus.DELIVERED:
            raise InvalidStatusTransition({"status": ["Only delivered orders can be returned"]})

        order.mark_returned(command.reason)
        warnings = restore_order_stock(order)
        current_domain.repository_for(Order).add(order)

        logger.info("order_returned", order_id=str(order.id), order_number=order.order_number)
        return summarize(order, warnings)
