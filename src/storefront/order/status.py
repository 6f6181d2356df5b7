"""Administrative status changes: command and handler.

Every change goes through the order's transition table. Moving an order to
cancelled or returned this way hands its stock back exactly like the
customer-facing commands do.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.order.cancellation import restore_order_stock, summarize
from storefront.order.order import Order, OrderStatus
from storefront.order.queries import get_order

logger = structlog.get_logger(__name__)

_RESTOCKING_STATES = {OrderStatus.CANCELLED, OrderStatus.RETURNED}


@storefront.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, choices=OrderStatus)
    tracking_number = String(max_length=50)
    reason = String(max_length=500)


@storefront.command_handler(part_of=Order)
class UpdateOrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_order_status(self, command):
        order = get_order(command.order_id)
        previous_status = order.status
        target = OrderStatus(command.status)

        if target == OrderStatus.SHIPPED:
            order.ship(tracking_number=command.tracking_number)
        else:
            order.transition_to(target, reason=command.reason)

        warnings = restore_order_stock(order) if target in _RESTOCKING_STATES else []
        current_domain.repository_for(Order).add(order)

        logger.info(
            "order_status_updated",
            order_id=str(order.id),
            order_number=order.order_number,
            previous_status=previous_status,
            status=order.status,
        )
        return summarize(order, warnings)
