"""Domain events for the Order aggregate.

Events are immutable facts. Line snapshots travel as JSON text so a consumer
never has to reload the order to know what was bought.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from storefront.domain import storefront


@storefront.event(part_of="Order")
class OrderPlaced:
    """A cart was converted into a pending order at checkout."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of line snapshots
    subtotal = Float(required=True)
    total_discount_amount = Float()
    shipping_charge = Float()
    tax_amount = Float()
    total = Float(required=True)
    payment_method = String()
    coupon_code = String()
    voucher_code = String()
    placed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderProcessing:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    estimated_delivery_date = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderShipped:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    tracking_number = String(required=True)
    shipped_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderDelivered:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    delivered_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderFailed:
    """Payment for the order failed; the order can be retried from pending."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    failed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderReopened:
    """A failed order went back to pending for another payment attempt."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)


@storefront.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    previous_status = String(required=True)
    reason = String()
    item_count = Integer()
    cancelled_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderReturned:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    reason = String()
    item_count = Integer()
    returned_at = DateTime(required=True)
