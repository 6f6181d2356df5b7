"""Order aggregate: the immutable record of a checkout and its fulfilment status.

Everything an order shows about what was bought is a snapshot taken at
checkout. Later catalogue or discount changes never reach a placed order.

State Machine (7 states):
    PENDING → PROCESSING → SHIPPED → DELIVERED → RETURNED
    PENDING → FAILED → PENDING (payment retry)
    PENDING/PROCESSING/SHIPPED → CANCELLED
    CANCELLED and RETURNED are terminal.
"""

import json
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, ValueObject

from storefront.domain import storefront
from storefront.errors import InvalidStatusTransition
from storefront.order.events import (
    OrderCancelled,
    OrderDelivered,
    OrderFailed,
    OrderPlaced,
    OrderProcessing,
    OrderReopened,
    OrderReturned,
    OrderShipped,
)
from storefront.order.policies import ESTIMATED_DELIVERY_DAYS, generate_tracking_number


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    FAILED = "failed"
    RETURNED = "returned"


class PaymentMethod(Enum):
    RAZORPAY = "razorpay"
    COD = "cod"
    WALLET = "wallet"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED, OrderStatus.FAILED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: {OrderStatus.RETURNED},
    OrderStatus.FAILED: {OrderStatus.PENDING},
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.RETURNED: set(),  # Terminal
}

# Customer-initiated cancellation is narrower than the admin table
CANCELLABLE_STATES = {OrderStatus.PENDING, OrderStatus.PROCESSING}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@storefront.value_object(part_of="Order")
class Address:
    """A delivery or billing address captured at checkout time."""

    name = String(required=True, max_length=100)
    address_line1 = String(required=True, max_length=255)
    address_line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(required=True, max_length=100)
    pin_code = String(required=True, max_length=10)
    country = String(max_length=100, default="India")
    phone = String(required=True, max_length=20)


@storefront.value_object(part_of="Order")
class DiscountSnapshot:
    """The coupon or voucher that was consumed by this order."""

    code = String(required=True, max_length=50)
    discount_id = Identifier(required=True)
    discount_amount = Float(default=0.0, min_value=0.0)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="Order")
class OrderItem:
    """One purchased line, frozen at the price and presentation of checkout."""

    product_id = Identifier(required=True)
    product_name = String(required=True, max_length=255)
    product_code = String(required=True, max_length=50)
    product_image = String(max_length=500)
    color_name = String(required=True, max_length=50)
    color_hex = String(max_length=9)
    size = String(required=True, max_length=20)
    selected_image = String(max_length=500)
    quantity = Integer(required=True, min_value=1)
    price_at_purchase = Float(required=True, min_value=0.0)
    item_total = Float(required=True, min_value=0.0)

    def to_snapshot(self):
        return {
            "product_id": str(self.product_id),
            "product_name": self.product_name,
            "product_code": self.product_code,
            "color_name": self.color_name,
            "size": self.size,
            "quantity": self.quantity,
            "price_at_purchase": self.price_at_purchase,
            "item_total": self.item_total,
        }


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storefront.aggregate
class Order:
    order_number = String(required=True, max_length=40, unique=True)
    customer_id = Identifier(required=True)
    items = HasMany(OrderItem)
    shipping_address = ValueObject(Address)
    billing_address = ValueObject(Address)
    subtotal = Float(required=True, min_value=0.0)
    applied_coupon = ValueObject(DiscountSnapshot)
    applied_voucher = ValueObject(DiscountSnapshot)
    total_discount_amount = Float(default=0.0, min_value=0.0)
    shipping_charge = Float(default=0.0, min_value=0.0)
    tax_amount = Float(default=0.0, min_value=0.0)
    total = Float(required=True, min_value=0.0)
    payment_method = String(choices=PaymentMethod)
    notes = String(max_length=500)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    estimated_delivery_date = DateTime()
    tracking_number = String(max_length=50)
    cancellation_reason = String(max_length=500)
    return_reason = String(max_length=500)
    cancelled_at = DateTime()
    delivered_at = DateTime()
    returned_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number,
        customer_id,
        lines,
        shipping_address,
        billing_address,
        subtotal,
        total_discount_amount,
        shipping_charge,
        tax_amount,
        total,
        payment_method=None,
        notes=None,
        applied_coupon=None,
        applied_voucher=None,
    ):
        """Create a pending order from checkout data.

        Args:
            lines: List of dicts with the ``OrderItem`` fields.
            shipping_address, billing_address: Dicts with the ``Address`` fields.
            applied_coupon, applied_voucher: Dicts with code, discount_id and
                discount_amount, or None.
        """
        now = datetime.now(UTC)
        order = cls(
            order_number=order_number,
            customer_id=customer_id,
            items=[OrderItem(**line) for line in lines],
            shipping_address=Address(**shipping_address),
            billing_address=Address(**billing_address),
            subtotal=subtotal,
            applied_coupon=DiscountSnapshot(**applied_coupon) if applied_coupon else None,
            applied_voucher=DiscountSnapshot(**applied_voucher) if applied_voucher else None,
            total_discount_amount=total_discount_amount,
            shipping_charge=shipping_charge,
            tax_amount=tax_amount,
            total=total,
            payment_method=payment_method,
            notes=notes,
            status=OrderStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                customer_id=str(customer_id),
                items=json.dumps([item.to_snapshot() for item in order.items]),
                subtotal=subtotal,
                total_discount_amount=total_discount_amount,
                shipping_charge=shipping_charge,
                tax_amount=tax_amount,
                total=total,
                payment_method=payment_method,
                coupon_code=applied_coupon["code"] if applied_coupon else None,
                voucher_code=applied_voucher["code"] if applied_voucher else None,
                placed_at=now,
            )
        )
        return order

    @property
    def item_count(self):
        """Number of order lines, as on the cart."""
        return len(self.items)

    @property
    def unit_count(self):
        return sum(item.quantity for item in self.items)

    def belongs_to(self, customer_id):
        return str(self.customer_id) == str(customer_id)

    def snapshot(self):
        """Plain-dict view used by notifications."""
        return {
            "order_id": str(self.id),
            "order_number": self.order_number,
            "status": self.status,
            "items": [item.to_snapshot() for item in self.items],
            "subtotal": self.subtotal,
            "total_discount_amount": self.total_discount_amount,
            "shipping_charge": self.shipping_charge,
            "tax_amount": self.tax_amount,
            "total": self.total,
            "payment_method": self.payment_method,
            "shipping_address": self.shipping_address.to_dict() if self.shipping_address else None,
        }

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def can_transition_to(self, target_status):
        return OrderStatus(target_status) in _VALID_TRANSITIONS[OrderStatus(self.status)]

    def _assert_can_transition(self, target_status):
        """Validate that the current state allows transition to target."""
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidStatusTransition(
                {"status": [f"Invalid status transition from {current.value} to {target_status.value}"]}
            )

    def transition_to(self, target_status, reason=None):
        """Move to ``target_status`` through the matching lifecycle method."""
        target = OrderStatus(target_status)
        transitions = {
            OrderStatus.PENDING: self.reopen,
            OrderStatus.PROCESSING: self.start_processing,
            OrderStatus.SHIPPED: self.ship,
            OrderStatus.DELIVERED: self.deliver,
            OrderStatus.FAILED: self.fail,
            OrderStatus.CANCELLED: lambda: self.cancel(reason),
            OrderStatus.RETURNED: lambda: self.mark_returned(reason),
        }
        transitions[target]()

    # -------------------------------------------------------------------
    # Order lifecycle transitions
    # -------------------------------------------------------------------
    def start_processing(self):
        """Accept the order for fulfilment; delivery is estimated a week out."""
        self._assert_can_transition(OrderStatus.PROCESSING)
        now = datetime.now(UTC)
        self.status = OrderStatus.PROCESSING.value
        self.estimated_delivery_date = now + timedelta(days=ESTIMATED_DELIVERY_DAYS)
        self.updated_at = now

        self.raise_(
            OrderProcessing(
                order_id=str(self.id),
                order_number=self.order_number,
                estimated_delivery_date=self.estimated_delivery_date,
            )
        )

    def ship(self, tracking_number=None):
        self._assert_can_transition(OrderStatus.SHIPPED)
        now = datetime.now(UTC)
        self.status = OrderStatus.SHIPPED.value
        if tracking_number:
            self.tracking_number = tracking_number
        elif not self.tracking_number:
            self.tracking_number = generate_tracking_number()
        self.updated_at = now

        self.raise_(
            OrderShipped(
                order_id=str(self.id),
                order_number=self.order_number,
                tracking_number=self.tracking_number,
                shipped_at=now,
            )
        )

    def deliver(self):
        self._assert_can_transition(OrderStatus.DELIVERED)
        now = datetime.now(UTC)
        self.status = OrderStatus.DELIVERED.value
        self.delivered_at = now
        self.updated_at = now

        self.raise_(OrderDelivered(order_id=str(self.id), order_number=self.order_number, delivered_at=now))

    def fail(self):
        self._assert_can_transition(OrderStatus.FAILED)
        now = datetime.now(UTC)
        self.status = OrderStatus.FAILED.value
        self.updated_at = now

        self.raise_(OrderFailed(order_id=str(self.id), order_number=self.order_number, failed_at=now))

    def reopen(self):
        self._assert_can_transition(OrderStatus.PENDING)
        self.status = OrderStatus.PENDING.value
        self.updated_at = datetime.now(UTC)

        self.raise_(OrderReopened(order_id=str(self.id), order_number=self.order_number))

    def cancel(self, reason=None):
        self._assert_can_transition(OrderStatus.CANCELLED)
        now = datetime.now(UTC)
        previous_status = self.status
        self.status = OrderStatus.CANCELLED.value
        self.cancellation_reason = reason
        self.cancelled_at = now
        self.updated_at = now

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                order_number=self.order_number,
                customer_id=str(self.customer_id),
                previous_status=previous_status,
                reason=reason,
                item_count=self.item_count,
                cancelled_at=now,
            )
        )

    def mark_returned(self, reason=None):
        self._assert_can_transition(OrderStatus.RETURNED)
        now = datetime.now(UTC)
        self.status = OrderStatus.RETURNED.value
        self.return_reason = reason
        self.returned_at = now
        self.updated_at = now

        self.raise_(
            OrderReturned(
                order_id=str(self.id),
                order_number=self.order_number,
                customer_id=str(self.customer_id),
                reason=reason,
                item_count=self.item_count,
                returned_at=now,
            )
        )
