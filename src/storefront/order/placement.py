"""Order placement: converting a customer's cart into a pending order.

The handler runs inside one unit of work. Everything that can reject the
order (empty cart, stock, order number, discount usage) happens before the
order is persisted. Stock reservation afterwards is best effort: a failing
line is reported in the summary and logged, and the order stays.
"""

import json
from dataclasses import dataclass, field

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.cart.pricing import load_products, materialize_with_details, price_applied
from storefront.cart.repository import find_cart
from storefront.discount.discount import Discount
from storefront.domain import storefront
from storefront.errors import (
    EmptyCart,
    InsufficientStock,
    OrderNumberConflict,
    ProductInactive,
    ProductNotFound,
    VariantUnavailable,
    duplicates_as,
)
from storefront.inventory.stock import StockLine, reserve_lines, total_requested
from storefront.order import policies
from storefront.order.order import Order, PaymentMethod

logger = structlog.get_logger(__name__)

ADDRESS_FIELDS = ("name", "address_line1", "address_line2", "city", "state", "pin_code", "country", "phone")


@storefront.command(part_of="Order")
class PlaceOrder:
    customer_id = Identifier(required=True)
    shipping_address = Text(required=True)  # JSON: address dict
    billing_address = Text(required=True)  # JSON: address dict
    payment_method = String(choices=PaymentMethod, default=PaymentMethod.RAZORPAY.value)
    notes = String(max_length=500)


@dataclass
class OrderSummary:
    order_id: str
    order_number: str
    total: float
    item_count: int
    status: str
    warnings: list[str] = field(default_factory=list)


def load_address(raw, field_name):
    """Parse an address payload into the keyword arguments of ``Address``."""
    data = json.loads(raw) if isinstance(raw, str) else raw
    if not isinstance(data, dict):
        raise ValidationError({field_name: ["Address must be an object"]})
    return {key: data[key] for key in ADDRESS_FIELDS if data.get(key) is not None}


def check_stock(cart, products):
    """Re-validate every line against current stock. Raises on the first shortfall."""
    lines = [StockLine(str(item.product_id), item.color_name, item.size, item.quantity) for item in cart.items]
    for (product_id, color_name, size), requested in total_requested(lines).items():
        product = products.get(product_id)
        if product is None:
            raise ProductNotFound({"product_id": [f"Product not found: {product_id}"]})
        if not product.is_active:
            raise ProductInactive({"product_id": [f"{product.name} is no longer available"]})
        if product.color(color_name) is None:
            raise VariantUnavailable({"color": [f"{product.name} is no longer available in {color_name}"]})

        level = product.stock_level(color_name, size)
        available = level.stock if level else 0
        if available < requested:
            raise InsufficientStock(
                {"quantity": [f"Insufficient stock for {product.name} ({color_name}) in size {size}: {available} available"]}
            )


def allocate_order_number(repo):
    """Generate an order number that no stored order uses yet."""
    for attempt in range(1, policies.ORDER_NUMBER_ATTEMPTS + 1):
        order_number = policies.generate_order_number()
        if repo.find_by_number(order_number) is None:
            return order_number
        logger.warning("order_number_collision", order_number=order_number, attempt=attempt)

    raise OrderNumberConflict({"order_number": ["Could not allocate a unique order number, please retry"]})


def price_applied_discounts(cart, products):
    """Recompute every discount attached to the cart against the cart as it is now.

    Returns ``(slot, discount, calculation)`` triples. A discount that was
    deleted since it was applied, or that no longer validates, rejects the
    checkout.
    """
    return [(slot, *price_applied(cart, slot, products)) for slot in cart.applied_slots()]


@storefront.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        # 1. Materialize the cart
        cart = find_cart(customer_id=command.customer_id)
        if cart is None or not cart.items:
            raise EmptyCart({"cart": ["Cart is empty"]})
        products = load_products(cart)
        view = materialize_with_details(cart, products)

        # 2. Stock must cover every line right now
        check_stock(cart, products)

        # 3. Order number
        order_repo = current_domain.repository_for(Order)
        order_number = allocate_order_number(order_repo)

        # 4-5. Discounts, shipping, tax and total
        subtotal = view.totals.subtotal
        priced = price_applied_discounts(cart, products)
        total_discount = round(min(sum(c.discount_amount for _, _, c in priced), subtotal), 2)
        taxable = round(subtotal - total_discount, 2)
        shipping = policies.shipping_charge(subtotal)
        tax = policies.tax_amount(taxable)
        total = round(subtotal - total_discount + shipping + tax, 2)

        # 6. Snapshot the lines
        lines = [
            {
                "product_id": line.product_id,
                "product_name": line.product_name,
                "product_code": line.product_code,
                "product_image": line.image,
                "color_name": line.color_name,
                "color_hex": line.color_hex,
                "size": line.size,
                "selected_image": line.selected_image or line.image,
                "quantity": line.quantity,
                "price_at_purchase": line.unit_price,
                "item_total": line.item_total,
            }
            for line in view.items
        ]

        # 7. Consume discounts before the order exists
        discount_repo = current_domain.repository_for(Discount)
        snapshots = {}
        for slot, discount, calculation in priced:
            discount.mark_used(str(command.customer_id))
            discount_repo.add(discount)
            snapshots[slot.value] = {
                "code": discount.code,
                "discount_id": str(discount.id),
                "discount_amount": calculation.discount_amount,
            }

        # 8. Persist the order
        order = Order.place(
            order_number=order_number,
            customer_id=command.customer_id,
            lines=lines,
            shipping_address=load_address(command.shipping_address, "shipping_address"),
            billing_address=load_address(command.billing_address, "billing_address"),
            subtotal=subtotal,
            total_discount_amount=total_discount,
            shipping_charge=shipping,
            tax_amount=tax,
            total=total,
            payment_method=command.payment_method,
            notes=command.notes,
            applied_coupon=snapshots.get("coupon"),
            applied_voucher=snapshots.get("voucher"),
        )
        taken = f"Order number {order_number} is already taken, please retry"
        with duplicates_as(OrderNumberConflict, "order_number", taken):
            order_repo.add(order)

        # 9. Reserve stock line by line
        warnings = reserve_lines(
            [StockLine(str(item.product_id), item.color_name, item.size, item.quantity) for item in order.items]
        )

        # 10. Clear the cart
        cart.clear()
        current_domain.repository_for(Cart).add(cart)

        logger.info(
            "order_placed",
            order_id=str(order.id),
            order_number=order_number,
            customer_id=str(command.customer_id),
            total=total,
            item_count=order.item_count,
            unit_count=order.unit_count,
            reservation_warnings=len(warnings),
        )
        return OrderSummary(
            order_id=str(order.id),
            order_number=order_number,
            total=total,
            item_count=order.item_count,
            status=order.status,
            warnings=warnings,
        )
