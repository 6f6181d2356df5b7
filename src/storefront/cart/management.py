"""Cart lifecycle: clearing, deleting, validating and guest cart merging.

Guest merging never fails because of a single bad line: lines whose product,
color or stock is gone are dropped, reported as warnings, and logged.
"""

from collections import OrderedDict
from dataclasses import dataclass, field

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.cart.pricing import CartOutcome, load_products, reapply_discounts, validate_items
from storefront.cart.repository import find_cart, get_cart, load_or_new
from storefront.catalogue.lookup import find_product
from storefront.domain import storefront

logger = structlog.get_logger(__name__)


@dataclass
class MergeOutcome(CartOutcome):
    dropped_lines: list[dict] = field(default_factory=list)


@storefront.command(part_of="Cart")
class ClearCart:
    customer_id = Identifier()
    session_id = String(max_length=255)


@storefront.command(part_of="Cart")
class DeleteCart:
    customer_id = Identifier()
    session_id = String(max_length=255)


@storefront.command(part_of="Cart")
class ValidateCart:
    """Drop lines that can no longer be bought and clamp quantities to stock."""

    customer_id = Identifier()
    session_id = String(max_length=255)


@storefront.command(part_of="Cart")
class MergeGuestCart:
    """Fold a guest session's cart into the customer's cart at login."""

    customer_id = Identifier(required=True)
    session_id = String(required=True, max_length=255)


def _line_key(item):
    return (str(item.product_id), item.color_name, item.size)


def _as_line(item):
    return {
        "product_id": str(item.product_id),
        "quantity": item.quantity,
        "color_name": item.color_name,
        "color_hex": item.color_hex,
        "size": item.size,
        "selected_image": item.selected_image,
    }


def _combine_lines(*carts):
    """Union of lines across carts, summing quantities of matching keys."""
    combined = OrderedDict()
    for cart in carts:
        for item in cart.items:
            key = _line_key(item)
            if key in combined:
                combined[key]["quantity"] += item.quantity
            else:
                combined[key] = _as_line(item)
    return list(combined.values())


def _fit_to_stock(line, product):
    """Return (line capped at stock, None) or (None, reason for dropping it)."""
    if product is None or not product.is_active:
        return None, "Product is no longer available"
    if product.color(line["color_name"]) is None:
        return None, "Selected color is no longer available"

    level = product.stock_level(line["color_name"], line["size"])
    available = level.stock if level else 0
    if available <= 0:
        return None, "Selected size is out of stock"
    return {**line, "quantity": min(line["quantity"], available)}, None


@storefront.command_handler(part_of=Cart)
class ManageCartHandler:
    @handle(ClearCart)
    def clear_cart(self, command):
        cart = find_cart(customer_id=command.customer_id, session_id=command.session_id)
        if cart is None:
            return None
        if cart.items or cart.applied_slots():
            cart.clear()
            current_domain.repository_for(Cart).add(cart)
        return CartOutcome(cart_id=str(cart.id))

    @handle(DeleteCart)
    def delete_cart(self, command):
        cart = get_cart(customer_id=command.customer_id, session_id=command.session_id)
        current_domain.repository_for(Cart).discard(cart)
        return CartOutcome(cart_id=str(cart.id))

    @handle(ValidateCart)
    def validate_cart(self, command):
        cart = get_cart(customer_id=command.customer_id, session_id=command.session_id)
        products = load_products(cart)
        validation = validate_items(cart, products)
        if not validation.needs_update:
            return CartOutcome(cart_id=str(cart.id))

        lines, warnings = [], []
        for item in cart.items:
            line = _as_line(item)
            fitted, reason = _fit_to_stock(line, products.get(str(item.product_id)))
            if fitted is None:
                warnings.append(f"Removed item {item.id}: {reason}")
                continue
            if fitted["quantity"] < item.quantity:
                warnings.append(f"Reduced item {item.id} to {fitted['quantity']}")
            lines.append(fitted)

        cart.replace_lines(lines)
        warnings.extend(reapply_discounts(cart, products))
        current_domain.repository_for(Cart).add(cart)
        return CartOutcome(cart_id=str(cart.id), warnings=warnings)

    @handle(MergeGuestCart)
    def merge_guest_cart(self, command):
        repo = current_domain.repository_for(Cart)
        guest_cart = repo.for_session(command.session_id)
        cart = load_or_new(customer_id=command.customer_id)

        if guest_cart is None:
            repo.add(cart)
            return MergeOutcome(cart_id=str(cart.id))

        lines = _combine_lines(cart, guest_cart)
        products = {line["product_id"]: find_product(line["product_id"]) for line in lines}

        merged, dropped = [], []
        for line in lines:
            fitted, reason = _fit_to_stock(line, products.get(line["product_id"]))
            if fitted is None:
                dropped.append({**line, "reason": reason})
                logger.warning(
                    "guest_cart_line_dropped",
                    customer_id=str(command.customer_id),
                    session_id=command.session_id,
                    product_id=line["product_id"],
                    reason=reason,
                )
                continue
            merged.append(fitted)

        cart.merge_from_guest(merged, source_session_id=command.session_id, dropped_count=len(dropped))
        warnings = [f"{line['product_id']}: {line['reason']}" for line in dropped]
        warnings.extend(reapply_discounts(cart, {k: v for k, v in products.items() if v is not None}))

        repo.add(cart)
        repo.discard(guest_cart)

        logger.info(
            "guest_cart_merged",
            cart_id=str(cart.id),
            session_id=command.session_id,
            merged=len(merged),
            dropped=len(dropped),
        )
        return MergeOutcome(cart_id=str(cart.id), warnings=warnings, dropped_lines=dropped)
