"""Applying and removing coupons/vouchers on a cart: commands and handler.

Applying a code only prices it against the cart. The discount is consumed
when an order is placed, so a code can be tried any number of times.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart, DiscountSlot
from storefront.cart.pricing import CartOutcome, compute_cart_discount
from storefront.cart.repository import find_cart
from storefront.domain import storefront
from storefront.errors import EmptyCart, NoDiscountApplied

REMOVE_ALL = "all"
_REMOVABLE_KINDS = {slot.value for slot in DiscountSlot} | {REMOVE_ALL}


@storefront.command(part_of="Cart")
class ApplyDiscount:
    customer_id = Identifier()
    session_id = String(max_length=255)
    code = String(required=True, max_length=50)
    kind = String(choices=DiscountSlot, default=DiscountSlot.COUPON.value)


@storefront.command(part_of="Cart")
class RemoveDiscount:
    customer_id = Identifier()
    session_id = String(max_length=255)
    kind = String(required=True, max_length=10)  # coupon, voucher, all


@storefront.command_handler(part_of=Cart)
class CartDiscountsHandler:
    @handle(ApplyDiscount)
    def apply_discount(self, command):
        cart = find_cart(customer_id=command.customer_id, session_id=command.session_id)
        if cart is None:
            raise EmptyCart({"cart": ["Cart is empty"]})
        result = compute_cart_discount(cart, command.code, command.kind)

        cart.attach_discount(
            command.kind,
            result.applied_discount.code,
            result.applied_discount.discount_id,
            result.discount_amount,
        )
        current_domain.repository_for(Cart).add(cart)
        return CartOutcome(cart_id=str(cart.id))

    @handle(RemoveDiscount)
    def remove_discount(self, command):
        if command.kind not in _REMOVABLE_KINDS:
            raise ValidationError({"kind": ["Kind must be one of coupon, voucher or all"]})

        cart = find_cart(customer_id=command.customer_id, session_id=command.session_id)
        if cart is None or not cart.items:
            raise EmptyCart({"cart": ["Cart is empty"]})

        if command.kind == REMOVE_ALL:
            slots = cart.applied_slots()
        else:
            slots = [slot for slot in cart.applied_slots() if slot == DiscountSlot(command.kind)]
        if not slots:
            raise NoDiscountApplied({"kind": [f"No {command.kind} discount is applied to the cart"]})

        for slot in slots:
            cart.clear_discount(slot)
        current_domain.repository_for(Cart).add(cart)
        return CartOutcome(cart_id=str(cart.id))
