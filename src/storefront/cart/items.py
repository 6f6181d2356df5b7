"""Cart line management: commands and handler.

Stock is checked against the current catalogue at the time of the change.
Nothing is held: checkout re-validates every line.
"""

from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.cart.pricing import CartOutcome, load_products, reapply_discounts
from storefront.cart.repository import get_cart, load_or_new
from storefront.catalogue.lookup import get_product_by_id
from storefront.domain import storefront
from storefront.errors import InsufficientStock, ProductInactive, VariantUnavailable


@storefront.command(part_of="Cart")
class AddCartItem:
    customer_id = Identifier()
    session_id = String(max_length=255)
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    color_name = String(required=True, max_length=50)
    color_hex = String(max_length=9)
    size = String(required=True, max_length=20)
    selected_image = String(max_length=500)


@storefront.command(part_of="Cart")
class UpdateCartItem:
    customer_id = Identifier()
    session_id = String(max_length=255)
    item_id = Identifier(required=True)
    quantity = Integer(min_value=1)
    color_name = String(max_length=50)
    color_hex = String(max_length=9)
    size = String(max_length=20)
    selected_image = String(max_length=500)


@storefront.command(part_of="Cart")
class RemoveCartItem:
    customer_id = Identifier()
    session_id = String(max_length=255)
    item_id = Identifier(required=True)


def check_purchasable(product, color_name, size, quantity):
    """Raise unless ``quantity`` units of the color/size can be bought right now."""
    if not product.is_active:
        raise ProductInactive({"product_id": ["Product is not available for sale"]})

    if product.color(color_name) is None:
        raise VariantUnavailable({"color": ["Selected color is not available for this product"]})

    level = product.stock_level(color_name, size)
    available = level.stock if level else 0
    if available < quantity:
        raise InsufficientStock(
            {"quantity": [f"Insufficient stock for {product.name} ({color_name}/{size}): {available} available, {quantity} requested"]}
        )


@storefront.command_handler(part_of=Cart)
class ManageCartItemsHandler:
    @handle(AddCartItem)
    def add_cart_item(self, command):
        product = get_product_by_id(command.product_id)
        cart = load_or_new(customer_id=command.customer_id, session_id=command.session_id)

        existing = cart.find_item(command.product_id, command.color_name, command.size)
        combined = command.quantity + (existing.quantity if existing else 0)
        check_purchasable(product, command.color_name, command.size, combined)

        cart.add_item(
            product_id=command.product_id,
            quantity=command.quantity,
            color_name=command.color_name,
            color_hex=command.color_hex,
            size=command.size,
            selected_image=command.selected_image,
        )
        warnings = reapply_discounts(cart, load_products(cart))
        current_domain.repository_for(Cart).add(cart)
        return CartOutcome(cart_id=str(cart.id), warnings=warnings)

    @handle(UpdateCartItem)
    def update_cart_item(self, command):
        cart = get_cart(customer_id=command.customer_id, session_id=command.session_id)
        item = cart.get_item(command.item_id)

        product = get_product_by_id(item.product_id)
        check_purchasable(
            product,
            command.color_name or item.color_name,
            command.size or item.size,
            command.quantity or item.quantity,
        )

        cart.update_item(
            item_id=command.item_id,
            quantity=command.quantity,
            color_name=command.color_name,
            color_hex=command.color_hex,
            size=command.size,
            selected_image=command.selected_image,
        )
        warnings = reapply_discounts(cart, load_products(cart))
        current_domain.repository_for(Cart).add(cart)
        return CartOutcome(cart_id=str(cart.id), warnings=warnings)

    @handle(RemoveCartItem)
    def remove_cart_item(self, command):
        cart = get_cart(customer_id=command.customer_id, session_id=command.session_id)
        cart.remove_item(command.item_id)
        warnings = reapply_discounts(cart, load_products(cart))
        current_domain.repository_for(Cart).add(cart)
        return CartOutcome(cart_id=str(cart.id), warnings=warnings)
