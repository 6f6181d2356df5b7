"""Domain events for the Cart aggregate."""

from protean.fields import Float, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Cart")
class CartItemAdded:
    """A product variant was added to the cart (or its quantity increased)."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    color_name = String()
    size = String()
    quantity = Integer(required=True)


@storefront.event(part_of="Cart")
class CartItemUpdated:
    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    quantity = Integer(required=True)
    color_name = String()
    size = String()


@storefront.event(part_of="Cart")
class CartItemRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)


@storefront.event(part_of="Cart")
class CartDiscountApplied:
    """A coupon or voucher snapshot was attached (or recomputed)."""

    __version__ = 1

    cart_id = Identifier(required=True)
    kind = String(required=True)
    code = String(required=True)
    discount_amount = Float(required=True)


@storefront.event(part_of="Cart")
class CartDiscountCleared:
    __version__ = 1

    cart_id = Identifier(required=True)
    kind = String(required=True)
    code = String(required=True)


@storefront.event(part_of="Cart")
class CartCleared:
    __version__ = 1

    cart_id = Identifier(required=True)
    items_removed = Integer(required=True)


@storefront.event(part_of="Cart")
class CartsMerged:
    """A guest session cart was folded into a customer's cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    source_session_id = String(required=True)
    items_merged_count = Integer(required=True)
    items_dropped_count = Integer(required=True)
