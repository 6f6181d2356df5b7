"""Domain events for the Discount aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Discount")
class DiscountCreated:
    """A coupon or voucher was defined."""

    __version__ = 1

    discount_id = Identifier(required=True)
    code = String(required=True)
    kind = String(required=True)
    discount_type = String(required=True)
    value = Float()
    valid_from = DateTime()
    valid_until = DateTime()


@storefront.event(part_of="Discount")
class DiscountUpdated:
    __version__ = 1

    discount_id = Identifier(required=True)
    code = String(required=True)
    changed_fields = String()  # Comma-separated field names


@storefront.event(part_of="Discount")
class DiscountDeactivated:
    __version__ = 1

    discount_id = Identifier(required=True)
    code = String(required=True)


@storefront.event(part_of="Discount")
class DiscountUsed:
    """A discount was consumed by an order at checkout."""

    __version__ = 1

    discount_id = Identifier(required=True)
    code = String(required=True)
    user_id = Identifier(required=True)
    used_count = Integer(required=True)
