"""Read-side helpers for discounts."""

from protean.utils.globals import current_domain

from storefront.discount.discount import Discount
from storefront.discount.management import load_discount, load_discount_by_code


def get_discount(discount_id):
    return load_discount(discount_id)


def get_discount_by_code(code):
    """Case-insensitive lookup. Raises ``DiscountNotFound``."""
    return load_discount_by_code(code)


def list_discounts(active_only=False):
    return current_domain.repository_for(Discount).listing(active_only=active_only)
