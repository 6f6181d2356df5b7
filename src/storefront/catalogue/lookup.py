"""Read-only catalogue lookups used by carts, orders and discounts."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.catalogue.product import Product
from storefront.errors import ProductNotFound


def get_product_by_id(product_id):
    """Load a product from the store. Raises ``ProductNotFound`` if absent."""
    try:
        return current_domain.repository_for(Product).get(product_id)
    except ObjectNotFoundError:
        raise ProductNotFound({"product_id": [f"Product {product_id} not found"]}) from None


def find_product(product_id):
    """Like ``get_product_by_id`` but returns None for a missing product."""
    try:
        return current_domain.repository_for(Product).get(product_id)
    except ObjectNotFoundError:
        return None


def get_available_sizes(product_id, color_name=None):
    return get_product_by_id(product_id).available_sizes(color_name)
