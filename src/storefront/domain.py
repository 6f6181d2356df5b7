"""Storefront bounded context: Catalogue, Cart, Discounts, Orders and Payments.

Hosts the cart-to-order pipeline: carts are priced against the live catalogue,
discounts are computed on demand and only consumed at checkout, and placing an
order reserves stock and clears the cart in one unit of work.
"""

import structlog
from protean.domain import Domain

storefront = Domain(name="storefront")

logger = structlog.get_logger(__name__)
