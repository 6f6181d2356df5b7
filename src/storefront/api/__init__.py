"""Storefront API package."""

from storefront.api.errors import register_exception_handlers
from storefront.api.routes import cart_router, discount_router, order_router, payment_router, product_router

__all__ = [
    "cart_router",
    "discount_router",
    "order_router",
    "payment_router",
    "product_router",
    "register_exception_handlers",
]
