"""Checkout pricing policies and identifier generation.

Shipping and tax are named extension points. They charge nothing today;
changing the rules means changing these functions, not the pipeline.
"""

import random
import time

ORDER_NUMBER_ATTEMPTS = 5
ESTIMATED_DELIVERY_DAYS = 7


def shipping_charge(subtotal: float) -> float:
    """Shipping for an order of ``subtotal``. Free for now."""
    return 0.0


def tax_amount(taxable_amount: float) -> float:
    """Tax on the discounted amount. Prices are tax-inclusive for now."""
    return 0.0


def _epoch_millis() -> int:
    return int(time.time() * 1000)


def generate_order_number() -> str:
    """``ORD`` + epoch milliseconds + three random digits."""
    return f"ORD{_epoch_millis()}{random.randint(0, 999):03d}"


def generate_tracking_number() -> str:
    return f"TRK{_epoch_millis()}{random.randint(0, 999)}"
