"""Discount calculation over a priced cart snapshot.

Everything in this module is a pure function of its inputs: the discount
record, the subtotal and the priced lines. Amounts are rounded to two
decimals once, on the final figure.
"""

from dataclasses import dataclass
from datetime import datetime

from storefront.discount.discount import DiscountType
from storefront.errors import InvalidDiscountConfiguration


@dataclass(frozen=True)
class PricedLine:
    """A cart line priced at the current catalogue price."""

    product_id: str
    category_id: str | None
    unit_price: float
    quantity: int


@dataclass(frozen=True)
class AppliedDiscountSnapshot:
    discount_id: str
    code: str
    kind: str
    discount_type: str
    value: float


@dataclass(frozen=True)
class DiscountCalculation:
    discount_amount: float
    discounted_total: float
    applied_discount: AppliedDiscountSnapshot


def percentage_discount(subtotal: float, percent: float, max_discount: float | None = None) -> float:
    amount = subtotal * (percent / 100)
    if max_discount is not None:
        amount = min(amount, max_discount)
    return amount


def fixed_discount(subtotal: float, value: float) -> float:
    return max(min(value, subtotal), 0.0)


def eligible_unit_prices(lines, applicable_categories=None, excluded_products=None) -> list[float]:
    """Expand eligible lines into one price entry per unit."""
    excluded = {str(p) for p in excluded_products or []}
    categories = {str(c) for c in applicable_categories or []}

    prices = []
    for line in lines:
        if str(line.product_id) in excluded:
            continue
        if categories and str(line.category_id) not in categories:
            continue
        prices.extend([line.unit_price] * line.quantity)
    return prices


def free_unit_count(units: int, buy_x: int, get_y: int) -> int:
    """Free units earned by ``units`` eligible units.

    Each complete group of ``buy_x + get_y`` earns ``get_y`` free units. A
    trailing partial group that has reached ``buy_x`` units earns
    ``min(get_y, remainder - buy_x)`` more.
    """
    group_size = buy_x + get_y
    complete_groups = units // group_size
    free = complete_groups * get_y

    remainder = units - complete_groups * group_size
    if remainder >= buy_x:
        free += min(get_y, remainder - buy_x)
    return free


def buy_x_get_y_discount(unit_prices, buy_x, get_y) -> float:
    """Sum of the cheapest free units."""
    if not buy_x or not get_y or buy_x < 0 or get_y < 0:
        raise InvalidDiscountConfiguration({"discount_type": ["Invalid buyXgetY discount configuration"]})

    free = free_unit_count(len(unit_prices), buy_x, get_y)
    if free == 0:
        return 0.0
    return sum(sorted(unit_prices)[:free])


def calculate_discount(discount, subtotal: float, lines, now: datetime | None = None) -> DiscountCalculation:
    """Validate ``discount`` against the snapshot and compute what it takes off."""
    discount.validate(subtotal, now)

    discount_type = DiscountType(discount.discount_type)
    if discount_type == DiscountType.PERCENTAGE:
        amount = percentage_discount(subtotal, discount.value, discount.max_discount)
    elif discount_type == DiscountType.FIXED:
        amount = fixed_discount(subtotal, discount.value)
    else:
        unit_prices = eligible_unit_prices(lines, discount.category_list, discount.excluded_list)
        amount = buy_x_get_y_discount(unit_prices, discount.buy_x, discount.get_y)

    amount = round(amount, 2)
    return DiscountCalculation(
        discount_amount=amount,
        discounted_total=round(subtotal - amount, 2),
        applied_discount=AppliedDiscountSnapshot(
            discount_id=str(discount.id),
            code=discount.code,
            kind=discount.kind,
            discount_type=discount.discount_type,
            value=discount.value,
        ),
    )
