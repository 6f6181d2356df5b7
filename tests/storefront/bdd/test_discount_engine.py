"""BDD tests for discount calculation and consumption."""

from datetime import UTC, datetime, timedelta

import pytest
from protean.exceptions import ProteanException
from pytest_bdd import given, parsers, scenarios, then, when

from storefront.discount.discount import Discount
from storefront.discount.engine import PricedLine, calculate_discount

scenarios("features/discount_engine.feature")


def _create(code, kind="coupon", discount_type="percentage", **fields):
    return Discount.create(
        code=code,
        kind=kind,
        discount_type=discount_type,
        valid_until=datetime.now(UTC) + timedelta(days=30),
        **fields,
    )


@pytest.fixture()
def cart_lines():
    return []


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a percentage coupon "{code}" worth {value:g} capped at {cap:g}'), target_fixture="discount")
def capped_percentage_coupon(code, value, cap):
    return _create(code, value=value, max_discount=cap)


@given(
    parsers.cfparse('a percentage coupon "{code}" worth {value:g} with a minimum purchase of {minimum:g}'),
    target_fixture="discount",
)
def percentage_coupon_with_minimum(code, value, minimum):
    return _create(code, value=value, min_purchase=minimum)


@given(parsers.cfparse('a fixed voucher "{code}" worth {value:g}'), target_fixture="discount")
def fixed_voucher(code, value):
    return _create(code, kind="voucher", discount_type="fixed", value=value)


@given(parsers.cfparse('a buy {buy_x:d} get {get_y:d} coupon "{code}"'), target_fixture="discount")
def buy_x_get_y_coupon(code, buy_x, get_y):
    return _create(code, discount_type="buyXgetY", buy_x=buy_x, get_y=get_y)


@given("the coupon is deactivated")
def deactivated(discount):
    discount.deactivate()


@given(parsers.cfparse('the coupon was used by "{user_id}"'))
def used_by(discount, user_id):
    discount.mark_used(user_id)


@given(parsers.cfparse("the cart holds {units:d} units at {price:g}"))
def cart_holds(cart_lines, units, price):
    cart_lines.append(
        PricedLine(
            product_id=f"prod-{len(cart_lines) + 1}",
            category_id="cat-tees",
            unit_price=price,
            quantity=units,
        )
    )


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when("the discount is calculated", target_fixture="calculation")
def calculate(discount, cart_lines, error):
    subtotal = round(sum(line.unit_price * line.quantity for line in cart_lines), 2)
    try:
        return calculate_discount(discount, subtotal, cart_lines)
    except ProteanException as exc:
        error["exc"] = exc
        return None


@when(parsers.cfparse('"{user_id}" uses the coupon'))
def uses_coupon(discount, error, user_id):
    try:
        discount.mark_used(user_id)
    except ProteanException as exc:
        error["exc"] = exc


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the discount amount is {amount:g}"))
def discount_amount_is(calculation, amount):
    assert calculation.discount_amount == amount


@then(parsers.cfparse("the discounted total is {total:g}"))
def discounted_total_is(calculation, total):
    assert calculation.discounted_total == total


@then(parsers.cfparse('the discount is rejected with "{error_name}"'))
def rejected_with(error, error_name):
    assert error["exc"] is not None, "Expected the discount to be rejected"
    assert type(error["exc"]).__name__ == error_name


@then(parsers.cfparse("the coupon has been used {times:d} times"))
def used_times(discount, times):
    assert discount.used_count == times
