"""BDD tests for the order state machine."""

from protean.exceptions import ValidationError
from pytest_bdd import parsers, scenarios, then, when

scenarios("features/order_lifecycle.feature")


def _attempt(error, action, *args):
    try:
        action(*args)
    except ValidationError as exc:
        error["exc"] = exc


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when("the order starts processing")
def start_processing(order, error):
    _attempt(error, order.start_processing)


@when(parsers.cfparse('the order is shipped with tracking number "{tracking_number}"'))
def ship(order, error, tracking_number):
    _attempt(error, order.ship, tracking_number)


@when("the order is delivered")
def deliver(order, error):
    _attempt(error, order.deliver)


@when(parsers.cfparse('the order is cancelled because "{reason}"'))
def cancel(order, error, reason):
    _attempt(error, order.cancel, reason)


@when(parsers.cfparse('the order is returned because "{reason}"'))
def mark_returned(order, error, reason):
    _attempt(error, order.mark_returned, reason)


@when("the order is reopened")
def reopen(order, error):
    _attempt(error, order.reopen)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the tracking number is "{tracking_number}"'))
def tracking_number_is(order, tracking_number):
    assert order.tracking_number == tracking_number
