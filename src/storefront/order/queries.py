"""Read access to orders for customers and administrators."""

from collections import defaultdict

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from storefront.errors import OrderNotFound
from storefront.order.order import Order, OrderStatus

MAX_PAGE_SIZE = 100


def _status_filter(status):
    if not status:
        return None
    try:
        return OrderStatus(status).value
    except ValueError:
        raise ValidationError({"status": [f"Unknown order status: {status}"]}) from None


def get_order(order_id):
    try:
        return current_domain.repository_for(Order).get(order_id)
    except ObjectNotFoundError:
        raise OrderNotFound({"order_id": ["Order not found"]}) from None


def get_order_by_number(order_number):
    order = current_domain.repository_for(Order).find_by_number(order_number)
    if order is None:
        raise OrderNotFound({"order_number": ["Order not found"]})
    return order


def list_customer_orders(customer_id, status=None):
    """A customer's orders, newest first, optionally narrowed to one status."""
    return current_domain.repository_for(Order).for_customer(customer_id, _status_filter(status))


def check_paging(page, limit):
    if page < 1:
        raise ValidationError({"page": ["Page must be greater than 0"]})
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError({"limit": [f"Limit must be between 1 and {MAX_PAGE_SIZE}"]})


def list_orders(page=1, limit=10, status=None):
    """Administrative listing, newest first. Returns ``(orders, total)``."""
    check_paging(page, limit)
    result = current_domain.repository_for(Order).page(
        status=_status_filter(status),
        offset=(page - 1) * limit,
        limit=limit,
    )
    return result.items, result.total


def search_orders(term, customer_id=None, page=1, limit=10):
    """Orders whose number, product name or product code contains ``term``.

    Newest first, optionally narrowed to one customer. Returns ``(orders, total)``.
    """
    term = (term or "").strip()
    if not term:
        raise ValidationError({"q": ["Search term is required"]})
    check_paging(page, limit)

    matches = current_domain.repository_for(Order).search(term, customer_id)
    start = (page - 1) * limit
    return matches[start : start + limit], len(matches)


def order_stats(customer_id=None):
    """Order count and summed totals per status."""
    stats = defaultdict(lambda: {"count": 0, "total_amount": 0.0})
    for order in current_domain.repository_for(Order).everything(customer_id):
        entry = stats[order.status]
        entry["count"] += 1
        entry["total_amount"] = round(entry["total_amount"] + order.total, 2)
    return dict(stats)
