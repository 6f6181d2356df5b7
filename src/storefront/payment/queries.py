"""Payment lookups, admin listings and statistics. Customer-facing lookups check ownership."""

from collections import defaultdict

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from storefront.discount.discount import as_utc
from storefront.errors import PaymentNotFound, PaymentNotOwned
from storefront.order.order import PaymentMethod
from storefront.order.queries import check_paging, get_order_by_number
from storefront.payment.payment import Payment, PaymentStatus


def _owned(payment, customer_id):
    if customer_id and not payment.belongs_to(customer_id):
        raise PaymentNotOwned({"payment_id": ["Payment does not belong to user"]})
    return payment


def get_payment(payment_id, customer_id=None):
    try:
        payment = current_domain.repository_for(Payment).get(payment_id)
    except ObjectNotFoundError:
        raise PaymentNotFound({"payment_id": ["Payment not found"]}) from None
    return _owned(payment, customer_id)


def get_payment_for_order(order_id, customer_id=None):
    payment = current_domain.repository_for(Payment).for_order(order_id)
    if payment is None:
        raise PaymentNotFound({"order_id": ["Payment not found"]})
    return _owned(payment, customer_id)


def get_payment_by_order_number(order_number, customer_id=None):
    order = get_order_by_number(order_number)
    return get_payment_for_order(str(order.id), customer_id)


def get_payment_by_gateway_order(gateway_order_id):
    payment = current_domain.repository_for(Payment).find_by_gateway_order(gateway_order_id)
    if payment is None:
        raise PaymentNotFound({"gateway_order_id": ["Payment not found"]})
    return payment


def list_customer_payments(customer_id):
    return current_domain.repository_for(Payment).for_customer(customer_id)


def _choice(enum_cls, value, field_name):
    if not value:
        return None
    try:
        return enum_cls(value).value
    except ValueError:
        raise ValidationError({field_name: [f"Unknown {field_name}: {value}"]}) from None


def list_payments(method=None, status=None, start=None, end=None, page=1, limit=10):
    """Administrative listing, newest first, by method, status and creation window.

    Returns ``(payments, total)``.
    """
    check_paging(page, limit)
    start, end = as_utc(start), as_utc(end)
    if start and end and end < start:
        raise ValidationError({"end": ["End date must not be before start date"]})

    result = current_domain.repository_for(Payment).filtered(
        method=_choice(PaymentMethod, method, "method"),
        status=_choice(PaymentStatus, status, "status"),
        start=start,
        end=end,
        offset=(page - 1) * limit,
        limit=limit,
    )
    return result.items, result.total


def payment_stats(customer_id=None):
    """Counts and amounts across all payments, or one customer's.

    A partially refunded payment stays captured, so it is counted as both
    successful and partially refunded.
    """
    payments = current_domain.repository_for(Payment).everything(customer_id)
    captured = [p for p in payments if p.status == PaymentStatus.CAPTURED.value]
    return {
        "total_payments": len(payments),
        "total_amount": round(sum(p.amount for p in payments), 2),
        "successful_payments": len(captured),
        "failed_payments": sum(1 for p in payments if p.status == PaymentStatus.FAILED.value),
        "refunded_payments": sum(1 for p in payments if p.status == PaymentStatus.REFUNDED.value),
        "partially_refunded_payments": sum(1 for p in captured if (p.total_refunded or 0) > 0),
        "successful_amount": round(sum(p.amount for p in captured), 2),
        "refunded_amount": round(sum(p.total_refunded or 0 for p in payments), 2),
    }


def method_stats(customer_id=None):
    """Per payment method: count, amount and outcomes, largest amount first."""
    stats = defaultdict(lambda: {"count": 0, "total_amount": 0.0, "successful_count": 0, "failed_count": 0})
    for payment in current_domain.repository_for(Payment).everything(customer_id):
        entry = stats[payment.method]
        entry["count"] += 1
        entry["total_amount"] = round(entry["total_amount"] + payment.amount, 2)
        if payment.status == PaymentStatus.CAPTURED.value:
            entry["successful_count"] += 1
        elif payment.status == PaymentStatus.FAILED.value:
            entry["failed_count"] += 1
    return sorted(({"method": m, **entry} for m, entry in stats.items()), key=lambda e: e["total_amount"], reverse=True)


def refund_stats(customer_id=None):
    """Refund count and summed amount per refund status."""
    stats = defaultdict(lambda: {"count": 0, "total_amount": 0.0})
    for payment in current_domain.repository_for(Payment).everything(customer_id):
        for refund in payment.refunds:
            entry = stats[refund.status]
            entry["count"] += 1
            entry["total_amount"] = round(entry["total_amount"] + refund.amount, 2)
    return dict(stats)
