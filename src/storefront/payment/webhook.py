"""Gateway callbacks: capture and failure, plus checkout signature checks.

Both callbacks find the payment by the gateway's order id. Capture is
idempotent: a capture delivered twice returns the payment untouched, so the
confirmation is sent and the cart cleared only once.
"""

import structlog
from protean import handle
from protean.fields import Integer, String
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.cart.repository import find_cart
from storefront.domain import storefront
from storefront.errors import CaptureMismatch, InvalidSignature
from storefront.gateway import get_gateway
from storefront.notification import get_sender
from storefront.order.order import Order, OrderStatus
from storefront.order.queries import get_order
from storefront.payment.payment import Payment, PaymentStatus, to_minor_units
from storefront.payment.queries import get_payment_by_gateway_order

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Payment")
class CapturePayment:
    gateway_order_id = String(required=True, max_length=255)
    gateway_payment_id = String(required=True, max_length=255)
    signature = String(max_length=255)  # Checked when present
    amount_minor_units = Integer()  # As reported by a webhook, checked when present
    status = String(max_length=20)  # As reported by a webhook, checked when present


@storefront.command(part_of="Payment")
class FailPayment:
    gateway_order_id = String(required=True, max_length=255)
    gateway_payment_id = String(max_length=255)
    reason = String(max_length=500, default="Payment failed")


def verify_payment_signature(gateway_order_id, gateway_payment_id, signature) -> bool:
    """True when ``signature`` is the gateway's HMAC of the order and payment ids."""
    return get_gateway().verify_signature(gateway_order_id, gateway_payment_id, signature)


def check_gateway_capture(payment, command):
    """The gateway must report this payment captured in full against the payment's charge."""
    remote = get_gateway().fetch_payment(command.gateway_order_id, command.gateway_payment_id)
    if remote is None or (remote.gateway_order_id and remote.gateway_order_id != payment.gateway_order_id):
        raise CaptureMismatch(
            {"gateway_payment_id": [f"Gateway has no payment {command.gateway_payment_id} for this order"]}
        )

    expected = to_minor_units(payment.amount)
    reports = (
        ("gateway", remote.status, remote.amount_minor_units),
        ("webhook", command.status, command.amount_minor_units),
    )
    for source, status, amount in reports:
        if status is not None and status != "captured":
            logger.warning("capture_not_confirmed", payment_id=str(payment.id), source=source, status=status)
            raise CaptureMismatch({"status": [f"Payment is {status} according to the {source}, not captured"]})
        if amount is not None and amount != expected:
            logger.warning(
                "capture_amount_mismatch",
                payment_id=str(payment.id),
                source=source,
                expected=expected,
                reported=amount,
            )
            raise CaptureMismatch({"amount": [f"Captured {amount} does not match the expected {expected}"]})


def send_confirmation(payment, order):
    """Best effort: a failed confirmation is logged, never raised."""
    try:
        result = get_sender().send_order_confirmation(str(payment.customer_id), order.snapshot())
    except Exception as exc:  # noqa: BLE001
        logger.error(
            "order_confirmation_failed",
            order_id=str(order.id),
            customer_id=str(payment.customer_id),
            error=str(exc),
        )
        return False

    if result.get("status") != "sent":
        logger.error(
            "order_confirmation_failed",
            order_id=str(order.id),
            customer_id=str(payment.customer_id),
            error=result.get("error"),
        )
        return False
    return True


def clear_customer_cart(customer_id):
    cart = find_cart(customer_id=customer_id)
    if cart is None or not (cart.items or cart.applied_slots()):
        return
    cart.clear()
    current_domain.repository_for(Cart).add(cart)


@storefront.command_handler(part_of=Payment)
class PaymentWebhookHandler:
    @handle(CapturePayment)
    def capture_payment(self, command):
        payment = get_payment_by_gateway_order(command.gateway_order_id)
        if command.signature and not verify_payment_signature(
            command.gateway_order_id, command.gateway_payment_id, command.signature
        ):
            raise InvalidSignature({"signature": ["Invalid payment signature"]})

        if PaymentStatus(payment.status) in (PaymentStatus.CAPTURED, PaymentStatus.REFUNDED):
            logger.info("payment_already_captured", payment_id=str(payment.id))
            return payment

        check_gateway_capture(payment, command)
        payment.capture(command.gateway_payment_id, command.signature)
        current_domain.repository_for(Payment).add(payment)

        order = get_order(payment.order_id)
        if OrderStatus(order.status) == OrderStatus.FAILED:
            order.reopen()
        if order.can_transition_to(OrderStatus.PROCESSING):
            order.start_processing()
            current_domain.repository_for(Order).add(order)
        else:
            logger.warning("captured_order_not_advanced", order_id=str(order.id), status=order.status)

        send_confirmation(payment, order)
        clear_customer_cart(payment.customer_id)

        logger.info("payment_captured", payment_id=str(payment.id), order_id=str(order.id))
        return payment

    @handle(FailPayment)
    def fail_payment(self, command):
        payment = get_payment_by_gateway_order(command.gateway_order_id)
        if PaymentStatus(payment.status) == PaymentStatus.FAILED:
            return payment

        payment.fail(command.reason or "Payment failed", command.gateway_payment_id)
        current_domain.repository_for(Payment).add(payment)

        order = get_order(payment.order_id)
        if order.can_transition_to(OrderStatus.FAILED):
            order.fail()
            current_domain.repository_for(Order).add(order)
        else:
            logger.warning("failed_payment_order_not_updated", order_id=str(order.id), status=order.status)

        logger.info("payment_failed", payment_id=str(payment.id), reason=payment.failure_reason)
        return payment
