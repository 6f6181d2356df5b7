"""Payment aggregate: one payment per order, and the refunds against it.

State Machine:
    CREATED → CAPTURED → REFUNDED (once the full amount is refunded)
    CREATED → FAILED → CAPTURED (the customer paid on a second try)

Amounts are held in major units. The gateway boundary converts to minor
units (paise) with ``to_minor_units``.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Float, HasMany, Identifier, String

from storefront.domain import storefront
from storefront.errors import InvalidRefund, InvalidStatusTransition
from storefront.order.order import PaymentMethod
from storefront.payment.events import (
    GatewayOrderCreated,
    PaymentCaptured,
    PaymentFailed,
    PaymentInitiated,
    PaymentRefunded,
)


def to_minor_units(amount: float) -> int:
    return round(amount * 100)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class PaymentStatus(Enum):
    CREATED = "created"
    CAPTURED = "captured"
    FAILED = "failed"
    REFUNDED = "refunded"


_VALID_TRANSITIONS = {
    PaymentStatus.CREATED: {PaymentStatus.CAPTURED, PaymentStatus.FAILED},
    PaymentStatus.FAILED: {PaymentStatus.CAPTURED},
    PaymentStatus.CAPTURED: {PaymentStatus.REFUNDED},
    PaymentStatus.REFUNDED: set(),  # Terminal
}


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="Payment")
class Refund:
    """A refund against this payment."""

    amount = Float(required=True, min_value=0.0)
    reason = String(max_length=500)
    gateway_refund_id = String(max_length=255)
    status = String(max_length=20, default="processed")
    created_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storefront.aggregate
class Payment:
    order_id = Identifier(required=True)
    order_number = String(max_length=40)
    customer_id = Identifier(required=True)
    gateway_order_id = String(max_length=255)
    gateway_payment_id = String(max_length=255)
    gateway_signature = String(max_length=255)
    amount = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="INR")
    method = String(required=True, choices=PaymentMethod)
    status = String(choices=PaymentStatus, default=PaymentStatus.CREATED.value)
    failure_reason = String(max_length=500)
    receipt = String(max_length=100)
    refunds = HasMany(Refund)
    total_refunded = Float(default=0.0)
    captured_at = DateTime()
    failed_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, order_id, order_number, customer_id, amount, currency, method):
        now = datetime.now(UTC)
        payment = cls(
            order_id=order_id,
            order_number=order_number,
            customer_id=customer_id,
            amount=amount,
            currency=currency,
            method=method,
            status=PaymentStatus.CREATED.value,
            created_at=now,
            updated_at=now,
        )
        payment.raise_(
            PaymentInitiated(
                payment_id=str(payment.id),
                order_id=str(order_id),
                customer_id=str(customer_id),
                amount=amount,
                currency=currency,
                method=method,
                initiated_at=now,
            )
        )
        return payment

    @property
    def is_captured(self):
        return PaymentStatus(self.status) == PaymentStatus.CAPTURED

    @property
    def refundable_amount(self):
        return round(self.amount - (self.total_refunded or 0.0), 2)

    def belongs_to(self, customer_id):
        return str(self.customer_id) == str(customer_id)

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        current = PaymentStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidStatusTransition(
                {"status": [f"Cannot move payment from {current.value} to {target_status.value}"]}
            )

    # -------------------------------------------------------------------
    # Payment lifecycle
    # -------------------------------------------------------------------
    def attach_gateway_order(self, gateway_order_id, receipt):
        """Record the remote charge the customer pays against."""
        self.gateway_order_id = gateway_order_id
        self.receipt = receipt
        self.updated_at = datetime.now(UTC)

        self.raise_(
            GatewayOrderCreated(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                gateway_order_id=gateway_order_id,
                receipt=receipt,
            )
        )

    def capture(self, gateway_payment_id=None, signature=None):
        self._assert_can_transition(PaymentStatus.CAPTURED)
        now = datetime.now(UTC)
        self.status = PaymentStatus.CAPTURED.value
        if gateway_payment_id:
            self.gateway_payment_id = gateway_payment_id
        if signature:
            self.gateway_signature = signature
        self.failure_reason = None
        self.captured_at = now
        self.updated_at = now

        self.raise_(
            PaymentCaptured(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                customer_id=str(self.customer_id),
                amount=self.amount,
                currency=self.currency,
                method=self.method,
                gateway_payment_id=self.gateway_payment_id,
                captured_at=now,
            )
        )

    def fail(self, reason, gateway_payment_id=None):
        self._assert_can_transition(PaymentStatus.FAILED)
        now = datetime.now(UTC)
        self.status = PaymentStatus.FAILED.value
        self.failure_reason = reason
        if gateway_payment_id:
            self.gateway_payment_id = gateway_payment_id
        self.failed_at = now
        self.updated_at = now

        self.raise_(
            PaymentFailed(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                customer_id=str(self.customer_id),
                reason=reason,
                gateway_payment_id=self.gateway_payment_id,
                failed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Refunds
    # -------------------------------------------------------------------
    def check_refundable(self, amount):
        """Raise ``InvalidRefund`` unless ``amount`` can be refunded now."""
        if not self.is_captured:
            raise InvalidRefund({"status": ["Only captured payments can be refunded"]})
        if amount is None or amount <= 0 or round(amount, 2) > self.refundable_amount:
            raise InvalidRefund({"amount": ["Invalid refund amount"]})

    def record_refund(self, amount, reason=None, gateway_refund_id=None):
        self.check_refundable(amount)
        now = datetime.now(UTC)
        refund = Refund(amount=amount, reason=reason, gateway_refund_id=gateway_refund_id, created_at=now)
        self.add_refunds(refund)
        self.total_refunded = round((self.total_refunded or 0.0) + amount, 2)

        fully_refunded = self.refundable_amount <= 0
        if fully_refunded:
            self.status = PaymentStatus.REFUNDED.value
        self.updated_at = now

        self.raise_(
            PaymentRefunded(
                payment_id=str(self.id),
                order_id=str(self.order_id),
                refund_id=str(refund.id),
                amount=amount,
                total_refunded=self.total_refunded,
                fully_refunded=fully_refunded,
                refunded_at=now,
            )
        )
        return refund
