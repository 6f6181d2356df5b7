"""Tests for the Payment aggregate: capture, failure and refunds."""

import pytest
from storefront.errors import InvalidRefund, InvalidStatusTransition
from storefront.payment.events import PaymentCaptured, PaymentInitiated, PaymentRefunded
from storefront.payment.payment import Payment, PaymentStatus, to_minor_units


def _make_payment(method="razorpay", amount=1000.0):
    payment = Payment.create(
        order_id="ord-001",
        order_number="ORD1",
        customer_id="cust-001",
        amount=amount,
        currency="INR",
        method=method,
    )
    payment._events.clear()
    return payment


def _captured_payment(amount=1000.0):
    payment = _make_payment(amount=amount)
    payment.attach_gateway_order("fake_order_1", "order_ord-001")
    payment.capture("pay_1", "sig")
    payment._events.clear()
    return payment


class TestMinorUnits:
    def test_rounds_to_paise(self):
        assert to_minor_units(199.99) == 19999
        assert to_minor_units(1000) == 100000


class TestLifecycle:
    def test_create_raises_initiated_event(self):
        payment = Payment.create(
            order_id="ord-001",
            order_number="ORD1",
            customer_id="cust-001",
            amount=10.0,
            currency="INR",
            method="cod",
        )
        assert payment.status == PaymentStatus.CREATED.value
        assert isinstance(payment._events[0], PaymentInitiated)

    def test_capture(self):
        payment = _make_payment()
        payment.capture("pay_1", "sig")
        assert payment.status == PaymentStatus.CAPTURED.value
        assert payment.gateway_payment_id == "pay_1"
        assert payment.captured_at is not None
        assert isinstance(payment._events[0], PaymentCaptured)

    def test_capture_twice_is_rejected(self):
        payment = _captured_payment()
        with pytest.raises(InvalidStatusTransition):
            payment.capture()

    def test_fail_then_capture(self):
        payment = _make_payment()
        payment.fail("Card declined")
        assert payment.failure_reason == "Card declined"
        payment.capture("pay_2")
        assert payment.status == PaymentStatus.CAPTURED.value
        assert payment.failure_reason is None

    def test_captured_payment_cannot_fail(self):
        payment = _captured_payment()
        with pytest.raises(InvalidStatusTransition):
            payment.fail("Too late")


class TestRefunds:
    def test_partial_refund(self):
        payment = _captured_payment()
        payment.record_refund(400.0, reason="One item returned", gateway_refund_id="rfnd_1")
        assert payment.total_refunded == 400.0
        assert payment.refundable_amount == 600.0
        assert payment.status == PaymentStatus.CAPTURED.value
        event = payment._events[0]
        assert isinstance(event, PaymentRefunded)
        assert event.fully_refunded is False

    def test_full_refund_marks_payment_refunded(self):
        payment = _captured_payment()
        payment.record_refund(600.0)
        payment.record_refund(400.0)
        assert payment.status == PaymentStatus.REFUNDED.value
        assert len(payment.refunds) == 2

    def test_refund_above_remaining_is_rejected(self):
        payment = _captured_payment()
        payment.record_refund(600.0)
        with pytest.raises(InvalidRefund):
            payment.record_refund(400.01)

    @pytest.mark.parametrize("amount", [0, -5.0])
    def test_non_positive_refund_is_rejected(self, amount):
        with pytest.raises(InvalidRefund):
            _captured_payment().check_refundable(amount)

    def test_uncaptured_payment_cannot_be_refunded(self):
        with pytest.raises(InvalidRefund):
            _make_payment().record_refund(10.0)
