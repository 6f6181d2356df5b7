from datetime import UTC, datetime, timedelta

import pytest
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from storefront.payment.initiation import InitiatePayment
from storefront.payment.payment import PaymentStatus
from storefront.payment.queries import get_payment, list_payments, method_stats, payment_stats, refund_stats
from storefront.payment.refund import RefundPayment
from storefront.payment.webhook import CapturePayment, FailPayment


def _initiate(order_id, customer_id="cust-001"):
    return current_domain.process(InitiatePayment(order_id=order_id, customer_id=customer_id), asynchronous=False)


@pytest.fixture()
def ledger(checkout, gateway):
    """Four payments: captured and partly refunded, failed, cash on delivery, and still open."""
    _, paid = checkout(price=500.0, quantity=2)
    captured = _initiate(paid.order_id)
    current_domain.process(
        CapturePayment(
            gateway_order_id=captured.gateway_order_id,
            gateway_payment_id="pay_cap",
            signature=gateway.sign_payment(captured.gateway_order_id, "pay_cap"),
        ),
        asynchronous=False,
    )
    current_domain.process(
        RefundPayment(payment_id=captured.payment_id, amount=100.0, reason="Damaged"), asynchronous=False
    )

    _, declined = checkout(price=300.0, quantity=1)
    failed = _initiate(declined.order_id)
    current_domain.process(
        FailPayment(gateway_order_id=failed.gateway_order_id, gateway_payment_id="pay_fail", reason="Card declined"),
        asynchronous=False,
    )

    _, cash = checkout(price=200.0, quantity=1, customer_id="cust-002", payment_method="cod")
    cod = _initiate(cash.order_id, customer_id="cust-002")

    _, open_order = checkout(price=100.0, quantity=1, payment_method="wallet")
    pending = _initiate(open_order.order_id)

    return {
        name: get_payment(initiation.payment_id)
        for name, initiation in {"captured": captured, "failed": failed, "cod": cod, "pending": pending}.items()
    }


class TestListPayments:
    def test_everything_newest_first(self, ledger):
        payments, total = list_payments(limit=10)
        assert total == 4
        assert str(payments[0].id) == str(ledger["pending"].id)

    def test_by_method(self, ledger):
        payments, total = list_payments(method="cod")
        assert total == 1
        assert str(payments[0].id) == str(ledger["cod"].id)

    def test_by_status(self, ledger):
        payments, total = list_payments(status="failed")
        assert total == 1
        assert payments[0].failure_reason == "Card declined"

    def test_by_creation_window(self, ledger):
        now = datetime.now(UTC)
        _, total = list_payments(start=now - timedelta(hours=1), end=now + timedelta(hours=1))
        assert total == 4
        assert list_payments(start=now + timedelta(hours=1)) == ([], 0)
        assert list_payments(end=now - timedelta(hours=1)) == ([], 0)

    def test_paged(self, ledger):
        first, total = list_payments(page=1, limit=3)
        second, _ = list_payments(page=2, limit=3)
        assert total == 4
        assert len(first) == 3
        assert len(second) == 1

    def test_unknown_method(self):
        with pytest.raises(ValidationError) as exc:
            list_payments(method="barter")
        assert "method" in exc.value.messages

    def test_unknown_status(self):
        with pytest.raises(ValidationError) as exc:
            list_payments(status="lost")
        assert "status" in exc.value.messages

    def test_end_before_start(self):
        now = datetime.now(UTC)
        with pytest.raises(ValidationError) as exc:
            list_payments(start=now, end=now - timedelta(days=1))
        assert "end" in exc.value.messages


class TestPaymentStats:
    def test_across_all_customers(self, ledger):
        stats = payment_stats()

        assert stats["total_payments"] == 4
        assert stats["total_amount"] == pytest.approx(sum(p.amount for p in ledger.values()))
        assert stats["successful_payments"] == 2
        assert stats["failed_payments"] == 1
        assert stats["refunded_payments"] == 0
        assert stats["partially_refunded_payments"] == 1
        assert stats["successful_amount"] == pytest.approx(ledger["captured"].amount + ledger["cod"].amount)
        assert stats["refunded_amount"] == 100.0

    def test_one_customer(self, ledger):
        stats = payment_stats("cust-002")
        assert stats["total_payments"] == 1
        assert stats["successful_payments"] == 1
        assert stats["refunded_amount"] == 0

    def test_no_payments(self):
        stats = payment_stats()
        assert stats["total_payments"] == 0
        assert stats["total_amount"] == 0

    def test_full_refund_moves_to_refunded(self, ledger):
        captured = ledger["captured"]
        current_domain.process(
            RefundPayment(payment_id=str(captured.id), amount=round(captured.amount - 100.0, 2)), asynchronous=False
        )

        stats = payment_stats()
        assert stats["refunded_payments"] == 1
        assert stats["partially_refunded_payments"] == 0
        assert stats["refunded_amount"] == pytest.approx(captured.amount)
        assert get_payment(str(captured.id)).status == PaymentStatus.REFUNDED.value


class TestMethodStats:
    def test_grouped_and_sorted_by_amount(self, ledger):
        stats = method_stats()

        by_method = {entry["method"]: entry for entry in stats}
        assert set(by_method) == {"razorpay", "cod", "wallet"}
        assert by_method["razorpay"]["count"] == 2
        assert by_method["razorpay"]["successful_count"] == 1
        assert by_method["razorpay"]["failed_count"] == 1
        assert by_method["cod"]["successful_count"] == 1
        assert by_method["wallet"]["successful_count"] == by_method["wallet"]["failed_count"] == 0

        amounts = [entry["total_amount"] for entry in stats]
        assert amounts == sorted(amounts, reverse=True)
        assert stats[0]["method"] == "razorpay"

    def test_one_customer(self, ledger):
        assert [entry["method"] for entry in method_stats("cust-002")] == ["cod"]


class TestRefundStats:
    def test_grouped_by_refund_status(self, ledger):
        assert refund_stats() == {"processed": {"count": 1, "total_amount": 100.0}}

    def test_customer_without_refunds(self, ledger):
        assert refund_stats("cust-002") == {}
