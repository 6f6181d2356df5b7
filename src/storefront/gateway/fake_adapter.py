"""Configurable fake payment gateway for development and testing.

The fake never talks to a provider, but it signs and verifies exactly the
way the real checkout flow does: HMAC-SHA256 over ``"{order}|{payment}"``
with the key secret for checkout signatures, and over the raw request body
with the webhook secret for webhooks. Tests can therefore build valid and
invalid signatures with ``sign_payment`` and ``sign_webhook``.

Charges it creates are remembered, and any payment against one of them is
reported captured in full unless ``settle`` recorded something else.

It can be configured at runtime to fail, via ``configure`` or the
/payments/gateway/configure endpoint outside production.
"""

import hashlib
import hmac
import os
from uuid import uuid4

from storefront.gateway.port import ChargeResult, GatewayPayment, PaymentGateway, RefundResult


def _hmac_hex(secret: str, message: bytes | str) -> str:
    if isinstance(message, str):
        message = message.encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self, key_secret: str | None = None, webhook_secret: str | None = None) -> None:
        self.key_secret = key_secret or os.environ.get("GATEWAY_KEY_SECRET", "test-secret")
        self.webhook_secret = webhook_secret or os.environ.get("GATEWAY_WEBHOOK_SECRET", "test-webhook-secret")
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway unavailable"
        self.calls: list[dict] = []
        self.charges: dict[str, int] = {}
        self.payments: dict[str, GatewayPayment] = {}

    def configure(self, should_succeed: bool, failure_reason: str = "Gateway unavailable") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def create_charge(
        self,
        order_ref: str,
        amount_minor_units: int,
        currency: str,
        metadata: dict | None = None,
    ) -> ChargeResult:
        receipt = f"order_{order_ref}"
        self.calls.append(
            {
                "method": "create_charge",
                "order_ref": order_ref,
                "amount_minor_units": amount_minor_units,
                "currency": currency,
                "metadata": metadata or {},
                "receipt": receipt,
            }
        )

        if self.should_succeed:
            gateway_order_id = f"fake_order_{uuid4().hex[:14]}"
            self.charges[gateway_order_id] = amount_minor_units
            return ChargeResult(
                success=True,
                gateway_order_id=gateway_order_id,
                receipt=receipt,
                amount_minor_units=amount_minor_units,
                currency=currency,
            )
        return ChargeResult(success=False, failure_reason=self.failure_reason)

    def create_refund(
        self,
        gateway_payment_id: str,
        amount_minor_units: int,
        reason: str | None = None,
    ) -> RefundResult:
        self.calls.append(
            {
                "method": "create_refund",
                "gateway_payment_id": gateway_payment_id,
                "amount_minor_units": amount_minor_units,
                "reason": reason,
            }
        )

        if self.should_succeed:
            return RefundResult(success=True, gateway_refund_id=f"fake_rfnd_{uuid4().hex[:14]}")
        return RefundResult(success=False, failure_reason=self.failure_reason)

    def settle(
        self,
        gateway_order_id: str,
        gateway_payment_id: str,
        amount_minor_units: int | None = None,
        status: str = "captured",
    ) -> GatewayPayment:
        """Record what the customer actually paid against a charge."""
        payment = GatewayPayment(
            gateway_payment_id=gateway_payment_id,
            gateway_order_id=gateway_order_id,
            status=status,
            amount_minor_units=(
                amount_minor_units if amount_minor_units is not None else self.charges.get(gateway_order_id, 0)
            ),
        )
        self.payments[gateway_payment_id] = payment
        return payment

    def fetch_payment(self, gateway_order_id: str, gateway_payment_id: str) -> GatewayPayment | None:
        self.calls.append(
            {
                "method": "fetch_payment",
                "gateway_order_id": gateway_order_id,
                "gateway_payment_id": gateway_payment_id,
            }
        )

        if gateway_payment_id in self.payments:
            return self.payments[gateway_payment_id]
        # Unsettled payments against a known charge are captured in full
        if gateway_order_id in self.charges:
            return GatewayPayment(
                gateway_payment_id=gateway_payment_id,
                gateway_order_id=gateway_order_id,
                status="captured",
                amount_minor_units=self.charges[gateway_order_id],
            )
        return None

    def sign_payment(self, gateway_order_id: str, gateway_payment_id: str) -> str:
        return _hmac_hex(self.key_secret, f"{gateway_order_id}|{gateway_payment_id}")

    def sign_webhook(self, payload: bytes | str) -> str:
        return _hmac_hex(self.webhook_secret, payload)

    def verify_signature(self, gateway_order_id: str, gateway_payment_id: str, signature: str) -> bool:
        if not signature:
            return False
        return hmac.compare_digest(self.sign_payment(gateway_order_id, gateway_payment_id), signature)

    def verify_webhook_signature(self, payload: bytes | str, signature: str) -> bool:
        if not signature:
            return False
        return hmac.compare_digest(self.sign_webhook(payload), signature)
