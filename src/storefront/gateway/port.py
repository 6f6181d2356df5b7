"""Payment gateway port (abstract interface).

Defines the contract every gateway adapter implements, so the payment
coordinator never depends on a particular provider's client library.
Amounts cross this boundary in minor units (paise for INR).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ChargeResult:
    """Result of creating a remote charge (a gateway-side order)."""

    success: bool
    gateway_order_id: str | None = None
    receipt: str | None = None
    amount_minor_units: int | None = None
    currency: str | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class GatewayPayment:
    """A payment as the gateway recorded it."""

    gateway_payment_id: str
    gateway_order_id: str | None
    status: str
    amount_minor_units: int


@dataclass(frozen=True)
class RefundResult:
    """Result of a refund attempt."""

    success: bool
    gateway_refund_id: str | None = None
    failure_reason: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_charge(
        self,
        order_ref: str,
        amount_minor_units: int,
        currency: str,
        metadata: dict | None = None,
    ) -> ChargeResult:
        """Create a remote charge the customer will pay against."""
        ...

    @abstractmethod
    def create_refund(
        self,
        gateway_payment_id: str,
        amount_minor_units: int,
        reason: str | None = None,
    ) -> RefundResult:
        """Refund part or all of a captured payment."""
        ...

    @abstractmethod
    def verify_signature(
        self,
        gateway_order_id: str,
        gateway_payment_id: str,
        signature: str,
    ) -> bool:
        """Check the signature the checkout widget returns after payment."""
        ...

    @abstractmethod
    def verify_webhook_signature(self, payload: bytes | str, signature: str) -> bool:
        """Verify that a webhook payload is authentically from the gateway."""
        ...

    @abstractmethod
    def fetch_payment(self, gateway_order_id: str, gateway_payment_id: str) -> GatewayPayment | None:
        """Look up a payment made against one of our charges. None when the gateway has no such payment."""
        ...
