"""Payment initiation: command and handler.

Cash on delivery never touches the gateway: the payment is recorded as
captured and the order moves straight to processing. Every other method
asks the gateway for a remote charge the customer then pays against.
"""

import os
from dataclasses import dataclass

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.errors import GatewayError, InvalidStatusTransition, OrderNotOwned, PaymentAlreadyInitiated
from storefront.gateway import get_gateway
from storefront.order.order import Order, OrderStatus, PaymentMethod
from storefront.order.queries import get_order
from storefront.payment.payment import Payment, to_minor_units

logger = structlog.get_logger(__name__)


def payment_currency():
    return os.environ.get("STOREFRONT_CURRENCY", "INR")


@storefront.command(part_of="Payment")
class InitiatePayment:
    """Start paying for an order. ``method`` defaults to the order's method."""

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    method = String(choices=PaymentMethod)


@dataclass(frozen=True)
class PaymentInitiation:
    payment_id: str
    order_id: str
    method: str
    status: str
    amount: float
    currency: str
    amount_minor_units: int
    gateway_order_id: str | None = None
    receipt: str | None = None


@storefront.command_handler(part_of=Payment)
class InitiatePaymentHandler:
    @handle(InitiatePayment)
    def initiate_payment(self, command):
        order = get_order(command.order_id)
        if not order.belongs_to(command.customer_id):
            raise OrderNotOwned({"order_id": ["Order does not belong to user"]})

        repo = current_domain.repository_for(Payment)
        if repo.for_order(str(order.id)) is not None:
            raise PaymentAlreadyInitiated({"order_id": ["Payment already initiated for this order"]})
        if OrderStatus(order.status) != OrderStatus.PENDING:
            raise InvalidStatusTransition({"status": [f"Cannot pay for an order with status: {order.status}"]})

        method = command.method or order.payment_method or PaymentMethod.RAZORPAY.value
        currency = payment_currency()
        payment = Payment.create(
            order_id=str(order.id),
            order_number=order.order_number,
            customer_id=command.customer_id,
            amount=order.total,
            currency=currency,
            method=method,
        )

        if method == PaymentMethod.COD.value:
            payment.capture()
            order.start_processing()
            current_domain.repository_for(Order).add(order)
        else:
            result = get_gateway().create_charge(
                order_ref=str(order.id),
                amount_minor_units=to_minor_units(order.total),
                currency=currency,
                metadata={
                    "order_id": str(order.id),
                    "order_number": order.order_number,
                    "customer_id": str(command.customer_id),
                },
            )
            if not result.success:
                logger.error(
                    "gateway_charge_failed",
                    order_id=str(order.id),
                    reason=result.failure_reason,
                )
                raise GatewayError({"payment": [f"Payment gateway error: {result.failure_reason}"]})
            payment.attach_gateway_order(result.gateway_order_id, result.receipt or f"order_{order.id}")

        repo.add(payment)

        logger.info(
            "payment_initiated",
            payment_id=str(payment.id),
            order_id=str(order.id),
            method=method,
            amount=payment.amount,
        )
        return PaymentInitiation(
            payment_id=str(payment.id),
            order_id=str(order.id),
            method=method,
            status=payment.status,
            amount=payment.amount,
            currency=currency,
            amount_minor_units=to_minor_units(payment.amount),
            gateway_order_id=payment.gateway_order_id,
            receipt=payment.receipt,
        )
