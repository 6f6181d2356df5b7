"""Payment refunds: command and handler.

Cash on delivery payments are refunded outside the gateway, so only the
record is kept for them.
"""

import structlog
from protean import handle
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.errors import GatewayError
from storefront.gateway import get_gateway
from storefront.order.order import PaymentMethod
from storefront.payment.payment import Payment, to_minor_units
from storefront.payment.queries import get_payment

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Payment")
class RefundPayment:
    payment_id = Identifier(required=True)
    amount = Float(required=True)
    reason = String(max_length=500)


@storefront.command_handler(part_of=Payment)
class RefundHandler:
    @handle(RefundPayment)
    def refund_payment(self, command):
        payment = get_payment(command.payment_id)
        payment.check_refundable(command.amount)

        gateway_refund_id = None
        if payment.method != PaymentMethod.COD.value:
            result = get_gateway().create_refund(
                gateway_payment_id=payment.gateway_payment_id,
                amount_minor_units=to_minor_units(command.amount),
                reason=command.reason,
            )
            if not result.success:
                logger.error("gateway_refund_failed", payment_id=str(payment.id), reason=result.failure_reason)
                raise GatewayError({"refund": [f"Payment gateway error: {result.failure_reason}"]})
            gateway_refund_id = result.gateway_refund_id

        refund = payment.record_refund(command.amount, reason=command.reason, gateway_refund_id=gateway_refund_id)
        current_domain.repository_for(Payment).add(payment)

        logger.info(
            "payment_refunded",
            payment_id=str(payment.id),
            refund_id=str(refund.id),
            amount=command.amount,
            status=payment.status,
        )
        return payment
