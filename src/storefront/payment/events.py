"""Domain events for the Payment aggregate."""

from protean.fields import Boolean, DateTime, Float, Identifier, String

from storefront.domain import storefront


@storefront.event(part_of="Payment")
class PaymentInitiated:
    """A payment record was created for an order."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    amount = Float(required=True)
    currency = String(required=True)
    method = String(required=True)
    initiated_at = DateTime(required=True)


@storefront.event(part_of="Payment")
class GatewayOrderCreated:
    """The gateway accepted a charge the customer can now pay against."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    gateway_order_id = String(required=True)
    receipt = String(required=True)


@storefront.event(part_of="Payment")
class PaymentCaptured:
    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    amount = Float(required=True)
    currency = String(required=True)
    method = String(required=True)
    gateway_payment_id = String()
    captured_at = DateTime(required=True)


@storefront.event(part_of="Payment")
class PaymentFailed:
    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    reason = String(required=True)
    gateway_payment_id = String()
    failed_at = DateTime(required=True)


@storefront.event(part_of="Payment")
class PaymentRefunded:
    """Part or all of a captured payment was given back."""

    __version__ = 1

    payment_id = Identifier(required=True)
    order_id = Identifier(required=True)
    refund_id = Identifier(required=True)
    amount = Float(required=True)
    total_refunded = Float(required=True)
    fully_refunded = Boolean(required=True)
    refunded_at = DateTime(required=True)
