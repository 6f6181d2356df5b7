"""Pydantic request/response schemas for the Storefront API.

These are external contracts (anti-corruption layer), separate from the
internal Protean commands. Responses are built from domain objects with the
``from_*`` helpers so routes never hand aggregates to FastAPI directly.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    name: str
    address_line1: str
    address_line2: str | None = None
    city: str
    state: str
    pin_code: str
    country: str = "India"
    phone: str


class StatusResponse(BaseModel):
    status: str


class WarningsMixin(BaseModel):
    warnings: list[str] = []


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------
class RegisterProductRequest(BaseModel):
    code: str
    name: str
    price: float = Field(ge=0)
    original_price: float | None = Field(default=None, ge=0)
    category_id: str | None = None
    description: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "code": "TSHIRT-001",
                    "name": "Classic Cotton Tee",
                    "price": 499.0,
                    "original_price": 699.0,
                    "category_id": "cat-apparel",
                }
            ]
        }
    }


class AddColorRequest(BaseModel):
    name: str
    hex_code: str | None = None
    images: list[str] = []


class SetStockRequest(BaseModel):
    color_name: str
    size: str
    stock: int = Field(ge=0)


class UpdatePriceRequest(BaseModel):
    price: float = Field(ge=0)
    original_price: float | None = Field(default=None, ge=0)


class ProductIdResponse(BaseModel):
    product_id: str


class SizeStockSchema(BaseModel):
    color_name: str
    size: str
    stock: int


class ColorSchema(BaseModel):
    name: str
    hex_code: str | None = None
    images: list[str] = []


class ProductResponse(BaseModel):
    product_id: str
    code: str
    name: str
    price: float
    original_price: float | None = None
    category_id: str | None = None
    is_active: bool
    colors: list[ColorSchema]
    stock_levels: list[SizeStockSchema]

    @classmethod
    def from_product(cls, product):
        return cls(
            product_id=str(product.id),
            code=product.code,
            name=product.name,
            price=product.price,
            original_price=product.original_price,
            category_id=str(product.category_id) if product.category_id else None,
            is_active=product.is_active,
            colors=[ColorSchema(name=c.name, hex_code=c.hex_code, images=c.image_list) for c in product.colors],
            stock_levels=[
                SizeStockSchema(color_name=s.color_name, size=s.size, stock=s.stock) for s in product.stock_levels
            ],
        )


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddCartItemRequest(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)
    color_name: str
    color_hex: str | None = None
    size: str
    selected_image: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "product_id": "prod-001",
                    "quantity": 2,
                    "color_name": "Navy",
                    "color_hex": "#000080",
                    "size": "M",
                }
            ]
        }
    }


class UpdateCartItemRequest(BaseModel):
    quantity: int | None = Field(default=None, ge=1)
    color_name: str | None = None
    color_hex: str | None = None
    size: str | None = None
    selected_image: str | None = None


class ApplyDiscountRequest(BaseModel):
    code: str
    kind: Literal["coupon", "voucher"] = "coupon"


class CartLineSchema(BaseModel):
    item_id: str
    product_id: str
    product_name: str
    product_code: str
    image: str
    unit_price: float
    quantity: int
    color_name: str | None = None
    color_hex: str | None = None
    size: str | None = None
    selected_image: str | None = None
    item_total: float


class CartTotalsSchema(BaseModel):
    subtotal: float = 0.0
    discount_amount: float = 0.0
    total: float = 0.0
    item_count: int = 0


class AppliedDiscountSchema(BaseModel):
    code: str
    discount_id: str
    discount_amount: float


class CartResponse(WarningsMixin):
    cart_id: str | None = None
    items: list[CartLineSchema] = []
    totals: CartTotalsSchema = CartTotalsSchema()
    applied_coupon: AppliedDiscountSchema | None = None
    applied_voucher: AppliedDiscountSchema | None = None
    dropped_lines: list[dict] = []


class CartIssueSchema(BaseModel):
    item_id: str
    product_id: str
    issue: str


class CartValidationResponse(BaseModel):
    valid: bool
    needs_update: bool
    issues: list[CartIssueSchema]


# ---------------------------------------------------------------------------
# Discounts
# ---------------------------------------------------------------------------
class CreateDiscountRequest(BaseModel):
    code: str
    kind: Literal["coupon", "voucher"]
    discount_type: Literal["percentage", "fixed", "buyXgetY"]
    value: float = Field(default=0.0, ge=0)
    min_purchase: float | None = Field(default=None, ge=0)
    max_discount: float | None = Field(default=None, ge=0)
    buy_x: int | None = Field(default=None, ge=0)
    get_y: int | None = Field(default=None, ge=0)
    applicable_categories: list[str] = []
    excluded_products: list[str] = []
    valid_from: datetime | None = None
    valid_until: datetime
    usage_limit: int | None = Field(default=None, ge=0)
    is_active: bool = True

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "code": "WELCOME10",
                    "kind": "coupon",
                    "discount_type": "percentage",
                    "value": 10,
                    "max_discount": 200,
                    "valid_until": "2030-12-31T23:59:59Z",
                }
            ]
        }
    }


class UpdateDiscountRequest(BaseModel):
    code: str | None = None
    kind: Literal["coupon", "voucher"] | None = None
    discount_type: Literal["percentage", "fixed", "buyXgetY"] | None = None
    value: float | None = Field(default=None, ge=0)
    min_purchase: float | None = Field(default=None, ge=0)
    max_discount: float | None = Field(default=None, ge=0)
    buy_x: int | None = Field(default=None, ge=0)
    get_y: int | None = Field(default=None, ge=0)
    applicable_categories: list[str] | None = None
    excluded_products: list[str] | None = None
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    usage_limit: int | None = Field(default=None, ge=0)
    is_active: bool | None = None


class DiscountIdResponse(BaseModel):
    discount_id: str


class DiscountResponse(BaseModel):
    discount_id: str
    code: str
    kind: str
    discount_type: str
    value: float
    min_purchase: float | None = None
    max_discount: float | None = None
    buy_x: int | None = None
    get_y: int | None = None
    applicable_categories: list[str]
    excluded_products: list[str]
    valid_from: datetime | None = None
    valid_until: datetime
    usage_limit: int | None = None
    used_count: int
    is_active: bool

    @classmethod
    def from_discount(cls, discount):
        return cls(
            discount_id=str(discount.id),
            code=discount.code,
            kind=discount.kind,
            discount_type=discount.discount_type,
            value=discount.value,
            min_purchase=discount.min_purchase,
            max_discount=discount.max_discount,
            buy_x=discount.buy_x,
            get_y=discount.get_y,
            applicable_categories=discount.category_list,
            excluded_products=discount.excluded_list,
            valid_from=discount.valid_from,
            valid_until=discount.valid_until,
            usage_limit=discount.usage_limit,
            used_count=discount.used_count or 0,
            is_active=discount.is_active,
        )


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None  # Defaults to the shipping address
    payment_method: Literal["razorpay", "cod", "wallet"] = "razorpay"
    notes: str | None = Field(default=None, max_length=500)


class ReasonRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


class UpdateOrderStatusRequest(BaseModel):
    status: Literal["pending", "processing", "shipped", "delivered", "cancelled", "failed", "returned"]
    tracking_number: str | None = None
    reason: str | None = None


class OrderSummaryResponse(WarningsMixin):
    order_id: str
    order_number: str
    total: float
    item_count: int
    status: str

    @classmethod
    def from_summary(cls, summary):
        return cls(
            order_id=summary.order_id,
            order_number=summary.order_number,
            total=summary.total,
            item_count=summary.item_count,
            status=summary.status,
            warnings=summary.warnings,
        )


class OrderItemSchema(BaseModel):
    item_id: str
    product_id: str
    product_name: str
    product_code: str
    product_image: str | None = None
    color_name: str
    color_hex: str | None = None
    size: str
    selected_image: str | None = None
    quantity: int
    price_at_purchase: float
    item_total: float


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    customer_id: str
    status: str
    items: list[OrderItemSchema]
    shipping_address: AddressSchema | None = None
    billing_address: AddressSchema | None = None
    subtotal: float
    applied_coupon: AppliedDiscountSchema | None = None
    applied_voucher: AppliedDiscountSchema | None = None
    total_discount_amount: float
    shipping_charge: float
    tax_amount: float
    total: float
    payment_method: str | None = None
    notes: str | None = None
    estimated_delivery_date: datetime | None = None
    tracking_number: str | None = None
    cancellation_reason: str | None = None
    return_reason: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_order(cls, order):
        def address(value):
            return AddressSchema(**value.to_dict()) if value else None

        def snapshot(value):
            if not value:
                return None
            return AppliedDiscountSchema(
                code=value.code, discount_id=str(value.discount_id), discount_amount=value.discount_amount
            )

        return cls(
            order_id=str(order.id),
            order_number=order.order_number,
            customer_id=str(order.customer_id),
            status=order.status,
            items=[
                OrderItemSchema(
                    item_id=str(item.id),
                    product_id=str(item.product_id),
                    product_name=item.product_name,
                    product_code=item.product_code,
                    product_image=item.product_image,
                    color_name=item.color_name,
                    color_hex=item.color_hex,
                    size=item.size,
                    selected_image=item.selected_image,
                    quantity=item.quantity,
                    price_at_purchase=item.price_at_purchase,
                    item_total=item.item_total,
                )
                for item in order.items
            ],
            shipping_address=address(order.shipping_address),
            billing_address=address(order.billing_address),
            subtotal=order.subtotal,
            applied_coupon=snapshot(order.applied_coupon),
            applied_voucher=snapshot(order.applied_voucher),
            total_discount_amount=order.total_discount_amount or 0.0,
            shipping_charge=order.shipping_charge or 0.0,
            tax_amount=order.tax_amount or 0.0,
            total=order.total,
            payment_method=order.payment_method,
            notes=order.notes,
            estimated_delivery_date=order.estimated_delivery_date,
            tracking_number=order.tracking_number,
            cancellation_reason=order.cancellation_reason,
            return_reason=order.return_reason,
            created_at=order.created_at,
        )


class OrderListResponse(BaseModel):
    orders: list[OrderResponse]
    total: int
    page: int | None = None
    limit: int | None = None


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------
class InitiatePaymentRequest(BaseModel):
    order_id: str
    method: Literal["razorpay", "cod", "wallet"] | None = None


class PaymentInitiationResponse(BaseModel):
    payment_id: str
    order_id: str
    method: str
    status: str
    amount: float
    currency: str
    amount_minor_units: int
    gateway_order_id: str | None = None
    receipt: str | None = None


class VerifyPaymentRequest(BaseModel):
    gateway_order_id: str
    gateway_payment_id: str
    signature: str


class WebhookPaymentEntity(BaseModel):
    order_id: str
    id: str | None = None
    amount: int | None = None  # Minor units
    status: str | None = None
    error_description: str | None = None


class WebhookRequest(BaseModel):
    event: Literal["payment.captured", "payment.failed"]
    payment: WebhookPaymentEntity


class RefundRequest(BaseModel):
    amount: float = Field(gt=0)
    reason: str | None = None


class RefundSchema(BaseModel):
    refund_id: str
    amount: float
    reason: str | None = None
    gateway_refund_id: str | None = None
    status: str
    created_at: datetime


class PaymentResponse(BaseModel):
    payment_id: str
    order_id: str
    order_number: str | None = None
    customer_id: str
    method: str
    status: str
    amount: float
    currency: str
    gateway_order_id: str | None = None
    gateway_payment_id: str | None = None
    receipt: str | None = None
    failure_reason: str | None = None
    total_refunded: float
    refunds: list[RefundSchema]

    @classmethod
    def from_payment(cls, payment):
        return cls(
            payment_id=str(payment.id),
            order_id=str(payment.order_id),
            order_number=payment.order_number,
            customer_id=str(payment.customer_id),
            method=payment.method,
            status=payment.status,
            amount=payment.amount,
            currency=payment.currency,
            gateway_order_id=payment.gateway_order_id,
            gateway_payment_id=payment.gateway_payment_id,
            receipt=payment.receipt,
            failure_reason=payment.failure_reason,
            total_refunded=payment.total_refunded or 0.0,
            refunds=[
                RefundSchema(
                    refund_id=str(r.id),
                    amount=r.amount,
                    reason=r.reason,
                    gateway_refund_id=r.gateway_refund_id,
                    status=r.status,
                    created_at=r.created_at,
                )
                for r in payment.refunds
            ],
        )


class PaymentListResponse(BaseModel):
    payments: list[PaymentResponse]
    total: int
    page: int
    limit: int


class PaymentStatsResponse(BaseModel):
    total_payments: int
    total_amount: float
    successful_payments: int
    failed_payments: int
    refunded_payments: int
    partially_refunded_payments: int
    successful_amount: float
    refunded_amount: float


class MethodStatsSchema(BaseModel):
    method: str
    count: int
    total_amount: float
    successful_count: int
    failed_count: int


class ConfigureGatewayRequest(BaseModel):
    should_succeed: bool = True
    failure_reason: str = "Gateway unavailable"


class GatewayConfigResponse(BaseModel):
    gateway: str
    should_succeed: bool
    failure_reason: str
