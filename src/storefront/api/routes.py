"""FastAPI routes for the Storefront: catalogue, carts, discounts, orders and payments.

The caller's identity arrives already authenticated: ``X-User-Id`` carries a
customer id and ``X-Session-Id`` an anonymous guest session.
"""

import json
from datetime import datetime
import os

from fastapi import APIRouter, Header, HTTPException, Request
from protean.utils.globals import current_domain

from storefront.api.schemas import (
    AddCartItemRequest,
    AddColorRequest,
    ApplyDiscountRequest,
    CartResponse,
    CartValidationResponse,
    ConfigureGatewayRequest,
    CreateDiscountRequest,
    DiscountIdResponse,
    DiscountResponse,
    GatewayConfigResponse,
    InitiatePaymentRequest,
    MethodStatsSchema,
    OrderListResponse,
    OrderResponse,
    OrderSummaryResponse,
    PaymentInitiationResponse,
    PaymentListResponse,
    PaymentResponse,
    PaymentStatsResponse,
    PlaceOrderRequest,
    ProductIdResponse,
    ProductResponse,
    ReasonRequest,
    RefundRequest,
    RegisterProductRequest,
    SetStockRequest,
    StatusResponse,
    UpdateCartItemRequest,
    UpdateDiscountRequest,
    UpdateOrderStatusRequest,
    UpdatePriceRequest,
    VerifyPaymentRequest,
    WebhookRequest,
)
from storefront.cart.discounts import ApplyDiscount, RemoveDiscount
from storefront.cart.items import AddCartItem, RemoveCartItem, UpdateCartItem
from storefront.cart.management import ClearCart, MergeGuestCart, ValidateCart
from storefront.cart.pricing import materialize_with_details, validate_items
from storefront.cart.repository import find_cart
from storefront.catalogue.lookup import get_available_sizes, get_product_by_id
from storefront.catalogue.management import (
    ActivateProduct,
    AddColorVariant,
    DeactivateProduct,
    RegisterProduct,
    SetStock,
    UpdatePrice,
)
from storefront.discount.management import CreateDiscount, DeactivateDiscount, DeleteDiscount, UpdateDiscount
from storefront.discount.queries import get_discount, get_discount_by_code, list_discounts
from storefront.errors import OrderNotOwned
from storefront.gateway import get_gateway
from storefront.gateway.fake_adapter import FakeGateway
from storefront.order.cancellation import CancelOrder, ReturnOrder
from storefront.order.placement import PlaceOrder
from storefront.order.queries import (
    get_order,
    get_order_by_number,
    list_customer_orders,
    list_orders,
    order_stats,
    search_orders,
)
from storefront.order.status import UpdateOrderStatus
from storefront.payment.initiation import InitiatePayment
from storefront.payment.queries import (
    get_payment,
    get_payment_for_order,
    list_customer_payments,
    list_payments,
    method_stats,
    payment_stats,
    refund_stats,
)
from storefront.payment.refund import RefundPayment
from storefront.payment.webhook import CapturePayment, FailPayment, verify_payment_signature


def _require_user(x_user_id: str | None) -> str:
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    return x_user_id


def _require_owner(x_user_id: str | None, x_session_id: str | None) -> None:
    if not x_user_id and not x_session_id:
        raise HTTPException(status_code=400, detail="X-User-Id or X-Session-Id header is required")


def _owned_order(order, customer_id):
    if not order.belongs_to(customer_id):
        raise OrderNotOwned({"order_id": ["Order does not belong to user"]})
    return order


# ---------------------------------------------------------------------------
# Product Router (administration)
# ---------------------------------------------------------------------------
product_router = APIRouter(prefix="/products", tags=["products"])


@product_router.post("", status_code=201, response_model=ProductIdResponse)
async def register_product(body: RegisterProductRequest) -> ProductIdResponse:
    command = RegisterProduct(
        code=body.code,
        name=body.name,
        price=body.price,
        original_price=body.original_price,
        category_id=body.category_id,
        description=body.description,
    )
    product_id = current_domain.process(command, asynchronous=False)
    return ProductIdResponse(product_id=product_id)


@product_router.get("/{product_id}", response_model=ProductResponse)
async def product_detail(product_id: str) -> ProductResponse:
    return ProductResponse.from_product(get_product_by_id(product_id))


@product_router.get("/{product_id}/sizes")
async def available_sizes(product_id: str, color: str | None = None) -> dict:
    return {"product_id": product_id, "sizes": get_available_sizes(product_id, color)}


@product_router.post("/{product_id}/colors", response_model=StatusResponse)
async def add_color(product_id: str, body: AddColorRequest) -> StatusResponse:
    command = AddColorVariant(
        product_id=product_id,
        name=body.name,
        hex_code=body.hex_code,
        images=json.dumps(body.images),
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="color_added")


@product_router.put("/{product_id}/stock", response_model=StatusResponse)
async def set_stock(product_id: str, body: SetStockRequest) -> StatusResponse:
    command = SetStock(product_id=product_id, color_name=body.color_name, size=body.size, stock=body.stock)
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="stock_set")


@product_router.put("/{product_id}/price", response_model=StatusResponse)
async def update_price(product_id: str, body: UpdatePriceRequest) -> StatusResponse:
    command = UpdatePrice(product_id=product_id, price=body.price, original_price=body.original_price)
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="price_updated")


@product_router.put("/{product_id}/deactivate", response_model=StatusResponse)
async def deactivate_product(product_id: str) -> StatusResponse:
    current_domain.process(DeactivateProduct(product_id=product_id), asynchronous=False)
    return StatusResponse(status="deactivated")


@product_router.put("/{product_id}/activate", response_model=StatusResponse)
async def activate_product(product_id: str) -> StatusResponse:
    current_domain.process(ActivateProduct(product_id=product_id), asynchronous=False)
    return StatusResponse(status="activated")


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


def cart_response(customer_id, session_id, outcome=None) -> CartResponse:
    """Price the owner's cart as it is stored now."""
    cart = find_cart(customer_id=customer_id, session_id=session_id)
    warnings = outcome.warnings if outcome else []
    dropped = getattr(outcome, "dropped_lines", [])
    if cart is None:
        return CartResponse(warnings=warnings, dropped_lines=dropped)
    view = materialize_with_details(cart).to_dict()
    warnings = warnings + view.pop("discount_warnings")
    return CartResponse(**view, warnings=warnings, dropped_lines=dropped)


@cart_router.get("", response_model=CartResponse)
async def view_cart(
    x_user_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
) -> CartResponse:
    _require_owner(x_user_id, x_session_id)
    return cart_response(x_user_id, x_session_id)


@cart_router.post("/items", status_code=201, response_model=CartResponse)
async def add_cart_item(
    body: AddCartItemRequest,
    x_user_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
) -> CartResponse:
    _require_owner(x_user_id, x_session_id)
    command = AddCartItem(
        customer_id=x_user_id,
        session_id=x_session_id,
        product_id=body.product_id,
        quantity=body.quantity,
        color_name=body.color_name,
        color_hex=body.color_hex,
        size=body.size,
        selected_image=body.selected_image,
    )
    outcome = current_domain.process(command, asynchronous=False)
    return cart_response(x_user_id, x_session_id, outcome)


@cart_router.patch("/items/{item_id}", response_model=CartResponse)
async def update_cart_item(
    item_id: str,
    body: UpdateCartItemRequest,
    x_user_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
) -> CartResponse:
    _require_owner(x_user_id, x_session_id)
    command = UpdateCartItem(
        customer_id=x_user_id,
        session_id=x_session_id,
        item_id=item_id,
        quantity=body.quantity,
        color_name=body.color_name,
        color_hex=body.color_hex,
        size=body.size,
        selected_image=body.selected_image,
    )
    outcome = current_domain.process(command, asynchronous=False)
    return cart_response(x_user_id, x_session_id, outcome)


@cart_router.delete("/items/{item_id}", response_model=CartResponse)
async def remove_cart_item(
    item_id: str,
    x_user_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
) -> CartResponse:
    _require_owner(x_user_id, x_session_id)
    command = RemoveCartItem(customer_id=x_user_id, session_id=x_session_id, item_id=item_id)
    outcome = current_domain.process(command, asynchronous=False)
    return cart_response(x_user_id, x_session_id, outcome)


@cart_router.delete("", response_model=CartResponse)
async def clear_cart(
    x_user_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
) -> CartResponse:
    _require_owner(x_user_id, x_session_id)
    current_domain.process(ClearCart(customer_id=x_user_id, session_id=x_session_id), asynchronous=False)
    return cart_response(x_user_id, x_session_id)


@cart_router.post("/discounts", response_model=CartResponse)
async def apply_discount(
    body: ApplyDiscountRequest,
    x_user_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
) -> CartResponse:
    _require_owner(x_user_id, x_session_id)
    command = ApplyDiscount(customer_id=x_user_id, session_id=x_session_id, code=body.code, kind=body.kind)
    outcome = current_domain.process(command, asynchronous=False)
    return cart_response(x_user_id, x_session_id, outcome)


@cart_router.delete("/discounts/{kind}", response_model=CartResponse)
async def remove_discount(
    kind: str,
    x_user_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
) -> CartResponse:
    _require_owner(x_user_id, x_session_id)
    command = RemoveDiscount(customer_id=x_user_id, session_id=x_session_id, kind=kind)
    outcome = current_domain.process(command, asynchronous=False)
    return cart_response(x_user_id, x_session_id, outcome)


@cart_router.get("/validation", response_model=CartValidationResponse)
async def check_cart(
    x_user_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
) -> CartValidationResponse:
    _require_owner(x_user_id, x_session_id)
    cart = find_cart(customer_id=x_user_id, session_id=x_session_id)
    if cart is None:
        return CartValidationResponse(valid=True, needs_update=False, issues=[])
    result = validate_items(cart)
    return CartValidationResponse(
        valid=result.valid,
        needs_update=result.needs_update,
        issues=[issue.__dict__ for issue in result.issues],
    )


@cart_router.post("/validation", response_model=CartResponse)
async def fix_cart(
    x_user_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
) -> CartResponse:
    _require_owner(x_user_id, x_session_id)
    outcome = current_domain.process(
        ValidateCart(customer_id=x_user_id, session_id=x_session_id), asynchronous=False
    )
    return cart_response(x_user_id, x_session_id, outcome)


@cart_router.post("/merge", response_model=CartResponse)
async def merge_guest_cart(
    x_user_id: str | None = Header(default=None),
    x_session_id: str | None = Header(default=None),
) -> CartResponse:
    customer_id = _require_user(x_user_id)
    if not x_session_id:
        raise HTTPException(status_code=400, detail="X-Session-Id header is required")
    outcome = current_domain.process(
        MergeGuestCart(customer_id=customer_id, session_id=x_session_id), asynchronous=False
    )
    return cart_response(customer_id, None, outcome)


# ---------------------------------------------------------------------------
# Discount Router (administration)
# ---------------------------------------------------------------------------
discount_router = APIRouter(prefix="/discounts", tags=["discounts"])


@discount_router.post("", status_code=201, response_model=DiscountIdResponse)
async def create_discount(body: CreateDiscountRequest) -> DiscountIdResponse:
    command = CreateDiscount(
        **body.model_dump(exclude={"applicable_categories", "excluded_products"}),
        applicable_categories=json.dumps(body.applicable_categories),
        excluded_products=json.dumps(body.excluded_products),
    )
    discount_id = current_domain.process(command, asynchronous=False)
    return DiscountIdResponse(discount_id=discount_id)


@discount_router.get("", response_model=list[DiscountResponse])
async def discounts(active_only: bool = False) -> list[DiscountResponse]:
    return [DiscountResponse.from_discount(d) for d in list_discounts(active_only=active_only)]


@discount_router.get("/code/{code}", response_model=DiscountResponse)
async def discount_by_code(code: str) -> DiscountResponse:
    return DiscountResponse.from_discount(get_discount_by_code(code))


@discount_router.get("/{discount_id}", response_model=DiscountResponse)
async def discount_detail(discount_id: str) -> DiscountResponse:
    return DiscountResponse.from_discount(get_discount(discount_id))


@discount_router.put("/{discount_id}", response_model=DiscountResponse)
async def update_discount(discount_id: str, body: UpdateDiscountRequest) -> DiscountResponse:
    changes = body.model_dump(exclude_none=True)
    for list_field in ("applicable_categories", "excluded_products"):
        if list_field in changes:
            changes[list_field] = json.dumps(changes[list_field])
    current_domain.process(UpdateDiscount(discount_id=discount_id, **changes), asynchronous=False)
    return DiscountResponse.from_discount(get_discount(discount_id))


@discount_router.put("/{discount_id}/deactivate", response_model=StatusResponse)
async def deactivate_discount(discount_id: str) -> StatusResponse:
    current_domain.process(DeactivateDiscount(discount_id=discount_id), asynchronous=False)
    return StatusResponse(status="deactivated")


@discount_router.delete("/{discount_id}", response_model=StatusResponse)
async def delete_discount(discount_id: str) -> StatusResponse:
    current_domain.process(DeleteDiscount(discount_id=discount_id), asynchronous=False)
    return StatusResponse(status="deleted")


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderSummaryResponse)
async def place_order(
    body: PlaceOrderRequest,
    x_user_id: str | None = Header(default=None),
) -> OrderSummaryResponse:
    customer_id = _require_user(x_user_id)
    billing = body.billing_address or body.shipping_address
    command = PlaceOrder(
        customer_id=customer_id,
        shipping_address=json.dumps(body.shipping_address.model_dump()),
        billing_address=json.dumps(billing.model_dump()),
        payment_method=body.payment_method,
        notes=body.notes,
    )
    summary = current_domain.process(command, asynchronous=False)
    return OrderSummaryResponse.from_summary(summary)


@order_router.get("", response_model=OrderListResponse)
async def my_orders(
    status: str | None = None,
    x_user_id: str | None = Header(default=None),
) -> OrderListResponse:
    customer_id = _require_user(x_user_id)
    orders = list_customer_orders(customer_id, status=status)
    return OrderListResponse(orders=[OrderResponse.from_order(o) for o in orders], total=len(orders))


@order_router.get("/admin/all", response_model=OrderListResponse)
async def all_orders(page: int = 1, limit: int = 10, status: str | None = None) -> OrderListResponse:
    orders, total = list_orders(page=page, limit=limit, status=status)
    return OrderListResponse(
        orders=[OrderResponse.from_order(o) for o in orders],
        total=total,
        page=page,
        limit=limit,
    )


@order_router.get("/admin/stats")
async def stats(customer_id: str | None = None) -> dict:
    return order_stats(customer_id)


@order_router.get("/search", response_model=OrderListResponse)
async def search_my_orders(
    q: str,
    page: int = 1,
    limit: int = 10,
    x_user_id: str | None = Header(default=None),
) -> OrderListResponse:
    customer_id = _require_user(x_user_id)
    orders, total = search_orders(q, customer_id=customer_id, page=page, limit=limit)
    return OrderListResponse(orders=[OrderResponse.from_order(o) for o in orders], total=total, page=page, limit=limit)


@order_router.get("/admin/search", response_model=OrderListResponse)
async def search_all_orders(
    q: str, customer_id: str | None = None, page: int = 1, limit: int = 10
) -> OrderListResponse:
    orders, total = search_orders(q, customer_id=customer_id, page=page, limit=limit)
    return OrderListResponse(orders=[OrderResponse.from_order(o) for o in orders], total=total, page=page, limit=limit)


@order_router.get("/number/{order_number}", response_model=OrderResponse)
async def order_by_number(order_number: str, x_user_id: str | None = Header(default=None)) -> OrderResponse:
    customer_id = _require_user(x_user_id)
    return OrderResponse.from_order(_owned_order(get_order_by_number(order_number), customer_id))


@order_router.get("/{order_id}", response_model=OrderResponse)
async def order_detail(order_id: str, x_user_id: str | None = Header(default=None)) -> OrderResponse:
    customer_id = _require_user(x_user_id)
    return OrderResponse.from_order(_owned_order(get_order(order_id), customer_id))


@order_router.post("/{order_id}/cancel", response_model=OrderSummaryResponse)
async def cancel_order(
    order_id: str,
    body: ReasonRequest,
    x_user_id: str | None = Header(default=None),
) -> OrderSummaryResponse:
    customer_id = _require_user(x_user_id)
    command = CancelOrder(order_id=order_id, reason=body.reason, customer_id=customer_id)
    summary = current_domain.process(command, asynchronous=False)
    return OrderSummaryResponse.from_summary(summary)


@order_router.post("/{order_id}/return", response_model=OrderSummaryResponse)
async def return_order(
    order_id: str,
    body: ReasonRequest,
    x_user_id: str | None = Header(default=None),
) -> OrderSummaryResponse:
    customer_id = _require_user(x_user_id)
    command = ReturnOrder(order_id=order_id, reason=body.reason, customer_id=customer_id)
    summary = current_domain.process(command, asynchronous=False)
    return OrderSummaryResponse.from_summary(summary)


@order_router.put("/{order_id}/status", response_model=OrderSummaryResponse)
async def update_order_status(order_id: str, body: UpdateOrderStatusRequest) -> OrderSummaryResponse:
    """Administrative status change through the order state machine."""
    command = UpdateOrderStatus(
        order_id=order_id,
        status=body.status,
        tracking_number=body.tracking_number,
        reason=body.reason,
    )
    summary = current_domain.process(command, asynchronous=False)
    return OrderSummaryResponse.from_summary(summary)


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("", status_code=201, response_model=PaymentInitiationResponse)
async def initiate_payment(
    body: InitiatePaymentRequest,
    x_user_id: str | None = Header(default=None),
) -> PaymentInitiationResponse:
    customer_id = _require_user(x_user_id)
    command = InitiatePayment(order_id=body.order_id, customer_id=customer_id, method=body.method)
    result = current_domain.process(command, asynchronous=False)
    return PaymentInitiationResponse(**result.__dict__)


@payment_router.post("/verify", response_model=PaymentResponse)
async def verify_payment(body: VerifyPaymentRequest) -> PaymentResponse:
    """Confirm a payment with the signature the checkout widget returned."""
    if not verify_payment_signature(body.gateway_order_id, body.gateway_payment_id, body.signature):
        raise HTTPException(status_code=400, detail="Invalid payment signature")

    command = CapturePayment(
        gateway_order_id=body.gateway_order_id,
        gateway_payment_id=body.gateway_payment_id,
        signature=body.signature,
    )
    payment = current_domain.process(command, asynchronous=False)
    return PaymentResponse.from_payment(payment)


@payment_router.post("/webhook", response_model=StatusResponse)
async def gateway_webhook(
    request: Request,
    x_gateway_signature: str = Header(default=""),
) -> StatusResponse:
    """Process a ``payment.captured`` or ``payment.failed`` gateway event."""
    payload = await request.body()
    if not get_gateway().verify_webhook_signature(payload, x_gateway_signature):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    body = WebhookRequest.model_validate_json(payload)
    if body.event == "payment.captured":
        command = CapturePayment(
            gateway_order_id=body.payment.order_id,
            gateway_payment_id=body.payment.id,
            amount_minor_units=body.payment.amount,
            status=body.payment.status,
        )
    else:
        command = FailPayment(
            gateway_order_id=body.payment.order_id,
            gateway_payment_id=body.payment.id,
            reason=body.payment.error_description or "Payment failed",
        )
    current_domain.process(command, asynchronous=False)
    return StatusResponse(status="processed")


@payment_router.get("", response_model=list[PaymentResponse])
async def my_payments(x_user_id: str | None = Header(default=None)) -> list[PaymentResponse]:
    customer_id = _require_user(x_user_id)
    return [PaymentResponse.from_payment(p) for p in list_customer_payments(customer_id)]


@payment_router.get("/admin/all", response_model=PaymentListResponse)
async def all_payments(
    method: str | None = None,
    status: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int = 1,
    limit: int = 10,
) -> PaymentListResponse:
    payments, total = list_payments(method=method, status=status, start=start, end=end, page=page, limit=limit)
    return PaymentListResponse(
        payments=[PaymentResponse.from_payment(p) for p in payments],
        total=total,
        page=page,
        limit=limit,
    )


@payment_router.get("/admin/stats", response_model=PaymentStatsResponse)
async def all_payment_stats(customer_id: str | None = None) -> PaymentStatsResponse:
    return PaymentStatsResponse(**payment_stats(customer_id))


@payment_router.get("/admin/stats/methods", response_model=list[MethodStatsSchema])
async def payment_method_stats(customer_id: str | None = None) -> list[MethodStatsSchema]:
    return [MethodStatsSchema(**entry) for entry in method_stats(customer_id)]


@payment_router.get("/admin/stats/refunds")
async def payment_refund_stats(customer_id: str | None = None) -> dict:
    return refund_stats(customer_id)


@payment_router.get("/order/{order_id}", response_model=PaymentResponse)
async def payment_for_order(order_id: str, x_user_id: str | None = Header(default=None)) -> PaymentResponse:
    customer_id = _require_user(x_user_id)
    return PaymentResponse.from_payment(get_payment_for_order(order_id, customer_id))


@payment_router.get("/{payment_id}", response_model=PaymentResponse)
async def payment_detail(payment_id: str, x_user_id: str | None = Header(default=None)) -> PaymentResponse:
    customer_id = _require_user(x_user_id)
    return PaymentResponse.from_payment(get_payment(payment_id, customer_id))


@payment_router.post("/{payment_id}/refund", response_model=PaymentResponse)
async def refund_payment(payment_id: str, body: RefundRequest) -> PaymentResponse:
    command = RefundPayment(payment_id=payment_id, amount=body.amount, reason=body.reason)
    payment = current_domain.process(command, asynchronous=False)
    return PaymentResponse.from_payment(payment)


@payment_router.post("/gateway/configure", response_model=GatewayConfigResponse)
async def configure_gateway(body: ConfigureGatewayRequest) -> GatewayConfigResponse:
    """Configure the FakeGateway behavior (non-production only)."""
    if os.environ.get("PROTEAN_ENV") == "production":
        raise HTTPException(status_code=403, detail="Gateway configuration not available in production")

    gateway = get_gateway()
    if not isinstance(gateway, FakeGateway):
        raise HTTPException(status_code=400, detail="Gateway configuration only available for FakeGateway")

    gateway.configure(should_succeed=body.should_succeed, failure_reason=body.failure_reason)
    return GatewayConfigResponse(
        gateway=type(gateway).__name__,
        should_succeed=gateway.should_succeed,
        failure_reason=gateway.failure_reason,
    )
