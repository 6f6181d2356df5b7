"""Cart read models: live pricing, discount (re)computation and line validation.

Nothing in here persists prices. Every call joins the cart lines with the
products as they are stored right now.
"""

from dataclasses import asdict, dataclass, field

import structlog
from protean.exceptions import ObjectNotFoundError, ProteanException, ValidationError
from protean.utils.globals import current_domain

from storefront.cart.cart import DiscountSlot
from storefront.catalogue.lookup import find_product
from storefront.discount.discount import Discount, DiscountKind, normalize_code
from storefront.discount.engine import PricedLine, calculate_discount
from storefront.errors import DiscountNotFound, EmptyCart, ProductNotFound

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CartLineView:
    item_id: str
    product_id: str
    product_name: str
    product_code: str
    category_id: str | None
    image: str
    unit_price: float
    quantity: int
    color_name: str | None
    color_hex: str | None
    size: str | None
    selected_image: str | None
    item_total: float


@dataclass(frozen=True)
class CartTotals:
    subtotal: float
    discount_amount: float
    total: float
    item_count: int


@dataclass(frozen=True)
class CartView:
    cart_id: str
    customer_id: str | None
    session_id: str | None
    items: list[CartLineView]
    totals: CartTotals
    applied_coupon: dict | None = None
    applied_voucher: dict | None = None
    discount_warnings: list[str] = field(default_factory=list)

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class CartIssue:
    item_id: str
    product_id: str
    issue: str


@dataclass(frozen=True)
class CartValidation:
    valid: bool
    issues: list[CartIssue]
    needs_update: bool


@dataclass
class CartOutcome:
    """Result of a cart command. ``warnings`` lists what degraded silently."""

    cart_id: str
    warnings: list[str] = field(default_factory=list)


def _snapshot_dict(snapshot, discount_amount):
    return {
        "code": snapshot.code,
        "discount_id": str(snapshot.discount_id),
        "discount_amount": discount_amount,
    }


def load_products(cart):
    """Products referenced by the cart, keyed by id. Missing ones are left out."""
    products = {}
    for item in cart.items:
        product_id = str(item.product_id)
        if product_id not in products:
            products[product_id] = find_product(product_id)
    return {k: v for k, v in products.items() if v is not None}


def materialize_with_details(cart, products=None) -> CartView:
    """Join every line with its live product and compute the totals."""
    if products is None:
        products = load_products(cart)

    lines = []
    for item in cart.items:
        product = products.get(str(item.product_id))
        if product is None:
            continue
        item_total = round(product.price * item.quantity, 2)
        lines.append(
            CartLineView(
                item_id=str(item.id),
                product_id=str(product.id),
                product_name=product.name,
                product_code=product.code,
                category_id=str(product.category_id) if product.category_id else None,
                image=product.primary_image(item.color_name),
                unit_price=product.price,
                quantity=item.quantity,
                color_name=item.color_name,
                color_hex=item.color_hex,
                size=item.size,
                selected_image=item.selected_image,
                item_total=item_total,
            )
        )

    subtotal = round(sum(line.unit_price * line.quantity for line in lines), 2)
    applied, discount_warnings = live_discounts(cart, products)
    discount_amount = round(min(sum(a["discount_amount"] for a in applied.values()), subtotal), 2)
    return CartView(
        cart_id=str(cart.id),
        customer_id=str(cart.customer_id) if cart.customer_id else None,
        session_id=cart.session_id,
        items=lines,
        totals=CartTotals(
            subtotal=subtotal,
            discount_amount=discount_amount,
            total=round(max(subtotal - discount_amount, 0.0), 2),
            item_count=len(lines),
        ),
        applied_coupon=applied.get(DiscountSlot.COUPON),
        applied_voucher=applied.get(DiscountSlot.VOUCHER),
        discount_warnings=discount_warnings,
    )


def priced_lines(cart, products):
    """Lines for the discount engine. Every product must still exist."""
    lines = []
    for item in cart.items:
        product = products.get(str(item.product_id))
        if product is None:
            raise ProductNotFound({"product_id": [f"Product not found for ID: {item.product_id}"]})
        lines.append(
            PricedLine(
                product_id=str(product.id),
                category_id=str(product.category_id) if product.category_id else None,
                unit_price=product.price,
                quantity=item.quantity,
            )
        )
    return lines


def compute_cart_discount(cart, code, slot, products=None, discount=None):
    """Run the discount engine for ``code`` against the cart as it is now."""
    if not cart.items:
        raise EmptyCart({"cart": ["Cart is empty"]})

    slot = DiscountSlot(slot)
    if discount is None:
        discount = current_domain.repository_for(Discount).find_by_code(code)
        if discount is None:
            raise DiscountNotFound({"code": [f"Discount code {normalize_code(code)} not found"]})
    if DiscountKind(discount.kind).value != slot.value:
        raise ValidationError({"code": [f"Discount code {discount.code} is not a {slot.value}"]})

    if products is None:
        products = load_products(cart)
    lines = priced_lines(cart, products)
    subtotal = round(sum(line.unit_price * line.quantity for line in lines), 2)
    return calculate_discount(discount, subtotal, lines)


def price_applied(cart, slot, products=None):
    """Recompute the discount attached in ``slot`` against the cart as it is now."""
    snapshot = cart.applied(slot)
    try:
        discount = current_domain.repository_for(Discount).get(snapshot.discount_id)
    except ObjectNotFoundError:
        raise DiscountNotFound({"code": [f"Discount code {snapshot.code} no longer exists"]}) from None
    return discount, compute_cart_discount(cart, snapshot.code, slot, products=products, discount=discount)


def live_discounts(cart, products=None):
    """Price every attached discount without changing the cart.

    Returns ``(applied, warnings)``: ``applied`` maps each slot to its snapshot
    with the amount checkout would charge now, zero for one that no longer
    applies, and ``warnings`` says why.
    """
    applied, warnings = {}, []
    for slot in cart.applied_slots():
        snapshot = cart.applied(slot)
        try:
            _, result = price_applied(cart, slot, products)
        except ProteanException as exc:
            applied[slot] = _snapshot_dict(snapshot, 0.0)
            reason = getattr(exc, "messages", exc)
            warnings.append(f"{slot.value.capitalize()} {snapshot.code} no longer applies: {reason}")
            continue
        applied[slot] = _snapshot_dict(snapshot, result.discount_amount)
    return applied, warnings


def reapply_discounts(cart, products=None) -> list[str]:
    """Recompute every applied snapshot after the lines changed.

    A snapshot that can no longer be computed is cleared. The failure is logged
    and returned as a warning; it never fails the mutation that triggered it.
    """
    warnings = []
    for slot in cart.applied_slots():
        snapshot = cart.applied(slot)
        try:
            _, result = price_applied(cart, slot, products)
        except ProteanException as exc:
            logger.warning(
                "discount_reapply_failed",
                cart_id=str(cart.id),
                kind=slot.value,
                code=snapshot.code,
                reason=str(getattr(exc, "messages", exc)),
            )
            cart.clear_discount(slot)
            warnings.append(f"{slot.value.capitalize()} {snapshot.code} was removed: {getattr(exc, 'messages', exc)}")
            continue

        cart.attach_discount(slot, result.applied_discount.code, result.applied_discount.discount_id, result.discount_amount)
    return warnings


def validate_items(cart, products=None) -> CartValidation:
    """Check every line against the live catalogue without changing anything."""
    if products is None:
        products = load_products(cart)

    issues = []
    needs_update = False
    for item in cart.items:
        product = products.get(str(item.product_id))
        problem = None
        if product is None or not product.is_active:
            problem = "Product is no longer available"
        elif item.color_name and product.color(item.color_name) is None:
            problem = "Selected color is no longer available"
        elif item.size:
            level = product.stock_level(item.color_name, item.size)
            if level is None or level.stock == 0:
                problem = "Selected size is no longer available"
            elif level.stock < item.quantity:
                problem = f"Only {level.stock} items available"
        if problem:
            needs_update = True
            issues.append(CartIssue(item_id=str(item.id), product_id=str(item.product_id), issue=problem))

    return CartValidation(valid=not issues, issues=issues, needs_update=needs_update)
