"""Inventory access: stock reads and adjustments against the authoritative store.

Nothing here caches stock. Every read loads the product, and every write goes
through ``Product.adjust_stock`` inside the caller's unit of work, so the
aggregate version check rejects a concurrent write to the same product.

Reservation and restoration of multi-line orders are sequences of independent
per-line adjustments. A failing line is logged and reported back to the caller
while the remaining lines still go through.
"""

from collections import defaultdict
from dataclasses import dataclass

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from storefront.catalogue.lookup import find_product, get_product_by_id
from storefront.catalogue.product import Product

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StockLine:
    """One stock-tracked line of a cart or order."""

    product_id: str
    color_name: str
    size: str | None
    quantity: int


def get_available_stock(product_id, color_name, size) -> int:
    """Units on hand for a color/size. Missing variants count as zero."""
    product = find_product(product_id)
    if product is None:
        return 0
    level = product.stock_level(color_name, size)
    return level.stock if level else 0


def adjust_stock(product_id, color_name, size, delta) -> int:
    """Apply ``delta`` to a color/size and persist it. Returns the new count."""
    product = get_product_by_id(product_id)
    product.adjust_stock(color_name, size, delta)
    current_domain.repository_for(Product).add(product)
    return product.stock_level(color_name, size).stock


def _apply_lines(lines, sign, failure_event):
    by_product = defaultdict(list)
    for line in lines:
        if line.size:
            by_product[str(line.product_id)].append(line)

    repo = current_domain.repository_for(Product)
    warnings = []
    for product_id, product_lines in by_product.items():
        try:
            product = repo.get(product_id)
        except ObjectNotFoundError:
            for line in product_lines:
                logger.error(failure_event, product_id=product_id, size=line.size, reason="product not found")
                warnings.append(f"Product {product_id} not found")
            continue

        changed = False
        for line in product_lines:
            try:
                product.adjust_stock(line.color_name, line.size, sign * line.quantity)
                changed = True
            except ValidationError as exc:
                logger.error(
                    failure_event,
                    product_id=product_id,
                    color_name=line.color_name,
                    size=line.size,
                    quantity=line.quantity,
                    reason=str(exc.messages),
                )
                warnings.append(f"{product.name} ({line.color_name}/{line.size}): {exc.messages}")

        if changed:
            repo.add(product)

    return warnings


def reserve_lines(lines) -> list[str]:
    """Decrement stock for every line. Returns a warning per line that failed."""
    return _apply_lines(lines, -1, "stock_reservation_failed")


def restore_lines(lines) -> list[str]:
    """Increment stock for every line. Returns a warning per line that failed."""
    return _apply_lines(lines, 1, "stock_restoration_failed")


def total_requested(lines):
    """Sum quantities per (product, color, size) across lines."""
    totals = defaultdict(int)
    for line in lines:
        totals[(str(line.product_id), line.color_name, line.size)] += line.quantity
    return totals
