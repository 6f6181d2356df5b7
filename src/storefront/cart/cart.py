"""Cart aggregate: the mutable basket of a customer or a guest session.

A cart belongs to exactly one owner: a registered customer or an anonymous
session. Lines are keyed by (product, color, size). Applied coupon and voucher
snapshots are caches of a discount computation; the handlers recompute them
after every change to the lines.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, ValueObject

from storefront.cart.events import (
    CartCleared,
    CartDiscountApplied,
    CartDiscountCleared,
    CartItemAdded,
    CartItemRemoved,
    CartItemUpdated,
    CartsMerged,
)
from storefront.domain import storefront
from storefront.errors import CartItemNotFound


class DiscountSlot(Enum):
    COUPON = "coupon"
    VOUCHER = "voucher"


@storefront.value_object(part_of="Cart")
class AppliedDiscount:
    """Snapshot of a discount computation attached to the cart."""

    code = String(required=True, max_length=50)
    discount_id = Identifier(required=True)
    discount_amount = Float(default=0.0, min_value=0.0)


@storefront.entity(part_of="Cart")
class CartItem:
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    color_name = String(max_length=50)
    color_hex = String(max_length=9)
    size = String(max_length=20)
    selected_image = String(max_length=500)
    added_at = DateTime()

    def matches(self, product_id, color_name, size):
        return str(self.product_id) == str(product_id) and self.color_name == color_name and self.size == size


@storefront.aggregate
class Cart:
    customer_id = Identifier()
    session_id = String(max_length=255)
    items = HasMany(CartItem)
    applied_coupon = ValueObject(AppliedDiscount)
    applied_voucher = ValueObject(AppliedDiscount)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def must_belong_to_exactly_one_owner(self):
        if bool(self.customer_id) == bool(self.session_id):
            raise ValidationError({"cart": ["A cart belongs to either a customer or a guest session"]})

    @classmethod
    def create(cls, customer_id=None, session_id=None):
        now = datetime.now(UTC)
        return cls(
            customer_id=customer_id,
            session_id=session_id,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_guest(self):
        return not self.customer_id

    # -------------------------------------------------------------------
    # Line lookups
    # -------------------------------------------------------------------
    def find_item(self, product_id, color_name, size):
        return next((i for i in self.items if i.matches(product_id, color_name, size)), None)

    def get_item(self, item_id):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise CartItemNotFound({"item_id": ["Item not found in cart"]})
        return item

    # -------------------------------------------------------------------
    # Line management
    # -------------------------------------------------------------------
    def add_item(self, product_id, quantity, color_name=None, color_hex=None, size=None, selected_image=None):
        """Add a line, or add ``quantity`` to the line with the same key."""
        now = datetime.now(UTC)
        existing = self.find_item(product_id, color_name, size)

        if existing:
            existing.quantity += quantity
            if selected_image:
                existing.selected_image = selected_image
            item = existing
        else:
            item = CartItem(
                product_id=product_id,
                quantity=quantity,
                color_name=color_name,
                color_hex=color_hex,
                size=size,
                selected_image=selected_image,
                added_at=now,
            )
            self.add_items(item)

        self.updated_at = now

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                item_id=str(item.id),
                product_id=str(product_id),
                color_name=color_name,
                size=size,
                quantity=quantity,
            )
        )
        return item

    def update_item(self, item_id, quantity=None, color_name=None, color_hex=None, size=None, selected_image=None):
        """Change quantity and/or variant of a line. Unset arguments keep their value."""
        item = self.get_item(item_id)

        target_color = color_name or item.color_name
        target_size = size or item.size
        clash = self.find_item(item.product_id, target_color, target_size)
        if clash is not None and clash is not item:
            raise ValidationError({"item_id": ["Another line already holds this product variant"]})

        previous_quantity = item.quantity
        if quantity is not None:
            item.quantity = quantity
        if color_name:
            item.color_name = color_name
            item.color_hex = color_hex or item.color_hex
        if size:
            item.size = size
        if selected_image:
            item.selected_image = selected_image
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartItemUpdated(
                cart_id=str(self.id),
                item_id=str(item.id),
                previous_quantity=previous_quantity,
                quantity=item.quantity,
                color_name=item.color_name,
                size=item.size,
            )
        )
        return item

    def remove_item(self, item_id):
        item = self.get_item(item_id)
        self.remove_items(item)
        self.updated_at = datetime.now(UTC)

        self.raise_(CartItemRemoved(cart_id=str(self.id), item_id=str(item_id)))

    def clear(self):
        """Remove every line and every applied discount."""
        count = len(self.items)
        with atomic_change(self):
            for item in list(self.items):
                self.remove_items(item)
            self.applied_coupon = None
            self.applied_voucher = None
            self.updated_at = datetime.now(UTC)

        self.raise_(CartCleared(cart_id=str(self.id), items_removed=count))

    def replace_lines(self, lines):
        """Make the cart hold exactly ``lines`` (dicts keyed like ``add_item``)."""
        now = datetime.now(UTC)
        with atomic_change(self):
            keep = []
            for line in lines:
                existing = self.find_item(line["product_id"], line.get("color_name"), line.get("size"))
                if existing:
                    existing.quantity = line["quantity"]
                    keep.append(existing)
                else:
                    item = CartItem(
                        product_id=line["product_id"],
                        quantity=line["quantity"],
                        color_name=line.get("color_name"),
                        color_hex=line.get("color_hex"),
                        size=line.get("size"),
                        selected_image=line.get("selected_image"),
                        added_at=now,
                    )
                    self.add_items(item)
                    keep.append(item)

            for item in list(self.items):
                if not any(item is k for k in keep):
                    self.remove_items(item)
            self.updated_at = now

    def merge_from_guest(self, lines, source_session_id, dropped_count=0):
        """Take over the merged lines of a guest cart."""
        self.replace_lines(lines)
        self.raise_(
            CartsMerged(
                cart_id=str(self.id),
                source_session_id=source_session_id,
                items_merged_count=len(lines),
                items_dropped_count=dropped_count,
            )
        )

    # -------------------------------------------------------------------
    # Discount snapshots
    # -------------------------------------------------------------------
    def applied(self, slot):
        slot = DiscountSlot(slot)
        return self.applied_coupon if slot == DiscountSlot.COUPON else self.applied_voucher

    def applied_slots(self):
        return [slot for slot in DiscountSlot if self.applied(slot) is not None]

    def attach_discount(self, slot, code, discount_id, discount_amount):
        slot = DiscountSlot(slot)
        snapshot = AppliedDiscount(code=code, discount_id=discount_id, discount_amount=discount_amount)
        if slot == DiscountSlot.COUPON:
            self.applied_coupon = snapshot
        else:
            self.applied_voucher = snapshot
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartDiscountApplied(
                cart_id=str(self.id),
                kind=slot.value,
                code=code,
                discount_amount=discount_amount,
            )
        )

    def clear_discount(self, slot):
        slot = DiscountSlot(slot)
        current = self.applied(slot)
        if current is None:
            return
        if slot == DiscountSlot.COUPON:
            self.applied_coupon = None
        else:
            self.applied_voucher = None
        self.updated_at = datetime.now(UTC)

        self.raise_(CartDiscountCleared(cart_id=str(self.id), kind=slot.value, code=current.code))

    @property
    def discount_amount(self):
        return sum(snapshot.discount_amount or 0.0 for snapshot in (self.applied_coupon, self.applied_voucher) if snapshot)
