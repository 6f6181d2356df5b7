"""Product aggregate with its color variants and per-size stock levels.

Stock lives on the product itself: one ``SizeStock`` row per (color, size).
Every stock change goes through the aggregate so the non-negative rule is
checked before anything is written.
"""

import json
from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String, Text

from storefront.catalogue.events import (
    ColorVariantAdded,
    PriceUpdated,
    ProductActivated,
    ProductDeactivated,
    ProductRegistered,
    StockAdjusted,
    StockLevelSet,
)
from storefront.domain import storefront
from storefront.errors import InsufficientStock, VariantUnavailable


@storefront.entity(part_of="Product")
class ColorVariant:
    """A purchasable appearance of a product."""

    name = String(required=True, max_length=50)
    hex_code = String(max_length=9)
    images = Text()  # JSON array of image URLs

    @property
    def image_list(self):
        return json.loads(self.images) if self.images else []


@storefront.entity(part_of="Product")
class SizeStock:
    """Units on hand for one size of one color variant."""

    color_name = String(required=True, max_length=50)
    size = String(required=True, max_length=20)
    stock = Integer(default=0, min_value=0)


@storefront.aggregate
class Product:
    code = String(required=True, max_length=50, unique=True)
    name = String(required=True, max_length=255)
    description = Text()
    price = Float(required=True, min_value=0.0)
    original_price = Float(min_value=0.0)
    category_id = Identifier()
    is_active = Boolean(default=True)
    colors = HasMany(ColorVariant)
    stock_levels = HasMany(SizeStock)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def color_names_must_be_unique(self):
        names = [c.name for c in self.colors]
        if len(names) != len(set(names)):
            raise ValidationError({"colors": ["Color names must be unique within a product"]})

    @invariant.post
    def sizes_must_be_unique_per_color(self):
        keys = [(s.color_name, s.size) for s in self.stock_levels]
        if len(keys) != len(set(keys)):
            raise ValidationError({"stock_levels": ["Sizes must be unique within a color"]})

    @classmethod
    def register(cls, code, name, price, original_price=None, category_id=None, description=None):
        now = datetime.now(UTC)
        product = cls(
            code=code,
            name=name,
            price=price,
            original_price=original_price if original_price is not None else price,
            category_id=category_id,
            description=description,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        product.raise_(
            ProductRegistered(
                product_id=str(product.id),
                code=code,
                name=name,
                price=price,
                category_id=category_id,
                registered_at=now,
            )
        )
        return product

    # -------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------
    def color(self, color_name):
        return next((c for c in self.colors if c.name == color_name), None)

    def stock_level(self, color_name, size):
        return next(
            (s for s in self.stock_levels if s.color_name == color_name and s.size == size),
            None,
        )

    def available_sizes(self, color_name=None):
        """Sizes with stock on hand, optionally restricted to one color."""
        return [
            {"color": s.color_name, "size": s.size, "stock": s.stock}
            for s in self.stock_levels
            if s.stock > 0 and (color_name is None or s.color_name == color_name)
        ]

    def primary_image(self, color_name=None):
        variant = self.color(color_name) if color_name else None
        if variant is None and self.colors:
            variant = self.colors[0]
        images = variant.image_list if variant else []
        return images[0] if images else ""

    # -------------------------------------------------------------------
    # Catalogue administration
    # -------------------------------------------------------------------
    def add_color(self, name, hex_code=None, images=None):
        if self.color(name) is not None:
            raise ValidationError({"colors": [f"Color {name} already exists"]})

        self.add_colors(ColorVariant(name=name, hex_code=hex_code, images=json.dumps(images or [])))
        self.updated_at = datetime.now(UTC)

        self.raise_(ColorVariantAdded(product_id=str(self.id), color_name=name, hex_code=hex_code))

    def set_stock(self, color_name, size, stock):
        """Set the absolute stock for a color/size, creating the entry if needed."""
        if self.color(color_name) is None:
            raise VariantUnavailable({"color": [f"Color {color_name} is not available for {self.name}"]})
        if stock < 0:
            raise ValidationError({"stock": ["Stock cannot be negative"]})

        level = self.stock_level(color_name, size)
        if level is None:
            previous = 0
            self.add_stock_levels(SizeStock(color_name=color_name, size=size, stock=stock))
        else:
            previous = level.stock
            level.stock = stock
        self.updated_at = datetime.now(UTC)

        self.raise_(
            StockLevelSet(
                product_id=str(self.id),
                color_name=color_name,
                size=size,
                previous_stock=previous,
                stock=stock,
            )
        )

    def adjust_stock(self, color_name, size, delta):
        """Move stock by ``delta``. Negative reserves, positive restores.

        The resulting count is checked before it is written, so a reservation
        larger than what is on hand fails without touching the stored value.
        """
        level = self.stock_level(color_name, size)
        if level is None:
            raise VariantUnavailable({"size": [f"Size {size} in {color_name} is not available for {self.name}"]})

        remaining = level.stock + delta
        if remaining < 0:
            raise InsufficientStock(
                {"stock": [f"Insufficient stock for {self.name} ({color_name}/{size}): {level.stock} available, {-delta} requested"]}
            )

        level.stock = remaining
        self.updated_at = datetime.now(UTC)

        self.raise_(
            StockAdjusted(
                product_id=str(self.id),
                color_name=color_name,
                size=size,
                delta=delta,
                stock=remaining,
            )
        )

    def update_price(self, price, original_price=None):
        if price < 0:
            raise ValidationError({"price": ["Price cannot be negative"]})

        previous_price = self.price
        self.price = price
        if original_price is not None:
            self.original_price = original_price
        self.updated_at = datetime.now(UTC)

        self.raise_(
            PriceUpdated(
                product_id=str(self.id),
                previous_price=previous_price,
                price=price,
                original_price=self.original_price,
            )
        )

    def deactivate(self):
        if not self.is_active:
            raise ValidationError({"is_active": ["Product is already inactive"]})

        now = datetime.now(UTC)
        self.is_active = False
        self.updated_at = now
        self.raise_(ProductDeactivated(product_id=str(self.id), deactivated_at=now))

    def activate(self):
        if self.is_active:
            raise ValidationError({"is_active": ["Product is already active"]})

        now = datetime.now(UTC)
        self.is_active = True
        self.updated_at = now
        self.raise_(ProductActivated(product_id=str(self.id), activated_at=now))
