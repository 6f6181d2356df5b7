"""Discount aggregate: coupons and vouchers identified by an uppercase code.

A discount is validated and priced every time it is applied to a cart, but it
is only consumed (``mark_used``) when an order is placed. ``used_by`` is the
per-user idempotency guard for consumption.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from storefront.discount.events import DiscountCreated, DiscountDeactivated, DiscountUpdated, DiscountUsed
from storefront.domain import storefront
from storefront.errors import (
    AlreadyUsedByUser,
    DiscountExpired,
    DiscountInactive,
    DiscountNotYetValid,
    DiscountUsageLimitReached,
    InvalidDiscountConfiguration,
    MinPurchaseNotMet,
)


class DiscountKind(Enum):
    COUPON = "coupon"
    VOUCHER = "voucher"


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    BUY_X_GET_Y = "buyXgetY"


UPDATABLE_FIELDS = (
    "code",
    "kind",
    "discount_type",
    "value",
    "min_purchase",
    "max_discount",
    "buy_x",
    "get_y",
    "applicable_categories",
    "excluded_products",
    "valid_from",
    "valid_until",
    "usage_limit",
    "is_active",
)

_LIST_FIELDS = ("applicable_categories", "excluded_products")


def as_utc(value):
    """Treat naive datetimes as UTC so comparisons never mix naive and aware values."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def normalize_code(code):
    return code.strip().upper() if code else code


@storefront.aggregate
class Discount:
    code = String(required=True, max_length=50, unique=True)
    kind = String(choices=DiscountKind, required=True)
    discount_type = String(choices=DiscountType, required=True)
    value = Float(default=0.0, min_value=0.0)
    min_purchase = Float(min_value=0.0)
    max_discount = Float(min_value=0.0)
    buy_x = Integer(min_value=0)
    get_y = Integer(min_value=0)
    applicable_categories = Text()  # JSON array of category ids
    excluded_products = Text()  # JSON array of product ids
    valid_from = DateTime()
    valid_until = DateTime(required=True)
    usage_limit = Integer(min_value=0)
    used_count = Integer(default=0, min_value=0)
    used_by = Text()  # JSON array of user ids
    is_active = Boolean(default=True)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        code,
        kind,
        discount_type,
        valid_until,
        value=0.0,
        min_purchase=None,
        max_discount=None,
        buy_x=None,
        get_y=None,
        applicable_categories=None,
        excluded_products=None,
        valid_from=None,
        usage_limit=None,
        is_active=True,
    ):
        now = datetime.now(UTC)
        valid_from = as_utc(valid_from) or now
        valid_until = as_utc(valid_until)

        if valid_until < now:
            raise ValidationError({"valid_until": ["Valid until date cannot be in the past"]})

        discount = cls(
            code=normalize_code(code),
            kind=kind,
            discount_type=discount_type,
            value=value or 0.0,
            min_purchase=min_purchase,
            max_discount=max_discount,
            buy_x=buy_x,
            get_y=get_y,
            applicable_categories=json.dumps(list(applicable_categories or [])),
            excluded_products=json.dumps(list(excluded_products or [])),
            valid_from=valid_from,
            valid_until=valid_until,
            usage_limit=usage_limit,
            used_count=0,
            used_by=json.dumps([]),
            is_active=is_active,
            created_at=now,
            updated_at=now,
        )
        discount.check_configuration()

        discount.raise_(
            DiscountCreated(
                discount_id=str(discount.id),
                code=discount.code,
                kind=discount.kind,
                discount_type=discount.discount_type,
                value=discount.value,
                valid_from=valid_from,
                valid_until=valid_until,
            )
        )
        return discount

    # -------------------------------------------------------------------
    # Accessors for JSON-backed lists
    # -------------------------------------------------------------------
    @property
    def category_list(self):
        return json.loads(self.applicable_categories) if self.applicable_categories else []

    @property
    def excluded_list(self):
        return json.loads(self.excluded_products) if self.excluded_products else []

    @property
    def user_list(self):
        return json.loads(self.used_by) if self.used_by else []

    def check_configuration(self):
        """Reject settings the calculation cannot work with."""
        discount_type = DiscountType(self.discount_type)
        if discount_type == DiscountType.PERCENTAGE and not 0 < (self.value or 0) <= 100:
            raise InvalidDiscountConfiguration({"value": ["Percentage discount must be between 0 and 100"]})
        if self.max_discount is not None and self.max_discount <= 0:
            raise InvalidDiscountConfiguration({"max_discount": ["Maximum discount must be greater than zero"]})
        if discount_type == DiscountType.FIXED and not (self.value or 0) > 0:
            raise InvalidDiscountConfiguration({"value": ["Fixed discount must be greater than zero"]})
        if discount_type == DiscountType.BUY_X_GET_Y and not (self.buy_x and self.get_y):
            raise InvalidDiscountConfiguration({"discount_type": ["Invalid buyXgetY discount configuration"]})
        if self.valid_from and self.valid_until and as_utc(self.valid_until) <= as_utc(self.valid_from):
            raise ValidationError({"valid_until": ["Valid until date must be after valid from date"]})

    # -------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------
    def update(self, **changes):
        """Apply a partial update. Unknown keys are rejected."""
        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError({"discount": [f"Cannot update fields: {', '.join(sorted(unknown))}"]})

        for field_name, new_value in changes.items():
            if field_name == "code":
                new_value = normalize_code(new_value)
            elif field_name in _LIST_FIELDS:
                new_value = json.dumps(list(new_value or []))
            elif field_name in ("valid_from", "valid_until"):
                new_value = as_utc(new_value)
            setattr(self, field_name, new_value)

        self.check_configuration()
        self.updated_at = datetime.now(UTC)

        self.raise_(
            DiscountUpdated(
                discount_id=str(self.id),
                code=self.code,
                changed_fields=",".join(sorted(changes)),
            )
        )

    def deactivate(self):
        if not self.is_active:
            raise ValidationError({"is_active": ["Discount is already inactive"]})

        self.is_active = False
        self.updated_at = datetime.now(UTC)
        self.raise_(DiscountDeactivated(discount_id=str(self.id), code=self.code))

    # -------------------------------------------------------------------
    # Validation and consumption
    # -------------------------------------------------------------------
    def validate(self, subtotal, now=None):
        """Raise the specific error for the first precondition that does not hold."""
        now = as_utc(now) or datetime.now(UTC)

        if not self.is_active:
            raise DiscountInactive({"code": ["Discount code is not active"]})
        if self.valid_from and now < as_utc(self.valid_from):
            raise DiscountNotYetValid({"code": ["Discount code is not yet valid"]})
        if now > as_utc(self.valid_until):
            raise DiscountExpired({"code": ["Discount code has expired"]})
        if self.usage_limit and self.used_count >= self.usage_limit:
            raise DiscountUsageLimitReached({"code": ["Discount code usage limit reached"]})
        if self.min_purchase and subtotal < self.min_purchase:
            raise MinPurchaseNotMet({"subtotal": [f"Minimum purchase of {self.min_purchase} required"]})

    def has_been_used_by(self, user_id):
        return str(user_id) in self.user_list

    def mark_used(self, user_id):
        """Consume the discount for ``user_id``: check-then-set on ``used_by``."""
        users = self.user_list
        if str(user_id) in users:
            raise AlreadyUsedByUser({"code": [f"Discount code {self.code} has already been used"]})
        if self.usage_limit and self.used_count >= self.usage_limit:
            raise DiscountUsageLimitReached({"code": ["Discount code usage limit reached"]})

        users.append(str(user_id))
        self.used_by = json.dumps(users)
        self.used_count = (self.used_count or 0) + 1
        self.updated_at = datetime.now(UTC)

        self.raise_(
            DiscountUsed(
                discount_id=str(self.id),
                code=self.code,
                user_id=str(user_id),
                used_count=self.used_count,
            )
        )
