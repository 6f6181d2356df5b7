"""Discount administration and consumption: commands and handler."""

import json

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.discount.discount import UPDATABLE_FIELDS, Discount, normalize_code
from storefront.domain import storefront
from storefront.errors import DiscountInUse, DiscountNotFound, DuplicateDiscountCode, duplicates_as

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Discount")
class CreateDiscount:
    code = String(required=True, max_length=50)
    kind = String(required=True, max_length=20)
    discount_type = String(required=True, max_length=20)
    value = Float(default=0.0)
    min_purchase = Float()
    max_discount = Float()
    buy_x = Integer()
    get_y = Integer()
    applicable_categories = Text()  # JSON array
    excluded_products = Text()  # JSON array
    valid_from = DateTime()
    valid_until = DateTime(required=True)
    usage_limit = Integer()
    is_active = Boolean(default=True)


@storefront.command(part_of="Discount")
class UpdateDiscount:
    """Partial update: only the fields that are set are changed."""

    discount_id = Identifier(required=True)
    code = String(max_length=50)
    kind = String(max_length=20)
    discount_type = String(max_length=20)
    value = Float()
    min_purchase = Float()
    max_discount = Float()
    buy_x = Integer()
    get_y = Integer()
    applicable_categories = Text()
    excluded_products = Text()
    valid_from = DateTime()
    valid_until = DateTime()
    usage_limit = Integer()
    is_active = Boolean()


@storefront.command(part_of="Discount")
class DeactivateDiscount:
    discount_id = Identifier(required=True)


@storefront.command(part_of="Discount")
class DeleteDiscount:
    discount_id = Identifier(required=True)


@storefront.command(part_of="Discount")
class MarkDiscountUsed:
    code = String(required=True, max_length=50)
    user_id = Identifier(required=True)


def _load_list(raw):
    return json.loads(raw) if raw else []


def load_discount(discount_id):
    try:
        return current_domain.repository_for(Discount).get(discount_id)
    except ObjectNotFoundError:
        raise DiscountNotFound({"discount_id": [f"Discount {discount_id} not found"]}) from None


def load_discount_by_code(code):
    discount = current_domain.repository_for(Discount).find_by_code(code)
    if discount is None:
        raise DiscountNotFound({"code": [f"Discount code {normalize_code(code)} not found"]})
    return discount


@storefront.command_handler(part_of=Discount)
class ManageDiscountHandler:
    @handle(CreateDiscount)
    def create_discount(self, command):
        repo = current_domain.repository_for(Discount)
        if repo.find_by_code(command.code) is not None:
            raise DuplicateDiscountCode({"code": [f"Discount code {normalize_code(command.code)} already exists"]})

        discount = Discount.create(
            code=command.code,
            kind=command.kind,
            discount_type=command.discount_type,
            value=command.value,
            min_purchase=command.min_purchase,
            max_discount=command.max_discount,
            buy_x=command.buy_x,
            get_y=command.get_y,
            applicable_categories=_load_list(command.applicable_categories),
            excluded_products=_load_list(command.excluded_products),
            valid_from=command.valid_from,
            valid_until=command.valid_until,
            usage_limit=command.usage_limit,
            is_active=command.is_active,
        )
        with duplicates_as(DuplicateDiscountCode, "code", f"Discount code {discount.code} already exists"):
            repo.add(discount)
        logger.info("discount_created", discount_id=str(discount.id), code=discount.code)
        return str(discount.id)

    @handle(UpdateDiscount)
    def update_discount(self, command):
        repo = current_domain.repository_for(Discount)
        discount = load_discount(command.discount_id)

        changes = {
            key: getattr(command, key) for key in UPDATABLE_FIELDS if getattr(command, key) is not None
        }
        for list_field in ("applicable_categories", "excluded_products"):
            if list_field in changes:
                changes[list_field] = _load_list(changes[list_field])

        if "code" in changes and normalize_code(changes["code"]) != discount.code:
            if repo.find_by_code(changes["code"]) is not None:
                raise DuplicateDiscountCode({"code": [f"Discount code {normalize_code(changes['code'])} already exists"]})

        discount.update(**changes)
        repo.add(discount)

    @handle(DeactivateDiscount)
    def deactivate_discount(self, command):
        discount = load_discount(command.discount_id)
        discount.deactivate()
        current_domain.repository_for(Discount).add(discount)

    @handle(DeleteDiscount)
    def delete_discount(self, command):
        repo = current_domain.repository_for(Discount)
        discount = load_discount(command.discount_id)
        if discount.used_count and discount.used_count > 0:
            raise DiscountInUse({"discount_id": ["Discount has been used and cannot be deleted"]})

        repo._dao.delete(discount)
        logger.info("discount_deleted", discount_id=str(discount.id), code=discount.code)

    @handle(MarkDiscountUsed)
    def mark_discount_used(self, command):
        discount = load_discount_by_code(command.code)
        discount.mark_used(command.user_id)
        current_domain.repository_for(Discount).add(discount)
        return discount.used_count
