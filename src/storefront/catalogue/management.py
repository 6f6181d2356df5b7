"""Catalogue administration: commands and handler.

Registers products, their color variants and per-size stock, and keeps prices
and availability up to date.
"""

import json

from protean import handle
from protean.fields import Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.catalogue.lookup import get_product_by_id
from storefront.catalogue.product import Product
from storefront.domain import storefront
from storefront.errors import DuplicateProductCode, duplicates_as


@storefront.command(part_of="Product")
class RegisterProduct:
    code = String(required=True, max_length=50)
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    original_price = Float(min_value=0.0)
    category_id = Identifier()
    description = Text()


@storefront.command(part_of="Product")
class AddColorVariant:
    product_id = Identifier(required=True)
    name = String(required=True, max_length=50)
    hex_code = String(max_length=9)
    images = Text()  # JSON array of image URLs


@storefront.command(part_of="Product")
class SetStock:
    product_id = Identifier(required=True)
    color_name = String(required=True, max_length=50)
    size = String(required=True, max_length=20)
    stock = Integer(required=True, min_value=0)


@storefront.command(part_of="Product")
class UpdatePrice:
    product_id = Identifier(required=True)
    price = Float(required=True, min_value=0.0)
    original_price = Float(min_value=0.0)


@storefront.command(part_of="Product")
class DeactivateProduct:
    product_id = Identifier(required=True)


@storefront.command(part_of="Product")
class ActivateProduct:
    product_id = Identifier(required=True)


@storefront.command_handler(part_of=Product)
class ManageProductHandler:
    @handle(RegisterProduct)
    def register_product(self, command):
        repo = current_domain.repository_for(Product)
        if repo.find_by_code(command.code) is not None:
            raise DuplicateProductCode({"code": [f"Product code {command.code} already exists"]})

        product = Product.register(
            code=command.code,
            name=command.name,
            price=command.price,
            original_price=command.original_price,
            category_id=command.category_id,
            description=command.description,
        )
        with duplicates_as(DuplicateProductCode, "code", f"Product code {command.code} already exists"):
            repo.add(product)
        return str(product.id)

    @handle(AddColorVariant)
    def add_color_variant(self, command):
        product = get_product_by_id(command.product_id)
        images = json.loads(command.images) if command.images else []
        product.add_color(name=command.name, hex_code=command.hex_code, images=images)
        current_domain.repository_for(Product).add(product)

    @handle(SetStock)
    def set_stock(self, command):
        product = get_product_by_id(command.product_id)
        product.set_stock(command.color_name, command.size, command.stock)
        current_domain.repository_for(Product).add(product)

    @handle(UpdatePrice)
    def update_price(self, command):
        product = get_product_by_id(command.product_id)
        product.update_price(command.price, command.original_price)
        current_domain.repository_for(Product).add(product)

    @handle(DeactivateProduct)
    def deactivate_product(self, command):
        product = get_product_by_id(command.product_id)
        product.deactivate()
        current_domain.repository_for(Product).add(product)

    @handle(ActivateProduct)
    def activate_product(self, command):
        product = get_product_by_id(command.product_id)
        product.activate()
        current_domain.repository_for(Product).add(product)
