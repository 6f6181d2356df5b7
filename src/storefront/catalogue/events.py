"""Domain events for the Product aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Product")
class ProductRegistered:
    """A new product was added to the catalogue."""

    __version__ = 1

    product_id = Identifier(required=True)
    code = String(required=True)
    name = String(required=True)
    price = Float(required=True)
    category_id = Identifier()
    registered_at = DateTime()


@storefront.event(part_of="Product")
class ColorVariantAdded:
    __version__ = 1

    product_id = Identifier(required=True)
    color_name = String(required=True)
    hex_code = String()


@storefront.event(part_of="Product")
class StockLevelSet:
    """Stock for a color/size was set by an administrator."""

    __version__ = 1

    product_id = Identifier(required=True)
    color_name = String(required=True)
    size = String(required=True)
    previous_stock = Integer(required=True)
    stock = Integer(required=True)


@storefront.event(part_of="Product")
class StockAdjusted:
    """Stock moved because of a reservation (negative) or a restoration (positive)."""

    __version__ = 1

    product_id = Identifier(required=True)
    color_name = String(required=True)
    size = String(required=True)
    delta = Integer(required=True)
    stock = Integer(required=True)


@storefront.event(part_of="Product")
class PriceUpdated:
    __version__ = 1

    product_id = Identifier(required=True)
    previous_price = Float(required=True)
    price = Float(required=True)
    original_price = Float()


@storefront.event(part_of="Product")
class ProductDeactivated:
    __version__ = 1

    product_id = Identifier(required=True)
    deactivated_at = DateTime()


@storefront.event(part_of="Product")
class ProductActivated:
    __version__ = 1

    product_id = Identifier(required=True)
    activated_at = DateTime()
