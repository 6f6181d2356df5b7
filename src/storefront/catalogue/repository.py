from storefront.catalogue.product import Product
from storefront.domain import storefront


@storefront.repository(part_of=Product)
class ProductRepository:
    def find_by_code(self, code):
        results = self._dao.query.filter(code=code).all().items
        return results[0] if results else None
