from storefront.discount.discount import Discount, normalize_code
from storefront.domain import storefront


@storefront.repository(part_of=Discount)
class DiscountRepository:
    def find_by_code(self, code):
        results = self._dao.query.filter(code=normalize_code(code)).all().items
        return results[0] if results else None

    def listing(self, active_only=False):
        query = self._dao.query
        if active_only:
            query = query.filter(is_active=True)
        return query.order_by("code").all().items
