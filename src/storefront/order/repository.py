from storefront.domain import storefront
from storefront.order.order import Order


def mentions(order, needle):
    """Case-insensitive match on the order number or any line's product name or code."""
    if needle in order.order_number.lower():
        return True
    return any(needle in item.product_name.lower() or needle in item.product_code.lower() for item in order.items)


@storefront.repository(part_of=Order)
class OrderRepository:
    def find_by_number(self, order_number):
        results = self._dao.query.filter(order_number=order_number).all().items
        return results[0] if results else None

    def for_customer(self, customer_id, status=None):
        query = self._dao.query.filter(customer_id=customer_id)
        if status:
            query = query.filter(status=status)
        return query.order_by("-created_at").limit(None).all().items

    def page(self, status=None, offset=0, limit=10):
        query = self._dao.query
        if status:
            query = query.filter(status=status)
        return query.order_by("-created_at").offset(offset).limit(limit).all()

    def search(self, term, customer_id=None):
        query = self._dao.query
        if customer_id:
            query = query.filter(customer_id=customer_id)
        needle = term.lower()
        return [order for order in query.order_by("-created_at").limit(None).all().items if mentions(order, needle)]

    def everything(self, customer_id=None):
        query = self._dao.query
        if customer_id:
            query = query.filter(customer_id=customer_id)
        return query.limit(None).all().items
