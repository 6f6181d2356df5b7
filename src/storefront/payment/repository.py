from storefront.domain import storefront
from storefront.payment.payment import Payment


@storefront.repository(part_of=Payment)
class PaymentRepository:
    def for_order(self, order_id):
        results = self._dao.query.filter(order_id=order_id).all().items
        return results[0] if results else None

    def find_by_gateway_order(self, gateway_order_id):
        results = self._dao.query.filter(gateway_order_id=gateway_order_id).all().items
        return results[0] if results else None

    def for_customer(self, customer_id):
        return self._dao.query.filter(customer_id=customer_id).order_by("-created_at").limit(None).all().items

    def filtered(self, method=None, status=None, start=None, end=None, offset=0, limit=10):
        query = self._dao.query
        if method:
            query = query.filter(method=method)
        if status:
            query = query.filter(status=status)
        if start:
            query = query.filter(created_at__gte=start)
        if end:
            query = query.filter(created_at__lte=end)
        return query.order_by("-created_at").offset(offset).limit(limit).all()

    def everything(self, customer_id=None):
        query = self._dao.query
        if customer_id:
            query = query.filter(customer_id=customer_id)
        return query.limit(None).all().items
