from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart
from storefront.domain import storefront
from storefront.errors import CartNotFound


@storefront.repository(part_of=Cart)
class CartRepository:
    def for_customer(self, customer_id):
        results = self._dao.query.filter(customer_id=customer_id).all().items
        return results[0] if results else None

    def for_session(self, session_id):
        results = self._dao.query.filter(session_id=session_id).all().items
        return results[0] if results else None

    def discard(self, cart):
        self._dao.delete(cart)


def find_cart(customer_id=None, session_id=None):
    """The owner's cart, or None. Customer identity wins over a session id."""
    repo = current_domain.repository_for(Cart)
    if customer_id:
        return repo.for_customer(customer_id)
    if session_id:
        return repo.for_session(session_id)
    raise ValidationError({"cart": ["A customer id or a session id is required"]})


def get_cart(customer_id=None, session_id=None):
    cart = find_cart(customer_id=customer_id, session_id=session_id)
    if cart is None:
        raise CartNotFound({"cart": ["Cart not found"]})
    return cart


def load_or_new(customer_id=None, session_id=None):
    """The owner's cart, or a new unsaved one. The caller persists it."""
    cart = find_cart(customer_id=customer_id, session_id=session_id)
    if cart is None:
        cart = Cart.create(
            customer_id=customer_id or None,
            session_id=None if customer_id else session_id,
        )
    return cart


def get_or_create(customer_id=None, session_id=None):
    """Load the owner's cart, creating an empty one on first access."""
    cart = find_cart(customer_id=customer_id, session_id=session_id)
    if cart is None:
        cart = load_or_new(customer_id=customer_id, session_id=session_id)
        current_domain.repository_for(Cart).add(cart)
    return cart
