"""Error taxonomy for the storefront.

Four kinds of failure reach callers, each with a stable class name and a
Protean-style message dict (``{"field": ["message"]}``):

- NotFound: the entity does not exist (``ObjectNotFoundError`` subclasses)
- Validation: malformed input or a broken business rule (``ValidationError``)
- Conflict: uniqueness or one-per-resource rules (``Conflict``)
- InternalError: unexpected failures after validation passed
"""

from contextlib import contextmanager

from protean.exceptions import ObjectNotFoundError, ProteanException, ValidationError


# ---------------------------------------------------------------------------
# NotFound
# ---------------------------------------------------------------------------
class ProductNotFound(ObjectNotFoundError):
    pass


class CartNotFound(ObjectNotFoundError):
    pass


class CartItemNotFound(ObjectNotFoundError):
    pass


class OrderNotFound(ObjectNotFoundError):
    pass


class DiscountNotFound(ObjectNotFoundError):
    pass


class PaymentNotFound(ObjectNotFoundError):
    pass


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------
class InsufficientStock(ValidationError):
    pass


class VariantUnavailable(ValidationError):
    pass


class ProductInactive(ValidationError):
    pass


class InvalidStatusTransition(ValidationError):
    pass


class EmptyCart(ValidationError):
    pass


class NoDiscountApplied(ValidationError):
    pass


class DiscountInactive(ValidationError):
    pass


class DiscountNotYetValid(ValidationError):
    pass


class DiscountExpired(ValidationError):
    pass


class DiscountUsageLimitReached(ValidationError):
    pass


class MinPurchaseNotMet(ValidationError):
    pass


class AlreadyUsedByUser(ValidationError):
    pass


class InvalidDiscountConfiguration(ValidationError):
    pass


class DiscountInUse(ValidationError):
    pass


class OrderNotOwned(ValidationError):
    pass


class InvalidRefund(ValidationError):
    pass


class PaymentNotOwned(ValidationError):
    pass


class InvalidSignature(ValidationError):
    pass


class CaptureMismatch(ValidationError):
    pass


# ---------------------------------------------------------------------------
# Conflict
# ---------------------------------------------------------------------------
class Conflict(ProteanException):
    pass


class OrderNumberConflict(Conflict):
    pass


class PaymentAlreadyInitiated(Conflict):
    pass


class DuplicateDiscountCode(Conflict):
    pass


class DuplicateProductCode(Conflict):
    pass


# ---------------------------------------------------------------------------
# InternalError
# ---------------------------------------------------------------------------
class InternalError(ProteanException):
    pass


class GatewayError(InternalError):
    pass


def error_kind(exc: Exception) -> str:
    """Return the stable kind name used at the API boundary."""
    if isinstance(exc, ObjectNotFoundError):
        return "NotFound"
    if isinstance(exc, ValidationError):
        return "BadRequest"
    if isinstance(exc, Conflict):
        return "Conflict"
    return "InternalError"


def error_messages(exc: Exception) -> dict:
    messages = getattr(exc, "messages", None)
    if isinstance(messages, dict):
        return messages
    if messages:
        return {"_entity": [str(messages)]}
    return {"_entity": [str(exc) or type(exc).__name__]}


def is_duplicate(exc: ValidationError, field_name: str) -> bool:
    """True when ``exc`` is the store rejecting a second row for a ``unique`` field."""
    messages = exc.messages if isinstance(exc.messages, dict) else {}
    return any("already present" in str(message) for message in messages.get(field_name, []))


@contextmanager
def duplicates_as(conflict_cls, field_name: str, message: str):
    """Re-raise the store's uniqueness violation on ``field_name`` as ``conflict_cls``."""
    try:
        yield
    except ValidationError as exc:
        if is_duplicate(exc, field_name):
            raise conflict_cls({field_name: [message]}) from exc
        raise
