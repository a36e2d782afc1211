"""Error taxonomy on top of protean's exceptions.

Every error carries ``messages``: a mapping of field name to a list of
human-readable messages, the same shape the API returns to clients. The
protean base class decides the HTTP status (see ``shared.api``); the concrete
subclasses carry a ``code`` naming the business rule that was broken.
"""

from protean.exceptions import (  # noqa: F401
    InvalidOperationError,
    ObjectNotFoundError,
    ProteanException,
    ValidationError,
)


class DomainError:
    """Mixin giving a protean exception a stable error ``code``."""

    code = "error"

    def __init__(self, messages: dict[str, list[str]]) -> None:
        super().__init__(messages)
        self.messages = messages


# ---------------------------------------------------------------------------
# Base categories
# ---------------------------------------------------------------------------
class ConflictError(DomainError, InvalidOperationError):
    """The target is in a state that does not allow the operation (409)."""

    code = "conflict"


class AuthenticationError(DomainError, ProteanException):
    code = "authentication_failed"


class PermissionDeniedError(DomainError, ProteanException):
    code = "permission_denied"


class ExternalServiceError(DomainError, ProteanException):
    """A collaborator (payment gateway) failed before any state was touched (502)."""

    code = "external_service_error"


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
class EmptyCart(DomainError, ValidationError):
    code = "empty_cart"


class MissingShippingFields(DomainError, ValidationError):
    code = "missing_shipping_fields"


class InsufficientStock(DomainError, ValidationError):
    code = "insufficient_stock"


# ---------------------------------------------------------------------------
# Coupons
# ---------------------------------------------------------------------------
class CouponInvalid(DomainError, ValidationError):
    code = "coupon_invalid"


class CouponExpired(DomainError, ValidationError):
    code = "coupon_expired"


class CouponExhausted(DomainError, ValidationError):
    code = "coupon_exhausted"


class MinPurchaseNotMet(DomainError, ValidationError):
    code = "min_purchase_not_met"


class CouponAlreadyUsed(DomainError, ValidationError):
    code = "coupon_already_used"


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class InvalidTransition(ConflictError):
    code = "invalid_transition"


class MissingShippingInfo(DomainError, ValidationError):
    code = "missing_shipping_info"


class OrderAlreadyProcessed(ConflictError):
    code = "order_already_processed"


class SlotAlreadyBooked(ConflictError):
    code = "slot_already_booked"


class ReturnAlreadyOpen(ConflictError):
    code = "return_already_open"


class ReturnAlreadyResolved(ConflictError):
    code = "return_already_resolved"


# ---------------------------------------------------------------------------
# Tickets
# ---------------------------------------------------------------------------
class SoldOut(ConflictError):
    code = "sold_out"


class AlreadyPurchased(ConflictError):
    code = "already_purchased"


class SelfPurchaseForbidden(DomainError, ValidationError):
    code = "self_purchase_forbidden"


class ShowUnavailable(DomainError, ValidationError):
    code = "show_unavailable"


class TicketAlreadyUsed(ConflictError):
    code = "ticket_already_used"


class TicketCancelled(ConflictError):
    code = "ticket_cancelled"


class TicketUnpaid(DomainError, ValidationError):
    code = "ticket_unpaid"


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------
class InvalidSignature(AuthenticationError):
    code = "invalid_signature"
