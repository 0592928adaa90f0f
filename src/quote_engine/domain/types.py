"""Domain enumerations for the quote lifecycle engine."""

from enum import StrEnum


class Currency(StrEnum):
    """Currencies a quote can be priced in."""

    GBP = "GBP"
    EUR = "EUR"
    USD = "USD"


class QuoteStatus(StrEnum):
    """States in the quote lifecycle."""

    DRAFT = "draft"
    SENT = "sent"
    VIEWED = "viewed"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"


class EmailDeliveryStatus(StrEnum):
    """Delivery state of the most recent quote email."""

    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"


class ActorRole(StrEnum):
    """Roles an authenticated back-office user can hold."""

    ADMIN = "admin"
    AGENT = "agent"


class RegistrationStatus(StrEnum):
    """Registration state of an agency account."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class QuoteOperation(StrEnum):
    """Operations guarded by the permission manager."""

    CREATE_QUOTE = "create_quote"
    UPDATE_QUOTE = "update_quote"
    VIEW_QUOTE = "view_quote"
    VIEW_OWN_QUOTE = "view_own_quote"
    DELETE_QUOTE = "delete_quote"
    TRANSITION_STATUS = "transition_status"
    SEND_QUOTE = "send_quote"
    RETRY_EMAIL = "retry_email"
    EXPORT_QUOTES = "export_quotes"
    VIEW_ANALYTICS = "view_analytics"
    VIEW_AUDIT_LOG = "view_audit_log"


class BookingUrgency(StrEnum):
    """How soon a customer who expressed booking interest wants to travel."""

    IMMEDIATELY = "immediately"
    THIS_WEEK = "this-week"
    NEXT_WEEK = "next-week"
    WITHIN_MONTH = "within-month"
    JUST_INTERESTED = "just-interested"


class PriceChangeReason(StrEnum):
    """Why a quote's total price changed."""

    CREATED = "created"
    UPDATED = "updated"


class ErrorCode(StrEnum):
    """Machine-readable error codes surfaced to authenticated callers."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    STALE_VERSION = "STALE_VERSION"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    EMAIL_ALREADY_SENT = "EMAIL_ALREADY_SENT"
    EMAIL_SEND_FAILED = "EMAIL_SEND_FAILED"
    EMAIL_RETRY_FAILED = "EMAIL_RETRY_FAILED"
    PRICING_ERROR = "PRICING_ERROR"
