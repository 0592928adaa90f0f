"""Domain types, models, and errors for the quote engine."""

from quote_engine.domain.errors import (
    EmailAlreadySentError,
    EmailDispatchError,
    InvalidTransitionError,
    PermissionDeniedError,
    PricingError,
    QuoteError,
    QuoteNotFoundError,
    QuoteValidationError,
    StaleVersionError,
)
from quote_engine.domain.models import (
    Actor,
    BookingInterest,
    BookingInterestDetails,
    EventSelection,
    PriceHistoryEntry,
    PriceRequest,
    Quote,
    QuoteCreate,
    QuotePatch,
)
from quote_engine.domain.types import (
    ActorRole,
    BookingUrgency,
    Currency,
    EmailDeliveryStatus,
    ErrorCode,
    PriceChangeReason,
    QuoteOperation,
    QuoteStatus,
    RegistrationStatus,
)

__all__ = [
    "Actor",
    "ActorRole",
    "BookingInterest",
    "BookingInterestDetails",
    "BookingUrgency",
    "Currency",
    "EmailAlreadySentError",
    "EmailDeliveryStatus",
    "EmailDispatchError",
    "ErrorCode",
    "EventSelection",
    "InvalidTransitionError",
    "PermissionDeniedError",
    "PriceChangeReason",
    "PriceHistoryEntry",
    "PriceRequest",
    "PricingError",
    "Quote",
    "QuoteCreate",
    "QuoteError",
    "QuoteNotFoundError",
    "QuoteOperation",
    "QuotePatch",
    "QuoteStatus",
    "QuoteValidationError",
    "RegistrationStatus",
    "StaleVersionError",
]
