"""Domain-specific exception classes for the quote engine.

Every error carries an :class:`ErrorCode` so the HTTP layer can translate it
without inspecting exception types.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from quote_engine.domain.types import ErrorCode, QuoteOperation, QuoteStatus


class QuoteError(Exception):
    """Base class for all domain errors in the quote engine."""

    code: ErrorCode = ErrorCode.VALIDATION_ERROR

    def __init__(self, message: str, details: list[dict[str, Any]] | None = None) -> None:
        self.message = message
        self.details = details or []
        super().__init__(message)


class QuoteValidationError(QuoteError):
    """Raised when input is malformed or a numeric field is out of range.

    Attributes:
        details: Field-level error records (``loc``, ``msg``, ``type``).
    """

    code = ErrorCode.VALIDATION_ERROR

    @classmethod
    def from_pydantic(cls, exc: ValidationError) -> QuoteValidationError:
        """Build a validation error from a pydantic ``ValidationError``."""
        details = [
            {
                "field": ".".join(str(part) for part in err["loc"]),
                "message": err["msg"],
                "type": err["type"],
            }
            for err in exc.errors()
        ]
        return cls("Quote data failed validation", details=details)


class QuoteNotFoundError(QuoteError):
    """Raised when a quote id is unknown (or soft-deleted)."""

    code = ErrorCode.NOT_FOUND

    def __init__(self, quote_id: str) -> None:
        self.quote_id = quote_id
        super().__init__(f"Quote '{quote_id}' not found")


class InvalidTransitionError(QuoteError):
    """Raised when an invalid state transition is attempted.

    Attributes:
        current_state: The state the quote was in when the transition was attempted.
        event: The event or target that was rejected.
    """

    code = ErrorCode.INVALID_TRANSITION

    def __init__(self, current_state: QuoteStatus, event: str) -> None:
        self.current_state = current_state
        self.event = event
        super().__init__(f"Cannot apply '{event}' to a quote in state '{current_state}'")


class StaleVersionError(QuoteError):
    """Raised when an optimistic-concurrency check fails."""

    code = ErrorCode.STALE_VERSION

    def __init__(self, quote_id: str, expected: int | None, actual: int | None) -> None:
        self.quote_id = quote_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Quote '{quote_id}' was modified concurrently "
            f"(expected version {expected}, found {actual}); re-fetch and retry"
        )


class PermissionDeniedError(QuoteError):
    """Raised when an actor may not perform an operation."""

    code = ErrorCode.PERMISSION_DENIED

    def __init__(self, operation: QuoteOperation, *, pending_approval: bool = False) -> None:
        self.operation = operation
        self.pending_approval = pending_approval
        if pending_approval:
            self.code = ErrorCode.PENDING_APPROVAL
            message = "Account pending approval - quote access denied"
        else:
            message = f"Insufficient permissions for operation: {operation}"
        super().__init__(message)


class PricingError(QuoteError):
    """Raised when a pricing calculation receives invalid input."""

    code = ErrorCode.PRICING_ERROR


class EmailAlreadySentError(QuoteError):
    """Raised when a retry is requested for an already delivered quote email."""

    code = ErrorCode.EMAIL_ALREADY_SENT

    def __init__(self, quote_id: str) -> None:
        self.quote_id = quote_id
        super().__init__(f"Email for quote '{quote_id}' was already delivered")


class EmailDispatchError(QuoteError):
    """Raised when the mail transport fails to send a quote email.

    Attributes:
        transport_error: The underlying transport error message.
    """

    def __init__(self, code: ErrorCode, transport_error: str) -> None:
        self.code = code
        self.transport_error = transport_error
        super().__init__(f"Failed to send quote email: {transport_error}")
