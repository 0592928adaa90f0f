"""Records customer engagement arriving through tracking links.

Clicks and booking-interest confirmations come from unauthenticated
customers, so nothing here raises to the caller: invalid tokens and storage
failures are logged and audited, and the caller gets ``success=False`` and
redirects to a safe page.
"""

from __future__ import annotations

import sqlite3

import structlog
from pydantic import BaseModel

from quote_engine.audit.logger import AuditLogger
from quote_engine.audit.models import AuditContext
from quote_engine.domain.errors import QuoteError
from quote_engine.domain.models import BookingInterestDetails
from quote_engine.observability.metrics import TRACKING_CLICKS, TRACKING_REJECTED
from quote_engine.quotes.service import QuoteService
from quote_engine.tracking.tokens import TrackingTokenService

logger = structlog.get_logger()

MAX_USER_AGENT_LENGTH = 200
UNKNOWN_QUOTE = "UNKNOWN_QUOTE"


class ClickResult(BaseModel, frozen=True):
    """Outcome of a tracking link click.

    Attributes:
        success: Whether the token was valid and the click recorded.
        quote_id: The quote the token refers to, when known.
        status_changed: True only for the click that moved sent -> viewed.
    """

    success: bool
    quote_id: str | None = None
    status_changed: bool = False


class BookingInterestResult(BaseModel, frozen=True):
    """Outcome of a booking-interest confirmation."""

    success: bool
    quote_id: str | None = None
    first_expression: bool = False


class EngagementRecorder:
    """Validates tracking tokens and records clicks and booking interest.

    Args:
        tokens: Token service used to validate incoming tokens.
        quotes: Quote service that owns the quote writes.
        audit_logger: Destination for passive engagement audit entries.
    """

    def __init__(
        self,
        tokens: TrackingTokenService,
        quotes: QuoteService,
        audit_logger: AuditLogger,
    ) -> None:
        self._tokens = tokens
        self._quotes = quotes
        self._audit = audit_logger

    def _context(self, client_ip: str | None, user_agent: str | None) -> AuditContext:
        hashed_ip = self._tokens.fingerprint(client_ip, purpose="ip") if client_ip else None
        return AuditContext.anonymous(
            client_ip=hashed_ip,
            user_agent=user_agent[:MAX_USER_AGENT_LENGTH] if user_agent else None,
        )

    def _resolve(self, token: str | None, context: AuditContext) -> str | None:
        """Return the quote id for a valid token on a live quote, else audit and None."""
        validation = self._tokens.validate_token(token)
        if not validation.valid or validation.quote_id is None:
            reason = str(validation.failure)
            self._reject(context, reason, validation.quote_id)
            return None

        quote_id = validation.quote_id
        try:
            self._quotes.require_quote(quote_id)
        except QuoteError:
            self._reject(context, UNKNOWN_QUOTE, quote_id)
            return None
        return quote_id

    def _reject(self, context: AuditContext, reason: str, quote_id: str | None) -> None:
        TRACKING_REJECTED.labels(reason=reason).inc()
        logger.warning("tracking_token_rejected", reason=reason, quote_id=quote_id)
        self._audit.log_tracking_rejected(context, reason, quote_id)

    def record_click(
        self,
        token: str | None,
        client_ip: str | None = None,
        user_agent: str | None = None,
    ) -> ClickResult:
        """Record a click; the first click on a sent quote marks it viewed.

        Repeated clicks succeed and are audited but do not change status.
        """
        context = self._context(client_ip, user_agent)
        try:
            quote_id = self._resolve(token, context)
            if quote_id is None:
                return ClickResult(success=False)
            changed = self._quotes.mark_viewed(quote_id)
        except sqlite3.Error:
            logger.exception("tracking_click_failed")
            return ClickResult(success=False)

        TRACKING_CLICKS.inc()
        self._audit.log_tracking_click(context, quote_id, status_changed=changed)
        logger.info("tracking_click_recorded", quote_id=quote_id, status_changed=changed)
        return ClickResult(success=True, quote_id=quote_id, status_changed=changed)

    def record_booking_interest(
        self,
        token: str | None,
        details: BookingInterestDetails | None = None,
        client_ip: str | None = None,
        user_agent: str | None = None,
    ) -> BookingInterestResult:
        """Record booking interest; the first expression's timestamp is kept.

        Does not change the quote status: a viewed quote can express
        interest without being accepted.
        """
        context = self._context(client_ip, user_agent)
        try:
            quote_id = self._resolve(token, context)
            if quote_id is None:
                return BookingInterestResult(success=False)
            first = self._quotes.record_booking_interest(quote_id, details)
        except sqlite3.Error:
            logger.exception("booking_interest_failed")
            return BookingInterestResult(success=False)

        self._audit.log_booking_interest(context, quote_id, first_expression=first)
        logger.info("booking_interest_recorded", quote_id=quote_id, first_expression=first)
        return BookingInterestResult(success=True, quote_id=quote_id, first_expression=first)
