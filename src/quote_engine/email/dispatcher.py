"""Send and retry quote emails, or render one for preview.

The transport call runs in a worker thread under a bounded timeout; a
timeout counts as a failed delivery that can be retried.  Quote state only
moves forward on success.  A failure marks the delivery ``failed`` unless it
was already ``delivered``, which never regresses.
"""

from __future__ import annotations

import asyncio

import structlog

from quote_engine.audit.logger import AuditLogger
from quote_engine.audit.models import AuditContext
from quote_engine.domain.errors import (
    EmailAlreadySentError,
    EmailDispatchError,
    InvalidTransitionError,
    QuoteValidationError,
)
from quote_engine.domain.models import Actor, Quote
from quote_engine.domain.types import EmailDeliveryStatus, ErrorCode, QuoteOperation
from quote_engine.email.models import CompanyDetails, DispatchResult, OutboundEmail
from quote_engine.email.renderer import render_quote_email
from quote_engine.email.transport import MailTransport, MailTransportError
from quote_engine.observability.metrics import QUOTE_EMAIL_FAILURES, QUOTE_EMAILS_SENT
from quote_engine.quotes.service import QuoteService
from quote_engine.state_machine.transitions import TERMINAL_STATES, QuoteEvent
from quote_engine.tracking.tokens import TrackingTokenService

logger = structlog.get_logger()

DEFAULT_SEND_TIMEOUT_SECONDS = 15.0

# Stands in for the signed token in previews; it never validates.
PREVIEW_TOKEN = "preview"


class EmailDispatchCoordinator:
    """Orchestrates quote email sends and retries.

    Args:
        quotes: Quote service; records delivery outcomes on the quote.
        transport: The mail transport.
        tokens: Issues the tracking token embedded in each email.
        audit_logger: Destination for send/retry audit entries.
        company: Sender details printed in the email.
        timeout_seconds: Upper bound on a single transport call.
    """

    def __init__(
        self,
        quotes: QuoteService,
        transport: MailTransport,
        tokens: TrackingTokenService,
        audit_logger: AuditLogger,
        company: CompanyDetails,
        timeout_seconds: float = DEFAULT_SEND_TIMEOUT_SECONDS,
    ) -> None:
        self._quotes = quotes
        self._transport = transport
        self._tokens = tokens
        self._audit = audit_logger
        self._company = company
        self._timeout = timeout_seconds

    async def send_quote_email(
        self,
        quote_id: str,
        actor: Actor,
        context: AuditContext,
    ) -> DispatchResult:
        """Send (or re-send) the quote email.

        Raises:
            PermissionDeniedError: If *actor* may not send quotes.
            QuoteNotFoundError: If the quote does not exist.
            InvalidTransitionError: If the quote is accepted, declined, or expired.
            EmailDispatchError: ``EMAIL_SEND_FAILED`` when the transport fails
                or times out.
        """
        self._quotes.authorize(actor, QuoteOperation.SEND_QUOTE, context, quote_id)
        quote = self._quotes.require_quote(quote_id)
        self._require_sendable(quote)

        # A re-send carries the version the quote will have once delivered.
        display = quote
        if quote.email_sent:
            display = quote.model_copy(update={"version": quote.version + 1})
        message_id, error = await self._dispatch(display)

        if error is not None:
            self._quotes.record_email_failed(quote_id)
            self._audit.log_email_sent(
                context,
                quote_id,
                quote.recipient_email,
                version=quote.version,
                success=False,
                error=error,
            )
            QUOTE_EMAIL_FAILURES.labels(kind="send").inc()
            logger.error("quote_email_failed", quote_id=quote_id, error=error)
            raise EmailDispatchError(ErrorCode.EMAIL_SEND_FAILED, error)

        stored = self._quotes.record_email_delivered(quote_id, message_id)
        self._audit.log_email_sent(
            context,
            quote_id,
            quote.recipient_email,
            message_id=message_id,
            version=stored.version,
        )
        QUOTE_EMAILS_SENT.labels(kind="send").inc()
        logger.info(
            "quote_email_sent",
            quote_id=quote_id,
            message_id=message_id,
            version=stored.version,
            resend=quote.email_sent,
        )
        return _result(stored, message_id)

    async def retry_quote_email(
        self,
        quote_id: str,
        actor: Actor,
        context: AuditContext,
    ) -> DispatchResult:
        """Retry a quote email whose last delivery failed.

        Raises:
            PermissionDeniedError: If *actor* may not retry emails.
            QuoteNotFoundError: If the quote does not exist.
            EmailAlreadySentError: If the email was already delivered; the
                quote is left untouched.
            QuoteValidationError: If there is no failed delivery to retry.
            InvalidTransitionError: If the quote is in a terminal status.
            EmailDispatchError: ``EMAIL_RETRY_FAILED`` when the transport fails
                again.
        """
        self._quotes.authorize(actor, QuoteOperation.RETRY_EMAIL, context, quote_id)
        quote = self._quotes.require_quote(quote_id)

        if quote.email_delivery_status == EmailDeliveryStatus.DELIVERED and quote.email_sent:
            raise EmailAlreadySentError(quote_id)
        if quote.email_delivery_status != EmailDeliveryStatus.FAILED:
            raise QuoteValidationError(
                "Quote email has no failed delivery to retry",
                details=[
                    {
                        "field": "email_delivery_status",
                        "message": f"delivery status is {quote.email_delivery_status}",
                        "type": "retry_not_applicable",
                    }
                ],
            )
        self._require_sendable(quote)

        message_id, error = await self._dispatch(quote)

        if error is not None:
            self._audit.log_email_retry(
                context, quote_id, quote.recipient_email, success=False, error=error
            )
            QUOTE_EMAIL_FAILURES.labels(kind="retry").inc()
            logger.error("quote_email_retry_failed", quote_id=quote_id, error=error)
            raise EmailDispatchError(ErrorCode.EMAIL_RETRY_FAILED, error)

        stored = self._quotes.record_email_delivered(quote_id, message_id)
        self._audit.log_email_retry(context, quote_id, quote.recipient_email, message_id=message_id)
        QUOTE_EMAILS_SENT.labels(kind="retry").inc()
        logger.info("quote_email_retried", quote_id=quote_id, message_id=message_id)
        return _result(stored, message_id)

    def preview_quote_email(
        self,
        quote_id: str,
        actor: Actor,
        context: AuditContext,
    ) -> OutboundEmail:
        """Render the quote email exactly as it would be sent, without sending it.

        No token is issued and the quote is not modified.

        Raises:
            PermissionDeniedError: If *actor* may not send quotes.
            QuoteNotFoundError: If the quote does not exist.
        """
        self._quotes.authorize(actor, QuoteOperation.SEND_QUOTE, context, quote_id)
        quote = self._quotes.require_quote(quote_id)
        return render_quote_email(
            quote,
            tracking_url=self._tokens.tracking_url(PREVIEW_TOKEN),
            company=self._company,
        )

    async def _dispatch(self, quote: Quote) -> tuple[str, str | None]:
        """Render and send *quote*; return ``(message_id, error)``."""
        token = self._tokens.issue_token(quote.id, quote.recipient_email)
        message = render_quote_email(
            quote,
            tracking_url=self._tokens.tracking_url(token),
            company=self._company,
        )
        try:
            message_id = await asyncio.wait_for(
                asyncio.to_thread(self._transport.send, message),
                timeout=self._timeout,
            )
        except TimeoutError:
            return "", f"Mail transport timed out after {self._timeout:g}s"
        except MailTransportError as exc:
            return "", str(exc)
        except Exception as exc:
            # Any transport fault is a failed delivery, never a stuck pending one.
            logger.exception("mail_transport_unexpected_error", quote_id=quote.id)
            return "", f"Mail transport error: {exc.__class__.__name__}: {exc}"
        return message_id, None

    @staticmethod
    def _require_sendable(quote: Quote) -> None:
        if quote.status in TERMINAL_STATES:
            raise InvalidTransitionError(quote.status, QuoteEvent.SEND)


def _result(quote: Quote, message_id: str) -> DispatchResult:
    return DispatchResult(
        quote_id=quote.id,
        message_id=message_id,
        version=quote.version,
        status=quote.status,
        email_delivery_status=quote.email_delivery_status,
        email_sent_at=quote.email_sent_at,
    )
