"""Quote entity operations: creation, edits, status changes, and deletion.

:class:`QuoteService` is the only writer of quote rows.  Every public
operation checks the permission manager first, recomputes totals through the
pricing calculator, persists through the compare-and-swap store, and writes
one audit entry.  The ``record_*`` and ``mark_viewed`` methods are the
internal writers used by the email coordinator and the engagement recorder.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import ValidationError

from quote_engine.audit.logger import AuditLogger
from quote_engine.audit.models import AuditContext
from quote_engine.domain.errors import (
    InvalidTransitionError,
    PermissionDeniedError,
    PricingError,
    QuoteNotFoundError,
    QuoteValidationError,
    StaleVersionError,
)
from quote_engine.domain.models import (
    Actor,
    BookingInterestDetails,
    PriceHistoryEntry,
    PriceRequest,
    Quote,
    QuoteCreate,
    QuotePatch,
)
from quote_engine.domain.types import (
    EmailDeliveryStatus,
    PriceChangeReason,
    QuoteOperation,
    QuoteStatus,
)
from quote_engine.permissions.manager import can_perform_operation, can_view_quote
from quote_engine.pricing.calculator import (
    PriceBreakdown,
    UnitPrices,
    compute_total,
    derive_unit_prices,
)
from quote_engine.quotes.store import QuoteStore
from quote_engine.state_machine.machine import QuoteStateMachine
from quote_engine.state_machine.transitions import TERMINAL_STATES, QuoteEvent

logger = structlog.get_logger()

# Internal writers re-read and re-apply after losing a compare-and-swap race.
MAX_WRITE_ATTEMPTS = 3


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def _parse(model: type[Any], payload: Any) -> Any:
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise QuoteValidationError.from_pydantic(exc) from exc


def _rebuild(quote: Quote, updates: dict[str, Any]) -> Quote:
    """Apply *updates* to *quote* with full field validation."""
    data = quote.model_dump()
    data.update(updates)
    data["revision"] = quote.revision
    try:
        return Quote.model_validate(data)
    except ValidationError as exc:
        raise QuoteValidationError.from_pydantic(exc) from exc


class QuoteService:
    """Owns every mutation of persisted quotes.

    Args:
        store: The quote store.
        audit_logger: Destination for audit entries.
        clock: Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        store: QuoteStore,
        audit_logger: AuditLogger,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._audit = audit_logger
        self._clock = clock or _utcnow

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def authorize(
        self,
        actor: Actor,
        operation: QuoteOperation,
        context: AuditContext,
        quote_id: str | None = None,
    ) -> None:
        """Raise PermissionDeniedError (and audit it) if *actor* may not act.

        Raises:
            PermissionDeniedError: With ``PENDING_APPROVAL`` for unapproved
                actors, ``PERMISSION_DENIED`` otherwise.
        """
        if can_perform_operation(actor, operation):
            return
        self._deny(actor, operation, context, quote_id)

    def _deny(
        self,
        actor: Actor,
        operation: QuoteOperation,
        context: AuditContext,
        quote_id: str | None,
    ) -> None:
        pending = not actor.is_approved
        reason = "pending_approval" if pending else "insufficient_permissions"
        self._audit.log_permission_denied(context, str(operation), quote_id=quote_id, reason=reason)
        logger.warning(
            "permission_denied",
            actor_id=actor.id,
            role=str(actor.role),
            operation=str(operation),
            quote_id=quote_id,
            reason=reason,
        )
        raise PermissionDeniedError(operation, pending_approval=pending)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def require_quote(self, quote_id: str) -> Quote:
        """Load a live quote without permission checks or auditing.

        Raises:
            QuoteNotFoundError: If the id is unknown or the quote is deleted.
        """
        quote = self._store.get(quote_id)
        if quote is None:
            raise QuoteNotFoundError(quote_id)
        return quote

    def get_quote(self, quote_id: str, actor: Actor, context: AuditContext) -> Quote:
        """Return one quote for an admin, or for the agent it belongs to."""
        if not actor.is_approved:
            self._deny(actor, QuoteOperation.VIEW_QUOTE, context, quote_id)
        quote = self.require_quote(quote_id)
        if not can_view_quote(actor, quote):
            self._deny(actor, QuoteOperation.VIEW_QUOTE, context, quote_id)
        self._audit.log_quote_viewed(context, quote_id)
        return quote

    # ------------------------------------------------------------------
    # Pricing preview
    # ------------------------------------------------------------------

    def calculate_price(
        self,
        request: PriceRequest | dict[str, Any],
        actor: Actor,
        context: AuditContext,
    ) -> tuple[PriceBreakdown, UnitPrices]:
        """Price a prospective quote without saving it."""
        self.authorize(actor, QuoteOperation.CREATE_QUOTE, context)
        parsed: PriceRequest = _parse(PriceRequest, request)
        breakdown = compute_total(
            parsed.package_price, parsed.currency, parsed.events, parsed.number_of_people
        )
        unit_prices = derive_unit_prices(
            breakdown.total,
            parsed.number_of_people,
            parsed.number_of_rooms,
            parsed.number_of_nights,
        )
        return breakdown, unit_prices

    # ------------------------------------------------------------------
    # Administrative mutations
    # ------------------------------------------------------------------

    def create_quote(
        self,
        payload: QuoteCreate | dict[str, Any],
        actor: Actor,
        context: AuditContext,
    ) -> Quote:
        """Create a draft quote at version 1 with a server-computed total.

        Raises:
            PermissionDeniedError: If *actor* may not create quotes.
            QuoteValidationError: If the payload is malformed or out of range.
        """
        self.authorize(actor, QuoteOperation.CREATE_QUOTE, context)
        data: QuoteCreate = _parse(QuoteCreate, payload)

        breakdown = self._price(data.package_price, data.currency, data.events, data.number_of_people)
        now = self._clock()
        try:
            quote = Quote(
                **data.model_dump(),
                created_by=actor.id,
                total_price=breakdown.total,
                price_history=[
                    PriceHistoryEntry(
                        price=breakdown.total,
                        reason=PriceChangeReason.CREATED,
                        timestamp=now,
                        actor_id=actor.id,
                    )
                ],
                created_at=now,
                updated_at=now,
            )
        except ValidationError as exc:
            raise QuoteValidationError.from_pydantic(exc) from exc

        self._store.insert(quote)
        self._audit.log_quote_created(
            context, quote.id, quote.enquiry_id, total_price=str(quote.total_price)
        )
        logger.info(
            "quote_created",
            quote_id=quote.id,
            enquiry_id=quote.enquiry_id,
            total_price=str(quote.total_price),
            currency=str(quote.currency),
            mismatched_events=len(breakdown.mismatched_events),
        )
        return quote

    def update_quote(
        self,
        quote_id: str,
        patch: QuotePatch | dict[str, Any],
        actor: Actor,
        context: AuditContext,
        expected_version: int | None = None,
    ) -> Quote:
        """Apply an edit, recompute the total, and version it if already sent.

        Raises:
            PermissionDeniedError: If *actor* may not edit quotes.
            QuoteValidationError: If the patch is malformed, empty, or tries
                to set a computed or immutable field.
            QuoteNotFoundError: If the quote does not exist.
            StaleVersionError: If *expected_version* does not match, or a
                concurrent write landed first.
            InvalidTransitionError: If the quote is in a terminal status.
        """
        self.authorize(actor, QuoteOperation.UPDATE_QUOTE, context, quote_id)
        parsed: QuotePatch = _parse(QuotePatch, patch)
        changes = parsed.changes()
        if not changes:
            raise QuoteValidationError("No editable fields supplied")

        quote = self.require_quote(quote_id)
        self._check_expected_version(quote, expected_version)
        if quote.status in TERMINAL_STATES:
            self._audit.log_quote_updated(
                context,
                quote_id,
                list(changes),
                quote.version,
                success=False,
                error="terminal_status",
            )
            raise InvalidTransitionError(quote.status, "edit")

        candidate = _rebuild(quote, changes)
        breakdown = self._price(
            candidate.package_price,
            candidate.currency,
            candidate.events,
            candidate.number_of_people,
        )
        now = self._clock()
        history = list(quote.price_history)
        if breakdown.total != quote.total_price:
            history.append(
                PriceHistoryEntry(
                    price=breakdown.total,
                    reason=PriceChangeReason.UPDATED,
                    timestamp=now,
                    actor_id=actor.id,
                )
            )
        updated = _rebuild(
            candidate,
            {
                "total_price": breakdown.total,
                "price_history": history,
                "version": quote.version + 1 if quote.email_sent else quote.version,
                "updated_at": now,
            },
        )

        stored = self._store.save(updated)
        self._audit.log_quote_updated(context, quote_id, list(changes), stored.version)
        logger.info(
            "quote_updated",
            quote_id=quote_id,
            fields=sorted(changes),
            version=stored.version,
            total_price=str(stored.total_price),
        )
        return stored

    def transition_status(
        self,
        quote_id: str,
        new_status: QuoteStatus | str,
        actor: Actor,
        context: AuditContext,
        expected_version: int | None = None,
    ) -> Quote:
        """Move a quote to *new_status* if the state machine allows it.

        Raises:
            PermissionDeniedError: If *actor* may not change statuses.
            QuoteValidationError: If *new_status* is not a known status.
            QuoteNotFoundError: If the quote does not exist.
            StaleVersionError: On an expected-version mismatch or lost race.
            InvalidTransitionError: If *new_status* is not reachable.
        """
        self.authorize(actor, QuoteOperation.TRANSITION_STATUS, context, quote_id)
        try:
            target = QuoteStatus(new_status)
        except ValueError:
            raise QuoteValidationError(
                f"Unknown status: {new_status!r}",
                details=[{"field": "status", "message": "unknown status", "type": "enum"}],
            ) from None

        quote = self.require_quote(quote_id)
        self._check_expected_version(quote, expected_version)

        machine = QuoteStateMachine(quote.status)
        try:
            machine.transition_to(target)
        except InvalidTransitionError:
            self._audit.log_status_transition(
                context,
                quote_id,
                str(quote.status),
                str(target),
                success=False,
                error="invalid_transition",
            )
            raise

        stored = self._store.save(
            quote.model_copy(update={"status": machine.state, "updated_at": self._clock()})
        )
        self._audit.log_status_transition(context, quote_id, str(quote.status), str(stored.status))
        logger.info(
            "quote_status_changed",
            quote_id=quote_id,
            from_status=str(quote.status),
            to_status=str(stored.status),
        )
        return stored

    def delete_quote(self, quote_id: str, actor: Actor, context: AuditContext) -> Quote:
        """Soft-delete a quote; the row is kept for audit purposes."""
        self.authorize(actor, QuoteOperation.DELETE_QUOTE, context, quote_id)
        quote = self.require_quote(quote_id)
        now = self._clock()
        stored = self._store.save(quote.model_copy(update={"deleted_at": now, "updated_at": now}))
        self._audit.log_quote_deleted(context, quote_id)
        logger.info("quote_deleted", quote_id=quote_id)
        return stored

    # ------------------------------------------------------------------
    # Internal writers
    # ------------------------------------------------------------------

    def record_email_delivered(self, quote_id: str, message_id: str) -> Quote:
        """Record a successful dispatch of the quote email.

        Draft quotes move to ``sent``.  When the quote had already been sent
        this is a re-send: the version increases and a viewed quote returns
        to ``sent``.
        """

        def apply(quote: Quote) -> Quote:
            machine = QuoteStateMachine(quote.status)
            if machine.can_trigger(QuoteEvent.SEND):
                machine.trigger(QuoteEvent.SEND)
            now = self._clock()
            return quote.model_copy(
                update={
                    "status": machine.state,
                    "version": quote.version + 1 if quote.email_sent else quote.version,
                    "email_sent": True,
                    "email_sent_at": now,
                    "email_delivery_status": EmailDeliveryStatus.DELIVERED,
                    "email_message_id": message_id,
                    "updated_at": now,
                }
            )

        return self._apply_with_retry(quote_id, apply)

    def record_email_failed(self, quote_id: str) -> Quote:
        """Record a failed dispatch; a delivered status is never downgraded."""

        def apply(quote: Quote) -> Quote:
            if quote.email_delivery_status == EmailDeliveryStatus.DELIVERED:
                return quote
            return quote.model_copy(
                update={
                    "email_delivery_status": EmailDeliveryStatus.FAILED,
                    "updated_at": self._clock(),
                }
            )

        return self._apply_with_retry(quote_id, apply)

    def mark_viewed(self, quote_id: str) -> bool:
        """Move a sent quote to viewed; False if it was not in ``sent``."""
        return self._store.mark_viewed(quote_id, self._clock())

    def record_booking_interest(
        self,
        quote_id: str,
        details: BookingInterestDetails | None = None,
    ) -> bool:
        """Record booking interest; False if it had already been expressed."""
        return self._store.record_booking_interest(quote_id, self._clock(), details)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _apply_with_retry(self, quote_id: str, apply: Callable[[Quote], Quote]) -> Quote:
        attempt = 0
        while True:
            attempt += 1
            quote = self._store.get(quote_id, include_deleted=True)
            if quote is None:
                raise QuoteNotFoundError(quote_id)
            updated = apply(quote)
            if updated is quote:
                return quote
            try:
                return self._store.save(updated)
            except StaleVersionError:
                if attempt >= MAX_WRITE_ATTEMPTS:
                    raise
                logger.info("quote_write_conflict", quote_id=quote_id, attempt=attempt)

    @staticmethod
    def _check_expected_version(quote: Quote, expected_version: int | None) -> None:
        if expected_version is not None and expected_version != quote.version:
            raise StaleVersionError(quote.id, expected_version, quote.version)

    @staticmethod
    def _price(package_price: Any, currency: Any, events: Any, people: int) -> PriceBreakdown:
        try:
            return compute_total(package_price, currency, events, people)
        except PricingError as exc:
            raise QuoteValidationError(exc.message) from exc
