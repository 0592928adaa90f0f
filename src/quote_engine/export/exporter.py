"""Filtered bulk export of quotes as CSV or JSON.

Exports are admin-only, capped at a fixed number of rows, and always leave
exactly one audit entry recording the filters used, whether the export
succeeded or not.
"""

from __future__ import annotations

import csv
import io
import json
import sqlite3
from collections.abc import Callable
from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Literal

import structlog
from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from quote_engine.audit.logger import AuditLogger
from quote_engine.audit.models import AuditContext
from quote_engine.domain.errors import PermissionDeniedError, QuoteError, QuoteValidationError
from quote_engine.domain.models import Actor, Quote
from quote_engine.domain.types import QuoteOperation, QuoteStatus
from quote_engine.pricing.calculator import to_minor_units
from quote_engine.quotes.service import QuoteService
from quote_engine.quotes.store import QuoteStore

logger = structlog.get_logger()

DEFAULT_MAX_RECORDS = 10_000

NOT_SENT = "not_sent"

CSV_HEADERS: tuple[str, ...] = (
    "Quote Reference",
    "Lead Name",
    "Hotel Name",
    "Recipient Email",
    "People",
    "Rooms",
    "Nights",
    "Arrival Date",
    "Total Price",
    "Currency",
    "Status",
    "Super Package",
    "Transfer Included",
    "Email Sent",
    "Email Status",
    "Booking Interest",
    "Created Date",
    "Created By",
    "Version",
    "What's Included",
    "Events Included",
    "Internal Notes",
)

# Leading characters spreadsheet applications treat as a formula.
_FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")


class ExportFilters(BaseModel):
    """Query filters accepted by the export endpoint."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    q: str | None = None
    status: QuoteStatus | None = None
    date_from: date | None = None
    date_to: date | None = None
    min_price: Decimal | None = None
    max_price: Decimal | None = None
    email_status: Literal["pending", "delivered", "failed", "not_sent"] | None = None
    booking_interest: bool | None = None
    is_super_package: bool | None = None
    created_by: str | None = None
    format: Literal["csv", "json"] = "csv"

    @model_validator(mode="after")
    def check_ranges(self) -> ExportFilters:
        """Reject inverted or negative ranges."""
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")
        for bound in (self.min_price, self.max_price):
            if bound is not None and bound < 0:
                raise ValueError("price bounds must not be negative")
        if (
            self.min_price is not None
            and self.max_price is not None
            and self.min_price > self.max_price
        ):
            raise ValueError("min_price must not exceed max_price")
        return self

    def audit_payload(self) -> dict[str, Any]:
        """Filters actually supplied, JSON-friendly, for the audit entry."""
        return self.model_dump(mode="json", exclude_none=True)


class ExportResult(BaseModel):
    """A rendered export ready to be returned as a file body."""

    model_config = ConfigDict(frozen=True)

    content: str
    media_type: str
    filename: str
    total_records: int
    max_records_reached: bool


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def _safe_cell(value: str) -> str:
    """Neutralize spreadsheet formula injection in free-text cells."""
    if value.startswith(_FORMULA_PREFIXES):
        return "'" + value
    return value


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


def _events_summary(quote: Quote) -> str:
    return "; ".join(event.name for event in quote.events)


def _minor_or_none(amount: Decimal | None) -> int | None:
    return to_minor_units(amount) if amount is not None else None


class QuoteExporter:
    """Runs filtered exports against the quote store.

    Args:
        store: The quote store to query.
        quotes: Quote service, used for the permission check.
        audit_logger: Destination for the export audit entry.
        max_records: Row cap for a single export.
        clock: Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        store: QuoteStore,
        quotes: QuoteService,
        audit_logger: AuditLogger,
        max_records: int = DEFAULT_MAX_RECORDS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._quotes = quotes
        self._audit = audit_logger
        self._max_records = max_records
        self._clock = clock or _utcnow

    def export(
        self,
        filters: ExportFilters | dict[str, Any],
        actor: Actor,
        context: AuditContext,
    ) -> ExportResult:
        """Export every matching quote, up to the row cap.

        Raises:
            PermissionDeniedError: If *actor* may not export.
            QuoteValidationError: If the filters are malformed.
        """
        raw_filters = (
            filters.audit_payload() if isinstance(filters, ExportFilters) else dict(filters)
        )
        try:
            self._quotes.authorize(actor, QuoteOperation.EXPORT_QUOTES, context)
            parsed = self._parse(filters)
            quotes = self._store.search(
                text=parsed.q,
                status=parsed.status,
                created_from=self._day_start(parsed.date_from),
                created_before=self._day_start(parsed.date_to, offset_days=1),
                min_price_minor=_minor_or_none(parsed.min_price),
                max_price_minor=_minor_or_none(parsed.max_price),
                email_status=None if parsed.email_status == NOT_SENT else parsed.email_status,
                email_not_sent=parsed.email_status == NOT_SENT,
                booking_interest=parsed.booking_interest,
                is_super_package=parsed.is_super_package,
                created_by=parsed.created_by,
                limit=self._max_records + 1,
            )
        except PermissionDeniedError:
            # Already audited as permission_denied.
            raise
        except (QuoteError, sqlite3.Error) as exc:
            self._audit.log_export(context, raw_filters, success=False, error=str(exc))
            raise

        max_reached = len(quotes) > self._max_records
        quotes = quotes[: self._max_records]
        now = self._clock()

        if parsed.format == "json":
            content = self._to_json(quotes, parsed, now, max_reached)
            media_type = "application/json"
        else:
            content = self._to_csv(quotes)
            media_type = "text/csv"

        self._audit.log_export(
            context,
            parsed.audit_payload(),
            record_count=len(quotes),
            max_records_reached=max_reached,
        )
        logger.info(
            "quotes_exported",
            format=parsed.format,
            record_count=len(quotes),
            max_records_reached=max_reached,
        )
        return ExportResult(
            content=content,
            media_type=media_type,
            filename=f"quotes-export-{now.date().isoformat()}.{parsed.format}",
            total_records=len(quotes),
            max_records_reached=max_reached,
        )

    @staticmethod
    def _parse(filters: ExportFilters | dict[str, Any]) -> ExportFilters:
        if isinstance(filters, ExportFilters):
            return filters
        try:
            return ExportFilters.model_validate(filters)
        except ValidationError as exc:
            raise QuoteValidationError.from_pydantic(exc) from exc

    @staticmethod
    def _day_start(day: date | None, offset_days: int = 0) -> str | None:
        if day is None:
            return None
        start = datetime.combine(day + timedelta(days=offset_days), time.min, tzinfo=UTC)
        return start.isoformat()

    @staticmethod
    def _to_csv(quotes: list[Quote]) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_HEADERS)
        for quote in quotes:
            writer.writerow(
                [
                    quote.reference,
                    _safe_cell(quote.lead_name),
                    _safe_cell(quote.hotel_name),
                    _safe_cell(quote.recipient_email),
                    quote.number_of_people,
                    quote.number_of_rooms,
                    quote.number_of_nights,
                    quote.arrival_date.isoformat(),
                    str(quote.total_price),
                    quote.currency.value,
                    quote.status.value,
                    _yes_no(quote.is_super_package),
                    _yes_no(quote.transfer_included),
                    _yes_no(quote.email_sent),
                    quote.email_delivery_status.value if quote.email_sent else "Not Sent",
                    _yes_no(quote.booking_interest.expressed),
                    quote.created_at.date().isoformat(),
                    quote.created_by,
                    quote.version,
                    _safe_cell(quote.whats_included),
                    _safe_cell(_events_summary(quote)),
                    _safe_cell(quote.internal_notes or ""),
                ]
            )
        return buffer.getvalue()

    @staticmethod
    def _to_json(
        quotes: list[Quote],
        filters: ExportFilters,
        exported_at: datetime,
        max_reached: bool,
    ) -> str:
        data = [
            {
                "quote_id": quote.id,
                "quote_reference": quote.reference,
                "lead_name": quote.lead_name,
                "hotel_name": quote.hotel_name,
                "recipient_email": quote.recipient_email,
                "number_of_people": quote.number_of_people,
                "number_of_rooms": quote.number_of_rooms,
                "number_of_nights": quote.number_of_nights,
                "arrival_date": quote.arrival_date.isoformat(),
                "total_price": str(quote.total_price),
                "currency": quote.currency.value,
                "status": quote.status.value,
                "is_super_package": quote.is_super_package,
                "transfer_included": quote.transfer_included,
                "email_sent": quote.email_sent,
                "email_sent_at": quote.email_sent_at.isoformat() if quote.email_sent_at else None,
                "email_delivery_status": quote.email_delivery_status.value,
                "booking_interest": quote.booking_interest.expressed,
                "booking_interest_date": (
                    quote.booking_interest.expressed_at.isoformat()
                    if quote.booking_interest.expressed_at
                    else None
                ),
                "created_at": quote.created_at.isoformat(),
                "created_by": quote.created_by,
                "version": quote.version,
                "whats_included": quote.whats_included,
                "events_included": [event.name for event in quote.events],
                "internal_notes": quote.internal_notes,
            }
            for quote in quotes
        ]
        return json.dumps(
            {
                "success": True,
                "data": data,
                "export_info": {
                    "total_records": len(data),
                    "exported_at": exported_at.isoformat(),
                    "max_records_reached": max_reached,
                    "filters": filters.audit_payload(),
                },
            },
            indent=2,
        )
