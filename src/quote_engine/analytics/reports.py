"""Dashboard statistics and booking-interest analytics over live quotes.

Both reports require ``VIEW_ANALYTICS``.  Headline counts and price totals
are SQL aggregates on the quote store; the booking-interest breakdowns are
computed over the quotes created inside the requested window.  Money is
summed in integer minor units and reported as two-place ``Decimal`` values.
Totals in different currencies are added together as-is.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Callable
from datetime import UTC, date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from quote_engine.audit.models import AuditContext
from quote_engine.domain.errors import QuoteValidationError
from quote_engine.domain.models import Actor, Quote
from quote_engine.domain.types import EmailDeliveryStatus, QuoteOperation, QuoteStatus
from quote_engine.pricing.calculator import from_minor_units, to_minor_units
from quote_engine.quotes.service import QuoteService
from quote_engine.quotes.store import QuoteStore

logger = structlog.get_logger()

RECENT_LIMIT = 10
DEFAULT_PERIOD_DAYS = 30
DEFAULT_MAX_ROWS = 10_000
UNSPECIFIED_URGENCY = "unspecified"

# Lower bounds of the price-range buckets; the last bucket is open-ended.
PRICE_RANGE_BOUNDARIES: tuple[int, ...] = (0, 500, 1000, 2000, 5000, 10000)

_ONE_PLACE = Decimal("0.1")
_TWO_PLACES = Decimal("0.01")
_ZERO = Decimal("0.00")


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def _percentage(part: int, whole: int, places: Decimal) -> Decimal:
    if whole == 0:
        return Decimal(0).quantize(places)
    return (Decimal(part) * 100 / Decimal(whole)).quantize(places, rounding=ROUND_HALF_UP)


def _average(total_minor: int, count: int) -> Decimal:
    if count == 0:
        return _ZERO
    return from_minor_units(
        int((Decimal(total_minor) / count).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    )


# ----------------------------------------------------------------------
# Quote statistics
# ----------------------------------------------------------------------


class DeliveryCounts(BaseModel):
    """Delivery status of quote emails that have been sent."""

    model_config = ConfigDict(frozen=True)

    pending: int = 0
    delivered: int = 0
    failed: int = 0
    total: int = 0


class ConversionSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_quotes: int
    quotes_with_interest: int
    rate: Decimal


class CreatedCounts(BaseModel):
    """Quotes created in rolling and calendar windows ending now."""

    model_config = ConfigDict(frozen=True)

    this_month: int
    this_week: int
    last_30_days: int


class ValueSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    average: Decimal = _ZERO
    total: Decimal = _ZERO
    minimum: Decimal = _ZERO
    maximum: Decimal = _ZERO


class PackageSplit(BaseModel):
    model_config = ConfigDict(frozen=True)

    super_count: int = 0
    super_average: Decimal = _ZERO
    regular_count: int = 0
    regular_average: Decimal = _ZERO


class RecentQuote(BaseModel):
    model_config = ConfigDict(frozen=True)

    quote_id: str
    reference: str
    lead_name: str
    total_price: Decimal
    currency: str
    status: QuoteStatus
    created_at: datetime
    email_sent: bool
    booking_interest: bool


class QuoteStats(BaseModel):
    """Headline numbers for the admin dashboard."""

    model_config = ConfigDict(frozen=True)

    total: int
    by_status: dict[str, int]
    email_delivery: DeliveryCounts
    conversion: ConversionSummary
    created: CreatedCounts
    values: ValueSummary
    packages: PackageSplit
    recent: list[RecentQuote]
    generated_at: datetime


# ----------------------------------------------------------------------
# Booking-interest analytics
# ----------------------------------------------------------------------


class AnalyticsWindow(BaseModel):
    """Creation-date window for booking analytics.

    Either both ``date_from`` and ``date_to`` (inclusive calendar days) or a
    trailing ``period`` of days ending now.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    date_from: date | None = None
    date_to: date | None = None
    period: int = Field(default=DEFAULT_PERIOD_DAYS, ge=1, le=366)

    @model_validator(mode="after")
    def check_dates(self) -> AnalyticsWindow:
        """Require both bounds or neither, in order."""
        if (self.date_from is None) != (self.date_to is None):
            raise ValueError("date_from and date_to must be given together")
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")
        return self

    def bounds(self, now: datetime) -> tuple[datetime, datetime, int]:
        """Return ``(start, end, days)``; *end* is exclusive."""
        if self.date_from is not None and self.date_to is not None:
            start = datetime.combine(self.date_from, time.min, tzinfo=UTC)
            end = datetime.combine(self.date_to + timedelta(days=1), time.min, tzinfo=UTC)
            return start, end, (self.date_to - self.date_from).days + 1
        return now - timedelta(days=self.period), now, self.period


class AnalyticsPeriod(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    days: int


class BookingSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_quotes: int
    quotes_with_interest: int
    emails_sent: int
    total_value: Decimal
    interested_value: Decimal
    conversion_rate: Decimal
    email_conversion_rate: Decimal
    average_value: Decimal
    average_interested_value: Decimal


class UrgencyBucket(BaseModel):
    model_config = ConfigDict(frozen=True)

    urgency: str
    count: int
    total_value: Decimal


class PriceRangeBucket(BaseModel):
    """Quotes whose total falls in ``[minimum, maximum)``."""

    model_config = ConfigDict(frozen=True)

    minimum: Decimal
    maximum: Decimal | None
    total_quotes: int
    booking_interests: int
    average_price: Decimal


class DailyTrend(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: date
    quotes_created: int
    booking_interests: int
    total_value: Decimal
    interested_value: Decimal


class RecentInterest(BaseModel):
    model_config = ConfigDict(frozen=True)

    quote_id: str
    reference: str
    lead_name: str
    total_price: Decimal
    currency: str
    status: QuoteStatus
    expressed_at: datetime | None
    urgency: str


class BookingAnalytics(BaseModel):
    """Booking-interest conversion for quotes created in a window."""

    model_config = ConfigDict(frozen=True)

    period: AnalyticsPeriod
    summary: BookingSummary
    by_urgency: list[UrgencyBucket]
    by_status: dict[str, int]
    by_price_range: list[PriceRangeBucket]
    daily: list[DailyTrend]
    recent_interests: list[RecentInterest]
    max_rows_reached: bool


def _urgency(quote: Quote) -> str:
    details = quote.booking_interest.details
    if details is None or details.urgency is None:
        return UNSPECIFIED_URGENCY
    return details.urgency.value


def _bucket_index(total_minor: int) -> int:
    index = 0
    for position, lower in enumerate(PRICE_RANGE_BOUNDARIES):
        if total_minor >= lower * 100:
            index = position
    return index


class QuoteAnalytics:
    """Builds admin reports from the quote store.

    Args:
        store: The quote store to aggregate over.
        quotes: Quote service, used for the permission check.
        max_rows: Cap on quotes loaded for one booking-analytics window.
        clock: Returns the current UTC time; injectable for tests.
    """

    def __init__(
        self,
        store: QuoteStore,
        quotes: QuoteService,
        max_rows: int = DEFAULT_MAX_ROWS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._quotes = quotes
        self._max_rows = max_rows
        self._clock = clock or _utcnow

    def quote_stats(self, actor: Actor, context: AuditContext) -> QuoteStats:
        """Dashboard counts, values, and the most recent quotes.

        Raises:
            PermissionDeniedError: If *actor* may not view analytics.
        """
        self._quotes.authorize(actor, QuoteOperation.VIEW_ANALYTICS, context)
        now = self._clock()

        by_status = {status.value: 0 for status in QuoteStatus}
        by_status.update(self._store.count_by_status())
        total = sum(by_status.values())

        sent = self._store.count_by_delivery_status()
        delivery = DeliveryCounts(
            pending=sent.get(EmailDeliveryStatus.PENDING.value, 0),
            delivered=sent.get(EmailDeliveryStatus.DELIVERED.value, 0),
            failed=sent.get(EmailDeliveryStatus.FAILED.value, 0),
            total=sum(sent.values()),
        )

        interested = self._store.count_with_booking_interest()
        price_rows = self._store.price_totals()
        month_start = datetime.combine(now.date().replace(day=1), time.min, tzinfo=UTC)
        # Weeks start on Sunday.
        week_start = datetime.combine(
            now.date() - timedelta(days=(now.weekday() + 1) % 7), time.min, tzinfo=UTC
        )
        created = CreatedCounts(
            this_month=self._store.count_created_since(month_start),
            this_week=self._store.count_created_since(week_start),
            last_30_days=self._store.count_created_since(now - timedelta(days=30)),
        )

        stats = QuoteStats(
            total=total,
            by_status=by_status,
            email_delivery=delivery,
            conversion=ConversionSummary(
                total_quotes=total,
                quotes_with_interest=interested,
                rate=_percentage(interested, total, _ONE_PLACE),
            ),
            created=created,
            values=self._value_summary(price_rows),
            packages=self._package_split(price_rows),
            recent=[
                RecentQuote(
                    quote_id=quote.id,
                    reference=quote.reference,
                    lead_name=quote.lead_name,
                    total_price=quote.total_price,
                    currency=quote.currency.value,
                    status=quote.status,
                    created_at=quote.created_at,
                    email_sent=quote.email_sent,
                    booking_interest=quote.booking_interest.expressed,
                )
                for quote in self._store.search(limit=RECENT_LIMIT)
            ],
            generated_at=now,
        )
        logger.info("quote_stats_generated", actor_id=actor.id, total=total)
        return stats

    def booking_analytics(
        self,
        window: AnalyticsWindow | dict[str, Any],
        actor: Actor,
        context: AuditContext,
    ) -> BookingAnalytics:
        """Booking-interest conversion for quotes created inside *window*.

        Raises:
            PermissionDeniedError: If *actor* may not view analytics.
            QuoteValidationError: If the window is malformed.
        """
        self._quotes.authorize(actor, QuoteOperation.VIEW_ANALYTICS, context)
        parsed = self._parse(window)
        start, end, days = parsed.bounds(self._clock())

        # A trailing window ends now, so it has no upper bound.
        quotes = self._store.search(
            created_from=start.isoformat(),
            created_before=end.isoformat() if parsed.date_to is not None else None,
            limit=self._max_rows + 1,
        )
        max_reached = len(quotes) > self._max_rows
        if max_reached:
            logger.warning("booking_analytics_truncated", max_rows=self._max_rows)
        quotes = quotes[: self._max_rows]

        interested = [quote for quote in quotes if quote.booking_interest.expressed]
        total_minor = sum(to_minor_units(quote.total_price) for quote in quotes)
        interested_minor = sum(to_minor_units(quote.total_price) for quote in interested)
        emails_sent = sum(1 for quote in quotes if quote.email_sent)

        summary = BookingSummary(
            total_quotes=len(quotes),
            quotes_with_interest=len(interested),
            emails_sent=emails_sent,
            total_value=from_minor_units(total_minor),
            interested_value=from_minor_units(interested_minor),
            conversion_rate=_percentage(len(interested), len(quotes), _TWO_PLACES),
            email_conversion_rate=_percentage(len(interested), emails_sent, _TWO_PLACES),
            average_value=_average(total_minor, len(quotes)),
            average_interested_value=_average(interested_minor, len(interested)),
        )

        result = BookingAnalytics(
            period=AnalyticsPeriod(start=start, end=end, days=days),
            summary=summary,
            by_urgency=self._urgency_breakdown(interested),
            by_status=dict(Counter(quote.status.value for quote in interested)),
            by_price_range=self._price_ranges(quotes),
            daily=self._daily(quotes),
            recent_interests=self._recent_interests(interested),
            max_rows_reached=max_reached,
        )
        logger.info(
            "booking_analytics_generated",
            actor_id=actor.id,
            total_quotes=summary.total_quotes,
            quotes_with_interest=summary.quotes_with_interest,
        )
        return result

    @staticmethod
    def _parse(window: AnalyticsWindow | dict[str, Any]) -> AnalyticsWindow:
        if isinstance(window, AnalyticsWindow):
            return window
        try:
            return AnalyticsWindow.model_validate(window)
        except ValidationError as exc:
            raise QuoteValidationError.from_pydantic(exc) from exc

    @staticmethod
    def _value_summary(price_rows: dict[bool, Any]) -> ValueSummary:
        rows = list(price_rows.values())
        count = sum(row["n"] for row in rows)
        if count == 0:
            return ValueSummary()
        total_minor = sum(row["total"] for row in rows)
        return ValueSummary(
            average=_average(total_minor, count),
            total=from_minor_units(total_minor),
            minimum=from_minor_units(min(row["minimum"] for row in rows)),
            maximum=from_minor_units(max(row["maximum"] for row in rows)),
        )

    @staticmethod
    def _package_split(price_rows: dict[bool, Any]) -> PackageSplit:
        super_row = price_rows.get(True)
        regular_row = price_rows.get(False)
        split: dict[str, Any] = {}
        if super_row is not None:
            split["super_count"] = super_row["n"]
            split["super_average"] = _average(super_row["total"], super_row["n"])
        if regular_row is not None:
            split["regular_count"] = regular_row["n"]
            split["regular_average"] = _average(regular_row["total"], regular_row["n"])
        return PackageSplit(**split)

    @staticmethod
    def _urgency_breakdown(interested: list[Quote]) -> list[UrgencyBucket]:
        counts: Counter[str] = Counter()
        totals: defaultdict[str, int] = defaultdict(int)
        for quote in interested:
            urgency = _urgency(quote)
            counts[urgency] += 1
            totals[urgency] += to_minor_units(quote.total_price)
        ordered = sorted(counts, key=lambda urgency: (-counts[urgency], urgency))
        return [
            UrgencyBucket(
                urgency=urgency,
                count=counts[urgency],
                total_value=from_minor_units(totals[urgency]),
            )
            for urgency in ordered
        ]

    @staticmethod
    def _price_ranges(quotes: list[Quote]) -> list[PriceRangeBucket]:
        counts = [0] * len(PRICE_RANGE_BOUNDARIES)
        interests = [0] * len(PRICE_RANGE_BOUNDARIES)
        totals = [0] * len(PRICE_RANGE_BOUNDARIES)
        for quote in quotes:
            minor = to_minor_units(quote.total_price)
            index = _bucket_index(minor)
            counts[index] += 1
            totals[index] += minor
            if quote.booking_interest.expressed:
                interests[index] += 1

        buckets = []
        for index, lower in enumerate(PRICE_RANGE_BOUNDARIES):
            upper = (
                PRICE_RANGE_BOUNDARIES[index + 1]
                if index + 1 < len(PRICE_RANGE_BOUNDARIES)
                else None
            )
            buckets.append(
                PriceRangeBucket(
                    minimum=Decimal(lower),
                    maximum=Decimal(upper) if upper is not None else None,
                    total_quotes=counts[index],
                    booking_interests=interests[index],
                    average_price=_average(totals[index], counts[index]),
                )
            )
        return buckets

    @staticmethod
    def _daily(quotes: list[Quote]) -> list[DailyTrend]:
        created: Counter[date] = Counter()
        interests: Counter[date] = Counter()
        totals: defaultdict[date, int] = defaultdict(int)
        interested_totals: defaultdict[date, int] = defaultdict(int)
        for quote in quotes:
            day = quote.created_at.astimezone(UTC).date()
            minor = to_minor_units(quote.total_price)
            created[day] += 1
            totals[day] += minor
            if quote.booking_interest.expressed:
                interests[day] += 1
                interested_totals[day] += minor
        return [
            DailyTrend(
                day=day,
                quotes_created=created[day],
                booking_interests=interests[day],
                total_value=from_minor_units(totals[day]),
                interested_value=from_minor_units(interested_totals[day]),
            )
            for day in sorted(created)
        ]

    @staticmethod
    def _recent_interests(interested: list[Quote]) -> list[RecentInterest]:
        floor = datetime.min.replace(tzinfo=UTC)
        ordered = sorted(
            interested,
            key=lambda quote: quote.booking_interest.expressed_at or floor,
            reverse=True,
        )
        return [
            RecentInterest(
                quote_id=quote.id,
                reference=quote.reference,
                lead_name=quote.lead_name,
                total_price=quote.total_price,
                currency=quote.currency.value,
                status=quote.status,
                expressed_at=quote.booking_interest.expressed_at,
                urgency=_urgency(quote),
            )
            for quote in ordered[:RECENT_LIMIT]
        ]
