"""Tests for QuoteStore persistence and compare-and-swap writes."""

from datetime import UTC, datetime, timedelta

import pytest

from quote_engine.domain.errors import QuoteNotFoundError, StaleVersionError
from quote_engine.domain.models import BookingInterestDetails, Quote
from quote_engine.domain.types import BookingUrgency, EmailDeliveryStatus, QuoteStatus
from quote_engine.quotes.store import QuoteStore

WHEN = datetime(2026, 3, 2, 9, 30, tzinfo=UTC)


class TestRoundTrip:
    """Stored quotes come back field-for-field."""

    def test_get_returns_inserted_quote(self, quote_store: QuoteStore, draft_quote: Quote):
        loaded = quote_store.get(draft_quote.id)
        assert loaded == draft_quote

    def test_unknown_id(self, quote_store: QuoteStore):
        assert quote_store.get("missing") is None

    def test_soft_deleted_hidden_unless_requested(
        self, quote_store: QuoteStore, draft_quote: Quote
    ):
        quote_store.save(draft_quote.model_copy(update={"deleted_at": WHEN}))
        assert quote_store.get(draft_quote.id) is None
        assert quote_store.get(draft_quote.id, include_deleted=True) is not None


class TestCompareAndSwap:
    """Full-row writes fail if someone else wrote first."""

    def test_save_bumps_revision(self, quote_store: QuoteStore, draft_quote: Quote):
        saved = quote_store.save(draft_quote.model_copy(update={"lead_name": "Sam"}))
        assert saved.revision == draft_quote.revision + 1
        assert quote_store.get(draft_quote.id).lead_name == "Sam"

    def test_second_writer_from_same_read_loses(
        self, quote_store: QuoteStore, draft_quote: Quote
    ):
        first = quote_store.get(draft_quote.id)
        second = quote_store.get(draft_quote.id)

        quote_store.save(first.model_copy(update={"lead_name": "First"}))
        with pytest.raises(StaleVersionError):
            quote_store.save(second.model_copy(update={"lead_name": "Second"}))

        assert quote_store.get(draft_quote.id).lead_name == "First"

    def test_save_unknown_quote(self, quote_store: QuoteStore, draft_quote: Quote):
        with pytest.raises(QuoteNotFoundError):
            quote_store.save(draft_quote.model_copy(update={"id": "missing"}))


class TestEngagementWrites:
    """Conditional single-column updates used by tracking links."""

    def _sent(self, quote_store: QuoteStore, quote: Quote) -> Quote:
        return quote_store.save(
            quote.model_copy(
                update={
                    "status": QuoteStatus.SENT,
                    "email_sent": True,
                    "email_delivery_status": EmailDeliveryStatus.DELIVERED,
                }
            )
        )

    def test_mark_viewed_only_once(self, quote_store: QuoteStore, draft_quote: Quote):
        self._sent(quote_store, draft_quote)
        assert quote_store.mark_viewed(draft_quote.id, WHEN) is True
        assert quote_store.mark_viewed(draft_quote.id, WHEN) is False
        assert quote_store.get(draft_quote.id).status == QuoteStatus.VIEWED

    def test_mark_viewed_ignores_drafts(self, quote_store: QuoteStore, draft_quote: Quote):
        assert quote_store.mark_viewed(draft_quote.id, WHEN) is False
        assert quote_store.get(draft_quote.id).status == QuoteStatus.DRAFT

    def test_engagement_write_invalidates_stale_full_write(
        self, quote_store: QuoteStore, draft_quote: Quote
    ):
        sent = self._sent(quote_store, draft_quote)
        quote_store.mark_viewed(draft_quote.id, WHEN)
        with pytest.raises(StaleVersionError):
            quote_store.save(sent.model_copy(update={"lead_name": "Late"}))

    def test_first_booking_interest_wins(self, quote_store: QuoteStore, draft_quote: Quote):
        details = BookingInterestDetails(contact_name="Jamie", urgency=BookingUrgency.THIS_WEEK)

        assert quote_store.record_booking_interest(draft_quote.id, WHEN, details) is True
        assert (
            quote_store.record_booking_interest(draft_quote.id, WHEN + timedelta(days=1)) is False
        )

        interest = quote_store.get(draft_quote.id).booking_interest
        assert interest.expressed is True
        assert interest.expressed_at == WHEN
        assert interest.details == details


class TestSearch:
    """Tests for filtered search."""

    def test_filters(self, quote_store: QuoteStore, draft_quote: Quote):
        other = draft_quote.model_copy(
            update={
                "id": "f" * 32,
                "lead_name": "Alex Other",
                "is_super_package": True,
                "total_price": draft_quote.total_price * 2,
            }
        )
        quote_store.insert(other)

        assert len(quote_store.search()) == 2
        assert [q.id for q in quote_store.search(text="alex")] == [other.id]
        assert [q.id for q in quote_store.search(is_super_package=True)] == [other.id]
        assert [q.id for q in quote_store.search(min_price_minor=300000)] == [other.id]
        assert [q.id for q in quote_store.search(max_price_minor=257500)] == [draft_quote.id]
        assert quote_store.search(status=QuoteStatus.SENT) == []
        assert len(quote_store.search(email_not_sent=True)) == 2
        assert len(quote_store.search(limit=1)) == 1

    def test_excludes_deleted(self, quote_store: QuoteStore, draft_quote: Quote):
        quote_store.save(draft_quote.model_copy(update={"deleted_at": WHEN}))
        assert quote_store.search() == []


class TestAggregates:
    """SQL counts and price totals over live quotes."""

    def test_counts(self, quote_store: QuoteStore, draft_quote: Quote):
        quote_store.save(
            draft_quote.model_copy(
                update={
                    "status": QuoteStatus.SENT,
                    "email_sent": True,
                    "email_delivery_status": EmailDeliveryStatus.FAILED,
                }
            )
        )
        quote_store.record_booking_interest(draft_quote.id, WHEN)

        assert quote_store.count_by_status() == {"sent": 1}
        assert quote_store.count_by_delivery_status() == {"failed": 1}
        assert quote_store.count_with_booking_interest() == 1
        assert quote_store.count_created_since(draft_quote.created_at) == 1
        assert quote_store.count_created_since(draft_quote.created_at + timedelta(seconds=1)) == 0

    def test_unsent_quotes_have_no_delivery_count(
        self, quote_store: QuoteStore, draft_quote: Quote
    ):
        assert quote_store.count_by_delivery_status() == {}

    def test_price_totals(self, quote_store: QuoteStore, draft_quote: Quote):
        totals = quote_store.price_totals()
        assert set(totals) == {False}
        row = totals[False]
        assert (row["n"], row["total"], row["minimum"], row["maximum"]) == (
            1,
            257500,
            257500,
            257500,
        )

    def test_deleted_quotes_are_excluded(self, quote_store: QuoteStore, draft_quote: Quote):
        quote_store.save(draft_quote.model_copy(update={"deleted_at": WHEN}))
        assert quote_store.count_by_status() == {}
        assert quote_store.count_created_since(draft_quote.created_at) == 0
        assert quote_store.price_totals() == {}
