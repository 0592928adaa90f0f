"""Tests for quote total calculation and derived unit prices."""

from decimal import Decimal

import pytest

from quote_engine.domain.errors import PricingError
from quote_engine.domain.models import EventSelection
from quote_engine.domain.types import Currency
from quote_engine.pricing.calculator import (
    compute_total,
    derive_unit_prices,
    from_minor_units,
    to_minor_units,
)


def _event(name: str, price: str, currency: Currency = Currency.GBP, per_person: bool = False):
    return EventSelection(name=name, unit_price=price, currency=currency, per_person=per_person)


class TestMinorUnits:
    """Tests for the minor-unit conversions."""

    def test_to_minor_units(self):
        assert to_minor_units(Decimal("19.99")) == 1999
        assert to_minor_units(Decimal("0.005")) == 1

    def test_from_minor_units(self):
        assert from_minor_units(1999) == Decimal("19.99")
        assert from_minor_units(0) == Decimal("0.00")

    def test_rejects_float(self):
        with pytest.raises(PricingError, match="not float"):
            to_minor_units(19.99)  # type: ignore[arg-type]

    def test_rejects_negative(self):
        with pytest.raises(PricingError, match="must not be negative"):
            to_minor_units(Decimal("-0.01"))


class TestComputeTotal:
    """Tests for compute_total."""

    def test_mixed_events_with_currency_mismatch(self):
        events = [
            _event("Boat party", "50", per_person=True),
            _event("VIP table", "75"),
            _event("Club entry", "40", currency=Currency.EUR, per_person=True),
        ]

        breakdown = compute_total(Decimal("2000"), Currency.GBP, events, people_count=10)

        assert breakdown.total == Decimal("2575.00")
        assert breakdown.events_subtotal == Decimal("575.00")
        assert [e.contribution for e in breakdown.per_person_events] == [Decimal("500.00")]
        assert [e.contribution for e in breakdown.flat_events] == [Decimal("75.00")]
        assert [e.name for e in breakdown.mismatched_events] == ["Club entry"]
        assert breakdown.mismatched_events[0].expected_currency == Currency.GBP
        assert breakdown.has_mismatches is True

    def test_no_events(self):
        breakdown = compute_total(Decimal("899.99"), Currency.EUR, [], people_count=4)
        assert breakdown.total == Decimal("899.99")
        assert breakdown.has_mismatches is False

    def test_mismatched_events_never_affect_total(self):
        base = [_event("VIP table", "75")]
        foreign = [_event("Transfer", "300", currency=Currency.USD)]

        without = compute_total(Decimal("1000"), Currency.GBP, base, people_count=3)
        with_foreign = compute_total(Decimal("1000"), Currency.GBP, base + foreign, people_count=3)

        assert without.total == with_foreign.total

    def test_per_person_scales_linearly_flat_does_not(self):
        events = [_event("Boat party", "49.99", per_person=True), _event("VIP table", "75")]

        small = compute_total(Decimal("0"), Currency.GBP, events, people_count=4)
        large = compute_total(Decimal("0"), Currency.GBP, events, people_count=8)

        assert large.per_person_events[0].contribution == small.per_person_events[0].contribution * 2
        assert large.flat_events[0].contribution == small.flat_events[0].contribution

    def test_sums_exactly_without_float_drift(self):
        events = [_event(f"Event {i}", "0.10") for i in range(10)]
        breakdown = compute_total(Decimal("0.20"), Currency.GBP, events, people_count=1)
        assert breakdown.total == Decimal("1.20")

    def test_rejects_zero_people(self):
        with pytest.raises(PricingError, match="people_count"):
            compute_total(Decimal("100"), Currency.GBP, [], people_count=0)


class TestDeriveUnitPrices:
    """Tests for derive_unit_prices."""

    def test_divides_and_rounds_half_up(self):
        prices = derive_unit_prices(Decimal("100.00"), people=3, rooms=2, nights=7)
        assert prices.per_person == Decimal("33.33")
        assert prices.per_room == Decimal("50.00")
        assert prices.per_night == Decimal("14.29")

    @pytest.mark.parametrize(("people", "rooms", "nights"), [(0, 1, 1), (1, 0, 1), (1, 1, 0)])
    def test_rejects_zero_counts(self, people, rooms, nights):
        with pytest.raises(PricingError):
            derive_unit_prices(Decimal("100"), people=people, rooms=rooms, nights=nights)
