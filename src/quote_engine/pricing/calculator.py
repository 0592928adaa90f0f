"""Quote price calculation from a base package plus priced add-on events.

All arithmetic runs on integer minor units (pence/cents) so sums never drift;
values are converted back to two-place ``Decimal`` only at the boundary.
Events priced in a currency other than the quote's are excluded from the
total and reported for manual resolution -- currencies are never converted.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from pydantic import BaseModel

from quote_engine.domain.errors import PricingError
from quote_engine.domain.models import TWO_PLACES, EventSelection
from quote_engine.domain.types import Currency

MINOR_UNITS_PER_MAJOR = 100

MISMATCH_REASON = "mismatch"


class EventContribution(BaseModel, frozen=True):
    """How much one qualifying event adds to the total.

    Attributes:
        name: Event name as selected on the quote.
        unit_price: Price per unit in the quote currency.
        per_person: Whether the price scales with party size.
        quantity: People count for per-person events, otherwise 1.
        contribution: ``unit_price * quantity``.
    """

    name: str
    unit_price: Decimal
    per_person: bool
    quantity: int
    contribution: Decimal


class MismatchedEvent(BaseModel, frozen=True):
    """An event excluded from the total because its currency differs."""

    name: str
    unit_price: Decimal
    currency: Currency
    expected_currency: Currency
    reason: str = MISMATCH_REASON


class PriceBreakdown(BaseModel, frozen=True):
    """Result of :func:`compute_total`.

    Attributes:
        currency: The quote currency every amount is expressed in.
        base_package_price: The package price the total was built on.
        events_subtotal: Sum of qualifying event contributions.
        total: ``base_package_price + events_subtotal``.
        per_person_events: Contributions of per-person events, in input order.
        flat_events: Contributions of flat-rate events, in input order.
        mismatched_events: Events excluded for a currency mismatch.
    """

    currency: Currency
    base_package_price: Decimal
    events_subtotal: Decimal
    total: Decimal
    per_person_events: list[EventContribution]
    flat_events: list[EventContribution]
    mismatched_events: list[MismatchedEvent]

    @property
    def has_mismatches(self) -> bool:
        """Return True if any event needs manual currency resolution."""
        return bool(self.mismatched_events)


class UnitPrices(BaseModel, frozen=True):
    """Derived per-unit prices shown alongside a total."""

    per_person: Decimal
    per_room: Decimal
    per_night: Decimal


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount to integer minor units.

    Args:
        amount: A non-negative ``Decimal`` amount (e.g. ``Decimal("19.99")``).

    Returns:
        The amount in minor units, rounded half-up (e.g. ``1999``).

    Raises:
        PricingError: If *amount* is a float, not finite, or negative.
    """
    if isinstance(amount, float):
        raise PricingError("Use Decimal or string, not float, for monetary values")
    try:
        value = Decimal(amount)
    except (InvalidOperation, TypeError, ValueError):
        raise PricingError(f"Invalid monetary value: {amount!r}") from None
    if not value.is_finite():
        raise PricingError(f"Monetary value must be finite, got {amount}")
    if value < 0:
        raise PricingError(f"Monetary value must not be negative, got {amount}")
    minor = (value * MINOR_UNITS_PER_MAJOR).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(minor)


def from_minor_units(minor: int) -> Decimal:
    """Convert integer minor units back to a two-place ``Decimal``."""
    return (Decimal(minor) / MINOR_UNITS_PER_MAJOR).quantize(TWO_PLACES)


def _require_positive(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise PricingError(f"{name} must be a positive integer, got {value!r}")


def compute_total(
    base_package_price: Decimal,
    currency: Currency,
    events: Sequence[EventSelection],
    people_count: int,
) -> PriceBreakdown:
    """Compute a quote total from the package price and selected events.

    Events whose currency matches *currency* contribute
    ``unit_price * people_count`` when flagged per-person and ``unit_price``
    otherwise.  Events in any other currency are excluded and returned in
    ``mismatched_events``.

    Args:
        base_package_price: Package price in the quote currency, >= 0.
        currency: The quote currency.
        events: Selected events, in display order.
        people_count: Party size used to scale per-person events, >= 1.

    Returns:
        A :class:`PriceBreakdown` with the total and its components.

    Raises:
        PricingError: If a price is negative or a float, or *people_count* < 1.
    """
    _require_positive("people_count", people_count)
    base_minor = to_minor_units(base_package_price)

    per_person: list[EventContribution] = []
    flat: list[EventContribution] = []
    mismatched: list[MismatchedEvent] = []
    subtotal_minor = 0

    for event in events:
        unit_minor = to_minor_units(event.unit_price)
        if event.currency != currency:
            mismatched.append(
                MismatchedEvent(
                    name=event.name,
                    unit_price=from_minor_units(unit_minor),
                    currency=event.currency,
                    expected_currency=currency,
                )
            )
            continue

        quantity = people_count if event.per_person else 1
        contribution_minor = unit_minor * quantity
        subtotal_minor += contribution_minor

        contribution = EventContribution(
            name=event.name,
            unit_price=from_minor_units(unit_minor),
            per_person=event.per_person,
            quantity=quantity,
            contribution=from_minor_units(contribution_minor),
        )
        (per_person if event.per_person else flat).append(contribution)

    return PriceBreakdown(
        currency=currency,
        base_package_price=from_minor_units(base_minor),
        events_subtotal=from_minor_units(subtotal_minor),
        total=from_minor_units(base_minor + subtotal_minor),
        per_person_events=per_person,
        flat_events=flat,
        mismatched_events=mismatched,
    )


def _divide(total_minor: int, divisor: int) -> Decimal:
    per_unit = (Decimal(total_minor) / divisor).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return from_minor_units(int(per_unit))


def derive_unit_prices(total: Decimal, people: int, rooms: int, nights: int) -> UnitPrices:
    """Derive price per person, per room, and per night from a total.

    Args:
        total: The quote total.
        people: Party size, >= 1.
        rooms: Number of rooms, >= 1.
        nights: Number of nights, >= 1.

    Returns:
        :class:`UnitPrices` rounded half-up to two decimal places.

    Raises:
        PricingError: If any count is below 1 or *total* is invalid.
    """
    _require_positive("people", people)
    _require_positive("rooms", rooms)
    _require_positive("nights", nights)
    total_minor = to_minor_units(total)
    return UnitPrices(
        per_person=_divide(total_minor, people),
        per_room=_divide(total_minor, rooms),
        per_night=_divide(total_minor, nights),
    )
