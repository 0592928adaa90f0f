"""Pricing calculator for quote totals.

Re-exports key functions and types for convenient access:
    from quote_engine.pricing import compute_total, derive_unit_prices, PriceBreakdown
"""

from quote_engine.pricing.calculator import (
    MISMATCH_REASON,
    EventContribution,
    MismatchedEvent,
    PriceBreakdown,
    UnitPrices,
    compute_total,
    derive_unit_prices,
    from_minor_units,
    to_minor_units,
)

__all__ = [
    "MISMATCH_REASON",
    "EventContribution",
    "MismatchedEvent",
    "PriceBreakdown",
    "UnitPrices",
    "compute_total",
    "derive_unit_prices",
    "from_minor_units",
    "to_minor_units",
]
