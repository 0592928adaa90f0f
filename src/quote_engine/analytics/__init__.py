"""Admin quote statistics and booking-interest analytics."""

from quote_engine.analytics.reports import (
    AnalyticsWindow,
    BookingAnalytics,
    QuoteAnalytics,
    QuoteStats,
)

__all__ = [
    "AnalyticsWindow",
    "BookingAnalytics",
    "QuoteAnalytics",
    "QuoteStats",
]
