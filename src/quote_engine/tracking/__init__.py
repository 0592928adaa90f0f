"""Signed tracking tokens and customer engagement recording."""

from quote_engine.tracking.engagement import (
    BookingInterestResult,
    ClickResult,
    EngagementRecorder,
)
from quote_engine.tracking.tokens import TokenFailure, TokenValidation, TrackingTokenService

__all__ = [
    "BookingInterestResult",
    "ClickResult",
    "EngagementRecorder",
    "TokenFailure",
    "TokenValidation",
    "TrackingTokenService",
]
