"""Resilience infrastructure for outbound API calls."""

from quote_engine.resilience.retry import configure_error_notifier, resilient_api_call

__all__ = [
    "configure_error_notifier",
    "resilient_api_call",
]
