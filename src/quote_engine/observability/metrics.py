"""Prometheus metrics instrumentation for the quote engine.

Provides:
- ``setup_metrics(app)``: Attach prometheus-fastapi-instrumentator to a FastAPI app,
  exposing ``/metrics`` with HTTP request duration/count plus business counters.
- ``QUOTE_EMAILS_SENT`` / ``QUOTE_EMAIL_FAILURES``: outcomes of quote email dispatch.
- ``TRACKING_CLICKS`` / ``TRACKING_REJECTED``: customer engagement traffic.

Business counters are updated where the event happens, not by polling the database.
"""

from __future__ import annotations

from fastapi import FastAPI
from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator

QUOTE_EMAILS_SENT: Counter = Counter(
    "quote_emails_sent_total",
    "Quote emails accepted by the mail transport",
    ["kind"],
)

QUOTE_EMAIL_FAILURES: Counter = Counter(
    "quote_email_failures_total",
    "Quote email dispatch attempts that failed or timed out",
    ["kind"],
)

TRACKING_CLICKS: Counter = Counter(
    "quote_tracking_clicks_total",
    "Valid tracking link clicks",
)

TRACKING_REJECTED: Counter = Counter(
    "quote_tracking_rejected_total",
    "Tracking requests rejected by token validation",
    ["reason"],
)


def setup_metrics(app: FastAPI) -> None:
    """Instrument *app* with Prometheus HTTP metrics and expose ``/metrics``.

    Excludes health/ready/metrics endpoints from instrumentation to avoid
    noise in dashboards.
    """
    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/health", "/ready", "/metrics"],
    ).instrument(app).expose(app, include_in_schema=False, should_gzip=True)
