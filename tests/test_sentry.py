"""Tests for Sentry SDK initialization and structlog-sentry bridge."""

from __future__ import annotations

from unittest.mock import patch

from structlog_sentry import SentryProcessor

from quote_engine.observability.sentry import get_sentry_processor, init_sentry


def test_init_sentry_noop_with_empty_dsn() -> None:
    """init_sentry('') reports disabled and never calls sentry_sdk.init."""
    with patch("quote_engine.observability.sentry.sentry_sdk.init") as mock_init:
        assert init_sentry("") is False
        mock_init.assert_not_called()


def test_init_sentry_calls_sdk_with_dsn() -> None:
    test_dsn = "https://examplePublicKey@o0.ingest.sentry.io/0"
    with patch("quote_engine.observability.sentry.sentry_sdk.init") as mock_init:
        assert init_sentry(test_dsn, environment="production") is True
        mock_init.assert_called_once()
        call_kwargs = mock_init.call_args.kwargs
        assert call_kwargs["dsn"] == test_dsn
        assert call_kwargs["environment"] == "production"
        assert call_kwargs["send_default_pii"] is False
        assert call_kwargs["traces_sample_rate"] == 0.1


def test_get_sentry_processor_returns_sentry_processor() -> None:
    processor = get_sentry_processor()
    assert isinstance(processor, SentryProcessor)
    assert callable(processor)
