"""Tests for centralized Settings, credential validation, and get_settings cache.

Covers: defaults, env-override, production credential gate, dev-mode warnings,
and lru_cache behavior.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from quote_engine.config import (
    MIN_TRACKING_SECRET_LENGTH,
    Settings,
    get_settings,
    validate_credentials,
)

STRONG_SECRET = "s" * MIN_TRACKING_SECRET_LENGTH

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Clear the settings cache and any variables a developer shell might export."""
    get_settings.cache_clear()
    for name in (
        "PRODUCTION",
        "PORT",
        "TRACKING_SECRET",
        "TRACKING_TTL_DAYS",
        "RESEND_API_KEY",
        "EXPORT_MAX_RECORDS",
        "DATABASE_PATH",
        "AUDIT_DB_PATH",
    ):
        monkeypatch.delenv(name, raising=False)


# ---------------------------------------------------------------------------
# Settings defaults
# ---------------------------------------------------------------------------

class TestSettingsDefaults:
    """Verify that Settings fields have the expected default values."""

    def test_settings_defaults(self) -> None:
        s = Settings(_env_file=None)  # type: ignore[call-arg]

        assert s.production is False
        assert s.port == 8000
        assert s.database_path == Path("data/quotes.db")
        assert s.audit_db_path == Path("data/audit.db")
        assert s.tracking_ttl_days == 30
        assert s.export_max_records == 10_000
        assert s.tracking_secret.get_secret_value() == ""

    def test_settings_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PRODUCTION", "true")
        monkeypatch.setenv("PORT", "9090")
        monkeypatch.setenv("TRACKING_SECRET", STRONG_SECRET)

        s = Settings(_env_file=None)  # type: ignore[call-arg]

        assert s.production is True
        assert s.port == 9090
        assert s.tracking_secret.get_secret_value() == STRONG_SECRET

    def test_secrets_are_masked_in_repr(self) -> None:
        s = Settings(_env_file=None, tracking_secret=STRONG_SECRET)  # type: ignore[call-arg, arg-type]

        assert STRONG_SECRET not in repr(s)

    def test_ttl_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, tracking_ttl_days=0)  # type: ignore[call-arg]


# ---------------------------------------------------------------------------
# validate_credentials
# ---------------------------------------------------------------------------

class TestValidateCredentials:
    """Verify validate_credentials behaviour in production and dev modes."""

    def test_production_exits_when_credentials_missing(self) -> None:
        settings = Settings(_env_file=None, production=True)  # type: ignore[call-arg]

        with pytest.raises(SystemExit) as exc_info:
            validate_credentials(settings)

        assert exc_info.value.code == 1

    def test_production_exits_on_short_tracking_secret(self) -> None:
        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
            production=True,
            tracking_secret="too-short",  # type: ignore[arg-type]
            resend_api_key="re_live_key",  # type: ignore[arg-type]
        )

        with pytest.raises(SystemExit):
            validate_credentials(settings)

    def test_production_passes_with_valid_credentials(self) -> None:
        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
            production=True,
            tracking_secret=STRONG_SECRET,  # type: ignore[arg-type]
            resend_api_key="re_live_key",  # type: ignore[arg-type]
        )

        # Should NOT raise or exit
        validate_credentials(settings)

    def test_dev_mode_warns_without_exiting(self) -> None:
        settings = Settings(_env_file=None, production=False)  # type: ignore[call-arg]

        # Should NOT raise or exit
        validate_credentials(settings)


# ---------------------------------------------------------------------------
# get_settings cache
# ---------------------------------------------------------------------------

class TestGetSettingsCached:
    """Verify lru_cache on get_settings."""

    def test_get_settings_cached(self) -> None:
        first = get_settings()
        second = get_settings()

        assert first is second
