"""Centralized, typed configuration using pydantic-settings.

Provides a single ``Settings`` class backed by ``.env`` file and environment
variables, a cached ``get_settings()`` accessor, and a ``validate_credentials()``
startup gate that enforces secret presence in production mode.

This module has no imports from the rest of the ``quote_engine`` package so
that any module can import it without circular imports.
"""

from __future__ import annotations

import sys
from functools import lru_cache
from pathlib import Path

import structlog
from pydantic import Field, SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()

MIN_TRACKING_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables and ``.env`` file.

    ``SecretStr`` fields prevent accidental leaks in logs or error output.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- General ---------------------------------------------------------------
    production: bool = False
    port: int = 8000

    # -- Storage ---------------------------------------------------------------
    database_path: Path = Path("data/quotes.db")
    audit_db_path: Path = Path("data/audit.db")

    # -- Tracking links --------------------------------------------------------
    tracking_secret: SecretStr = SecretStr("")
    tracking_ttl_days: int = Field(default=30, ge=1)
    public_base_url: str = "http://localhost:8000"
    booking_interest_path: str = "/booking/interest"
    fallback_path: str = "/"

    # -- Email (Resend) --------------------------------------------------------
    resend_api_key: SecretStr = SecretStr("")
    resend_api_url: str = "https://api.resend.com/emails"
    mail_from: str = "quotes@example.com"
    email_send_timeout_seconds: float = Field(default=15.0, gt=0)

    # -- Company details shown in quote emails ---------------------------------
    company_name: str = "Travel Quotes"
    company_email: str = ""
    company_phone: str = ""

    # -- Export ----------------------------------------------------------------
    export_max_records: int = Field(default=10_000, ge=1)

    # -- Observability ---------------------------------------------------------
    sentry_dsn: str = ""


@lru_cache
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance.

    Call ``get_settings.cache_clear()`` in tests to reset.
    """
    try:
        return Settings()
    except ValidationError as exc:
        # Log only the structured errors list, never the raw exception.
        logger.error("settings_validation_failed", errors=exc.errors())
        sys.exit(1)


def validate_credentials(settings: Settings) -> None:
    """Enforce secret presence at startup.

    In **production** mode the application exits with a clear error block if
    the tracking secret or the mail API key is missing or weak.  In
    **development** mode each problem is logged as a warning and startup
    continues.

    Args:
        settings: The loaded application settings.
    """
    errors: list[str] = []

    secret = settings.tracking_secret.get_secret_value()
    if not secret:
        errors.append("TRACKING_SECRET is empty or not set")
    elif len(secret) < MIN_TRACKING_SECRET_LENGTH:
        errors.append(
            f"TRACKING_SECRET must be at least {MIN_TRACKING_SECRET_LENGTH} characters"
        )

    if not settings.resend_api_key.get_secret_value():
        errors.append("RESEND_API_KEY is empty or not set")

    if not errors:
        logger.info("credential_validation_passed")
        return

    if settings.production:
        for err in errors:
            logger.error("credential_missing", detail=err)
        print("\n=== STARTUP FAILED ===", file=sys.stderr)
        print("Missing required credentials for production mode:", file=sys.stderr)
        for err in errors:
            print(f"  - {err}", file=sys.stderr)
        print("======================\n", file=sys.stderr)
        sys.exit(1)
    else:
        for err in errors:
            logger.warning("credential_missing_dev", detail=err)
