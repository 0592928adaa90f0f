"""Application entry point for the quote engine HTTP service.

Configures:
- **structlog** with JSON rendering (production) or colored console (development)
- **Sentry** error reporting through structlog-sentry (when a DSN is set)
- **SQLite** quote and audit databases in WAL mode
- **Retry logic** for the mail API with final-failure reporting
- **FastAPI** routers for admin quotes, public tracking links, health, and metrics
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Any

import sentry_sdk
import structlog
import uvicorn
from fastapi import FastAPI

from quote_engine.analytics.reports import QuoteAnalytics
from quote_engine.api.errors import register_exception_handlers
from quote_engine.api.quotes import router as quotes_router
from quote_engine.api.tracking import router as tracking_router
from quote_engine.audit.logger import AuditLogger
from quote_engine.audit.store import close_audit_db, init_audit_db
from quote_engine.config import Settings, get_settings, validate_credentials
from quote_engine.email.dispatcher import EmailDispatchCoordinator
from quote_engine.email.models import CompanyDetails
from quote_engine.email.transport import MailTransport, ResendTransport
from quote_engine.export.exporter import QuoteExporter
from quote_engine.health import register_health_routes
from quote_engine.observability.metrics import setup_metrics
from quote_engine.observability.middleware import SERVICE_NAME, RequestContextMiddleware
from quote_engine.observability.sentry import get_sentry_processor, init_sentry
from quote_engine.quotes.schema import init_quotes_db
from quote_engine.quotes.service import QuoteService
from quote_engine.quotes.store import QuoteStore
from quote_engine.resilience.retry import configure_error_notifier
from quote_engine.tracking.engagement import EngagementRecorder
from quote_engine.tracking.tokens import TrackingTokenService

logger = structlog.get_logger()


def configure_logging(production: bool = False, sentry_enabled: bool = False) -> None:
    """Configure structlog for production (JSON) or development (console).

    Production mode (*production=True*): JSON rendering at INFO level.
    Development mode: colored console rendering at DEBUG level.

    Args:
        production: Enable production mode if ``True``.
        sentry_enabled: Forward ERROR events to Sentry if ``True``.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
    ]
    if sentry_enabled:
        shared_processors.append(get_sentry_processor())
    shared_processors += [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if production:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        log_level = logging.INFO
    else:
        renderer = structlog.dev.ConsoleRenderer()
        log_level = logging.DEBUG

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=SERVICE_NAME)


def _report_to_sentry(api_name: str, attempts: int, exception: BaseException | None) -> None:
    with sentry_sdk.new_scope() as scope:
        scope.set_tag("api_name", api_name)
        scope.set_extra("attempts", attempts)
        if exception is not None:
            sentry_sdk.capture_exception(exception)
        else:
            sentry_sdk.capture_message(f"{api_name} failed after {attempts} attempts")


def initialize_services(
    settings: Settings | None = None,
    *,
    mail_transport: MailTransport | None = None,
    clock: Callable[[], datetime] | None = None,
) -> dict[str, Any]:
    """Set up all shared services for the application.

    Opens the quote and audit databases, then builds the audit logger, quote
    store and service, tracking token service, engagement recorder, mail
    transport, email coordinator, and exporter.

    Args:
        settings: Application settings.  If ``None``, ``get_settings()`` is used.
        mail_transport: Transport override (tests pass a fake); defaults to
            :class:`ResendTransport`.
        clock: Time source override for every component.

    Returns:
        A dict of initialized service instances keyed by name.
    """
    if settings is None:
        settings = get_settings()

    services: dict[str, Any] = {"settings": settings}

    # Databases
    for path in (settings.database_path, settings.audit_db_path):
        if str(path) != ":memory:":
            path.parent.mkdir(parents=True, exist_ok=True)
    quotes_conn = init_quotes_db(settings.database_path)
    audit_conn = init_audit_db(settings.audit_db_path)
    services["quotes_conn"] = quotes_conn
    services["audit_conn"] = audit_conn

    audit_logger = AuditLogger(audit_conn)
    services["audit_logger"] = audit_logger

    quote_store = QuoteStore(quotes_conn)
    quote_service = QuoteService(quote_store, audit_logger, clock=clock)
    services["quote_store"] = quote_store
    services["quote_service"] = quote_service

    # Tracking tokens
    tracking_secret = settings.tracking_secret.get_secret_value()
    if not tracking_secret:
        tracking_secret = secrets.token_urlsafe(32)
        logger.warning("tracking_secret_ephemeral", detail="links will not survive a restart")
    token_service = TrackingTokenService(
        tracking_secret,
        public_base_url=settings.public_base_url,
        booking_interest_path=settings.booking_interest_path,
        ttl=timedelta(days=settings.tracking_ttl_days),
        clock=clock,
    )
    services["token_service"] = token_service
    services["engagement_recorder"] = EngagementRecorder(token_service, quote_service, audit_logger)

    # Email
    if mail_transport is None:
        mail_transport = ResendTransport(
            api_key=settings.resend_api_key,
            from_email=f"{settings.company_name} <{settings.mail_from}>",
            api_url=settings.resend_api_url,
            timeout=settings.email_send_timeout_seconds,
        )
    services["mail_transport"] = mail_transport
    services["email_coordinator"] = EmailDispatchCoordinator(
        quote_service,
        mail_transport,
        token_service,
        audit_logger,
        company=CompanyDetails(
            name=settings.company_name,
            email=settings.company_email,
            phone=settings.company_phone,
        ),
        timeout_seconds=settings.email_send_timeout_seconds,
    )

    services["exporter"] = QuoteExporter(
        quote_store,
        quote_service,
        audit_logger,
        max_records=settings.export_max_records,
        clock=clock,
    )
    services["analytics"] = QuoteAnalytics(quote_store, quote_service, clock=clock)

    logger.info(
        "services_initialized",
        database_path=str(settings.database_path),
        audit_db_path=str(settings.audit_db_path),
        mail_transport_ready=mail_transport.is_ready(),
    )
    return services


def close_services(services: dict[str, Any]) -> None:
    """Close database connections and the mail transport."""
    transport = services.get("mail_transport")
    if isinstance(transport, ResendTransport):
        transport.close()

    quotes_conn = services.pop("quotes_conn", None)
    if quotes_conn is not None:
        quotes_conn.close()
        logger.info("quotes_db_closed")

    audit_conn = services.pop("audit_conn", None)
    if audit_conn is not None:
        close_audit_db(audit_conn)
        logger.info("audit_db_closed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Lifespan context manager for FastAPI startup and shutdown.

    On shutdown: closes the databases and the mail transport.
    """
    logger.info("application_starting")
    yield
    close_services(app.state.services)


def create_app(services: dict[str, Any]) -> FastAPI:
    """Create the FastAPI app with routers, error handlers, and instrumentation.

    Args:
        services: The initialized services dict from ``initialize_services``.

    Returns:
        The configured FastAPI application.
    """
    fastapi_app = FastAPI(title="Quote Engine", lifespan=lifespan)
    fastapi_app.state.services = services
    fastapi_app.state.settings = services.get("settings", get_settings())

    fastapi_app.add_middleware(RequestContextMiddleware)
    register_exception_handlers(fastapi_app)
    fastapi_app.include_router(quotes_router)
    fastapi_app.include_router(tracking_router)
    register_health_routes(fastapi_app)
    setup_metrics(fastapi_app)

    return fastapi_app


async def main() -> None:
    """Main entry point: configure, initialize services, and serve.

    1. Initialize Sentry and configure logging
    2. Validate credentials (fatal in production)
    3. Initialize services and create the FastAPI app
    4. Run uvicorn until shutdown
    """
    settings = get_settings()
    environment = "production" if settings.production else "development"
    sentry_enabled = init_sentry(settings.sentry_dsn, environment=environment)
    configure_logging(production=settings.production, sentry_enabled=sentry_enabled)
    if sentry_enabled:
        configure_error_notifier(_report_to_sentry)
    logger.info("application_booting", environment=environment)

    validate_credentials(settings)

    services = initialize_services(settings)
    fastapi_app = create_app(services)

    config = uvicorn.Config(
        fastapi_app,
        host="0.0.0.0",
        port=settings.port,
        log_level="info",
    )
    server = uvicorn.Server(config)
    await server.serve()


if __name__ == "__main__":
    asyncio.run(main())
