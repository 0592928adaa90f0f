"""Shared pytest fixtures for the quote engine test suite."""

from __future__ import annotations

import sqlite3
import time
from datetime import UTC, date, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from quote_engine.analytics.reports import QuoteAnalytics
from quote_engine.audit.logger import AuditLogger
from quote_engine.audit.models import AuditContext
from quote_engine.audit.store import init_audit_db
from quote_engine.domain.models import Actor, Quote
from quote_engine.domain.types import ActorRole, RegistrationStatus
from quote_engine.email.dispatcher import EmailDispatchCoordinator
from quote_engine.email.models import CompanyDetails, OutboundEmail
from quote_engine.export.exporter import QuoteExporter
from quote_engine.quotes.schema import init_quotes_db
from quote_engine.quotes.service import QuoteService
from quote_engine.quotes.store import QuoteStore
from quote_engine.tracking.engagement import EngagementRecorder
from quote_engine.tracking.tokens import TrackingTokenService

TRACKING_SECRET = "test-tracking-secret-0123456789abcdef"
PUBLIC_BASE_URL = "https://quotes.example.test"


class FakeClock:
    """A settable clock returning timezone-aware UTC datetimes."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeTransport:
    """In-memory mail transport recording every accepted message."""

    def __init__(self) -> None:
        self.sent: list[OutboundEmail] = []
        self.error: Exception | None = None
        self.delay = 0.0
        self.ready = True

    def send(self, message: OutboundEmail) -> str:
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.sent.append(message)
        return f"msg-{len(self.sent)}"

    def is_ready(self) -> bool:
        return self.ready


@pytest.fixture
def clock() -> FakeClock:
    """Clock fixed at 2026-03-01 12:00 UTC."""
    return FakeClock(datetime(2026, 3, 1, 12, 0, tzinfo=UTC))


@pytest.fixture
def audit_conn(tmp_path: Path) -> sqlite3.Connection:
    conn = init_audit_db(tmp_path / "audit.db")
    yield conn
    conn.close()


@pytest.fixture
def quotes_conn(tmp_path: Path) -> sqlite3.Connection:
    conn = init_quotes_db(tmp_path / "quotes.db")
    yield conn
    conn.close()


@pytest.fixture
def audit_logger(audit_conn: sqlite3.Connection) -> AuditLogger:
    return AuditLogger(audit_conn)


@pytest.fixture
def quote_store(quotes_conn: sqlite3.Connection) -> QuoteStore:
    return QuoteStore(quotes_conn)


@pytest.fixture
def quote_service(
    quote_store: QuoteStore, audit_logger: AuditLogger, clock: FakeClock
) -> QuoteService:
    return QuoteService(quote_store, audit_logger, clock=clock)


@pytest.fixture
def token_service(clock: FakeClock) -> TrackingTokenService:
    return TrackingTokenService(
        TRACKING_SECRET,
        public_base_url=PUBLIC_BASE_URL,
        booking_interest_path="/booking/interest",
        clock=clock,
    )


@pytest.fixture
def engagement_recorder(
    token_service: TrackingTokenService,
    quote_service: QuoteService,
    audit_logger: AuditLogger,
) -> EngagementRecorder:
    return EngagementRecorder(token_service, quote_service, audit_logger)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def company() -> CompanyDetails:
    return CompanyDetails(name="Sunny Breaks", email="hello@sunny.test", phone="+44 20 0000 0000")


@pytest.fixture
def coordinator(
    quote_service: QuoteService,
    transport: FakeTransport,
    token_service: TrackingTokenService,
    audit_logger: AuditLogger,
    company: CompanyDetails,
) -> EmailDispatchCoordinator:
    return EmailDispatchCoordinator(
        quote_service,
        transport,
        token_service,
        audit_logger,
        company=company,
        timeout_seconds=2.0,
    )


@pytest.fixture
def exporter(
    quote_store: QuoteStore,
    quote_service: QuoteService,
    audit_logger: AuditLogger,
    clock: FakeClock,
) -> QuoteExporter:
    return QuoteExporter(quote_store, quote_service, audit_logger, max_records=5, clock=clock)


@pytest.fixture
def analytics(
    quote_store: QuoteStore, quote_service: QuoteService, clock: FakeClock
) -> QuoteAnalytics:
    return QuoteAnalytics(quote_store, quote_service, clock=clock)


@pytest.fixture
def admin() -> Actor:
    return Actor(
        id="admin-1",
        email="admin@agency.test",
        role=ActorRole.ADMIN,
        is_approved=True,
        registration_status=RegistrationStatus.APPROVED,
    )


@pytest.fixture
def agent() -> Actor:
    return Actor(
        id="agent-1",
        email="agent@partner.test",
        role=ActorRole.AGENT,
        is_approved=True,
        registration_status=RegistrationStatus.APPROVED,
    )


@pytest.fixture
def pending_agent() -> Actor:
    return Actor(id="agent-2", email="new@partner.test", role=ActorRole.AGENT)


@pytest.fixture
def admin_context(admin: Actor) -> AuditContext:
    return AuditContext.for_actor(admin, client_ip="203.0.113.7", user_agent="pytest")


def make_quote_payload(**overrides: Any) -> dict[str, Any]:
    """A valid quote creation payload arriving two months from today."""
    payload: dict[str, Any] = {
        "enquiry_id": "enq-100",
        "recipient_email": "lead@customer.test",
        "lead_name": "Jamie Lead",
        "hotel_name": "Hotel Riviera",
        "arrival_date": (date.today() + timedelta(days=60)).isoformat(),
        "number_of_nights": 3,
        "number_of_people": 10,
        "number_of_rooms": 5,
        "currency": "GBP",
        "package_price": "2000.00",
        "whats_included": "Breakfast and spa access",
        "events": [
            {"name": "Boat party", "unit_price": "50.00", "currency": "GBP", "per_person": True},
            {"name": "VIP table", "unit_price": "75.00", "currency": "GBP"},
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def quote_payload() -> dict[str, Any]:
    return make_quote_payload()


@pytest.fixture
def draft_quote(
    quote_service: QuoteService,
    quote_payload: dict[str, Any],
    admin: Actor,
    admin_context: AuditContext,
) -> Quote:
    """A persisted draft quote totalling 2575.00 GBP."""
    return quote_service.create_quote(quote_payload, admin, admin_context)
