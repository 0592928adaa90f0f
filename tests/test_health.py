"""Tests for /health and /ready observability endpoints.

Uses FastAPI TestClient with throwaway SQLite connections to verify
liveness and readiness probes without a running mail API.
"""

from __future__ import annotations

import sqlite3

from fastapi import FastAPI
from fastapi.testclient import TestClient

from quote_engine.health import register_health_routes

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_app(services: dict | None = None) -> FastAPI:
    """Create a minimal FastAPI app with health routes and given services."""
    app = FastAPI()
    app.state.services = services or {}
    register_health_routes(app)
    return app


def _conn() -> sqlite3.Connection:
    return sqlite3.connect(":memory:", check_same_thread=False)


# ---------------------------------------------------------------------------
# /health (liveness)
# ---------------------------------------------------------------------------

class TestHealthEndpoint:
    """GET /health liveness probe."""

    def test_health_returns_200(self) -> None:
        client = TestClient(_make_app())

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


# ---------------------------------------------------------------------------
# /ready (readiness)
# ---------------------------------------------------------------------------

class TestReadyEndpoint:
    """GET /ready readiness probe."""

    def test_ready_returns_200_when_everything_answers(self, transport) -> None:
        app = _make_app(
            {"quotes_conn": _conn(), "audit_conn": _conn(), "mail_transport": transport}
        )

        response = TestClient(app).get("/ready")

        assert response.status_code == 200
        assert response.json() == {
            "status": "ready",
            "checks": {"quotes_db": "ok", "audit_db": "ok", "mail_transport": "ok"},
        }

    def test_ready_returns_503_without_services(self) -> None:
        response = TestClient(_make_app()).get("/ready")

        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "not_ready"
        assert set(body["checks"].values()) == {"fail"}

    def test_closed_database_fails_its_check(self, transport) -> None:
        audit = _conn()
        audit.close()
        app = _make_app(
            {"quotes_conn": _conn(), "audit_conn": audit, "mail_transport": transport}
        )

        response = TestClient(app).get("/ready")

        assert response.status_code == 503
        assert response.json()["checks"]["audit_db"] == "fail"
        assert response.json()["checks"]["quotes_db"] == "ok"

    def test_unconfigured_transport_fails_its_check(self, transport) -> None:
        transport.ready = False
        app = _make_app(
            {"quotes_conn": _conn(), "audit_conn": _conn(), "mail_transport": transport}
        )

        response = TestClient(app).get("/ready")

        assert response.status_code == 503
        assert response.json()["checks"]["mail_transport"] == "fail"
