"""Fixtures for HTTP-level tests against the assembled FastAPI app."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from quote_engine.app import close_services, create_app, initialize_services
from quote_engine.config import Settings

ADMIN_HEADERS = {
    "X-Actor-Id": "admin-1",
    "X-Actor-Email": "admin@agency.test",
    "X-Actor-Role": "admin",
    "X-Actor-Approved": "true",
    "X-Actor-Registration-Status": "approved",
}


@pytest.fixture
def services(tmp_path: Path, clock, transport) -> dict[str, Any]:
    settings = Settings(
        database_path=tmp_path / "quotes.db",
        audit_db_path=tmp_path / "audit.db",
        tracking_secret="api-test-tracking-secret-0123456789",
        public_base_url="https://quotes.example.test",
        resend_api_key="re_test",
    )
    built = initialize_services(settings, mail_transport=transport, clock=clock)
    yield built
    close_services(built)


@pytest.fixture
def client(services: dict[str, Any]) -> TestClient:
    return TestClient(create_app(services))


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return dict(ADMIN_HEADERS)


@pytest.fixture
def created(client: TestClient, quote_payload: dict[str, Any], admin_headers) -> dict[str, Any]:
    """A quote created through the API; returns its JSON representation."""
    response = client.post("/api/admin/quotes", json=quote_payload, headers=admin_headers)
    assert response.status_code == 201
    return response.json()["data"]
