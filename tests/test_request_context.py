"""Tests for the request context middleware."""

from __future__ import annotations

import re
from unittest.mock import patch

import structlog
from fastapi import FastAPI
from fastapi.testclient import TestClient

from quote_engine.observability.middleware import (
    MAX_REQUEST_ID_LENGTH,
    SERVICE_NAME,
    RequestContextMiddleware,
)

UUID4_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

MIDDLEWARE_LOGGER = "quote_engine.observability.middleware.logger"


def _make_app() -> FastAPI:
    """Create a minimal FastAPI app that reports its bound log context."""
    app = FastAPI()
    app.add_middleware(RequestContextMiddleware)

    @app.get("/context")
    async def context():
        return structlog.contextvars.get_contextvars()

    @app.get("/boom")
    async def boom():
        raise RuntimeError("kaboom")

    return app


class TestRequestId:
    """X-Request-ID is echoed or generated."""

    def test_response_has_auto_generated_request_id(self) -> None:
        client = TestClient(_make_app())
        resp = client.get("/context")
        assert resp.status_code == 200
        request_id = resp.headers.get("X-Request-ID", "")
        assert UUID4_PATTERN.match(request_id), f"Expected UUID4 format, got: {request_id}"

    def test_response_echoes_client_request_id(self) -> None:
        client = TestClient(_make_app())
        resp = client.get("/context", headers={"X-Request-ID": "quote-req-7"})
        assert resp.headers["X-Request-ID"] == "quote-req-7"

    def test_oversized_client_id_is_replaced(self) -> None:
        client = TestClient(_make_app())
        resp = client.get("/context", headers={"X-Request-ID": "x" * (MAX_REQUEST_ID_LENGTH + 1)})
        assert UUID4_PATTERN.match(resp.headers["X-Request-ID"])

    def test_each_request_gets_a_distinct_id(self) -> None:
        client = TestClient(_make_app())
        first = client.get("/context").headers["X-Request-ID"]
        second = client.get("/context").headers["X-Request-ID"]
        assert first != second


class TestLogContext:
    """Request details are bound into structlog contextvars."""

    def test_request_details_are_bound(self) -> None:
        client = TestClient(_make_app())
        resp = client.get("/context", headers={"X-Request-ID": "quote-req-8"})
        context = resp.json()
        assert context["request_id"] == "quote-req-8"
        assert context["service"] == SERVICE_NAME
        assert context["method"] == "GET"
        assert context["path"] == "/context"
        assert "actor_id" not in context

    def test_actor_is_bound_when_present(self) -> None:
        client = TestClient(_make_app())
        resp = client.get("/context", headers={"X-Actor-Id": "admin-1"})
        assert resp.json()["actor_id"] == "admin-1"

    def test_query_string_is_not_bound(self) -> None:
        client = TestClient(_make_app())
        context = client.get("/context", params={"t": "signed.token"}).json()
        assert "signed.token" not in str(context)

    def test_context_does_not_leak_between_requests(self) -> None:
        client = TestClient(_make_app())
        client.get("/context", headers={"X-Actor-Id": "admin-1"})
        assert "actor_id" not in client.get("/context").json()


class TestCompletionLogging:
    """Each request ends with one outcome log entry."""

    def test_completed_request_is_logged(self) -> None:
        client = TestClient(_make_app())
        with patch(MIDDLEWARE_LOGGER) as mock_logger:
            client.get("/context")

        mock_logger.info.assert_called_once()
        args, kwargs = mock_logger.info.call_args
        assert args == ("http_request_completed",)
        assert kwargs["status_code"] == 200
        assert kwargs["duration_ms"] >= 0

    def test_failed_request_is_logged_and_reraised(self) -> None:
        client = TestClient(_make_app(), raise_server_exceptions=False)
        with patch(MIDDLEWARE_LOGGER) as mock_logger:
            resp = client.get("/boom")

        assert resp.status_code == 500
        mock_logger.exception.assert_called_once()
        assert mock_logger.exception.call_args.args == ("http_request_failed",)
        mock_logger.info.assert_not_called()
