"""Per-request log context for the quote engine's HTTP surface.

Every response carries an ``X-Request-ID`` header, echoed from the client or
freshly generated.  The ID, the HTTP method, the path, and the acting user
(from the gateway's ``X-Actor-Id`` header, when present) are bound into
structlog contextvars, so every log entry written while handling the request
carries them.  Only the path is bound: tracking links put their signed token
in the query string, and tokens must never reach the logs.

Each request ends with one ``http_request_completed`` (or
``http_request_failed``) entry recording the status and the duration.
"""

from __future__ import annotations

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from quote_engine.api.deps import ACTOR_ID_HEADER

logger = structlog.get_logger()

SERVICE_NAME = "quote-engine"
REQUEST_ID_HEADER = "X-Request-ID"

# Longer client-supplied IDs are replaced rather than logged.
MAX_REQUEST_ID_LENGTH = 128


def _request_id(request: Request) -> str:
    supplied = request.headers.get(REQUEST_ID_HEADER, "").strip()
    if supplied and len(supplied) <= MAX_REQUEST_ID_LENGTH and supplied.isprintable():
        return supplied
    return str(uuid.uuid4())


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind request-scoped log context and log the outcome of each request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = _request_id(request)
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            service=SERVICE_NAME,
            method=request.method,
            path=request.url.path,
        )
        actor_id = request.headers.get(ACTOR_ID_HEADER, "").strip()
        if actor_id:
            structlog.contextvars.bind_contextvars(actor_id=actor_id)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "http_request_failed",
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
            raise

        logger.info(
            "http_request_completed",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
