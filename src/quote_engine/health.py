"""Health and readiness endpoints for container orchestration.

Provides two top-level routes:

- ``GET /health`` -- Liveness probe.  Returns 200 if the process is alive.
- ``GET /ready``  -- Readiness probe.  Returns 200 only when both databases
  answer a query **and** the mail transport is configured.  Returns 503 with
  per-check details otherwise.
"""

from __future__ import annotations

import asyncio
import sqlite3
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


async def _check_db(conn: sqlite3.Connection | None) -> str:
    if conn is None:
        return "fail"
    try:
        await asyncio.to_thread(conn.execute, "SELECT 1")
    except sqlite3.Error:
        return "fail"
    return "ok"


def register_health_routes(app: FastAPI) -> None:
    """Register ``/health`` and ``/ready`` endpoints on *app*."""

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness probe -- always returns 200 if the process is running."""
        return {"status": "healthy"}

    @app.get("/ready")
    async def ready(request: Request) -> JSONResponse:
        """Readiness probe -- checks both databases and the mail transport."""
        services: dict[str, Any] = request.app.state.services
        checks: dict[str, str] = {
            "quotes_db": await _check_db(services.get("quotes_conn")),
            "audit_db": await _check_db(services.get("audit_conn")),
        }

        transport = services.get("mail_transport")
        checks["mail_transport"] = "ok" if transport is not None and transport.is_ready() else "fail"

        all_ok = all(v == "ok" for v in checks.values())
        status = "ready" if all_ok else "not_ready"
        code = 200 if all_ok else 503

        return JSONResponse(content={"status": status, "checks": checks}, status_code=code)
