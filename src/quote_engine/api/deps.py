"""Request-scoped helpers shared by the routers.

The back office sits behind a gateway that authenticates users and forwards
the actor as trusted headers; this module turns them into an :class:`Actor`
and an :class:`AuditContext`.
"""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any

from fastapi import HTTPException, Request
from pydantic import ValidationError

from quote_engine.audit.models import AuditContext
from quote_engine.domain.errors import QuoteValidationError
from quote_engine.domain.models import Actor

ACTOR_ID_HEADER = "X-Actor-Id"
ACTOR_EMAIL_HEADER = "X-Actor-Email"
ACTOR_ROLE_HEADER = "X-Actor-Role"
ACTOR_APPROVED_HEADER = "X-Actor-Approved"
ACTOR_REGISTRATION_HEADER = "X-Actor-Registration-Status"

_TRUE_VALUES = frozenset({"1", "true", "yes"})


def get_services(request: Request) -> dict[str, Any]:
    """Return the services dict built by ``initialize_services``."""
    services: dict[str, Any] = request.app.state.services
    return services


def get_actor(request: Request) -> Actor:
    """Build the acting user from gateway headers.

    Raises:
        HTTPException: 401 if the actor id is missing or the role is unknown.
    """
    actor_id = request.headers.get(ACTOR_ID_HEADER, "").strip()
    if not actor_id:
        raise HTTPException(status_code=401, detail="Authentication required")

    data: dict[str, Any] = {
        "id": actor_id,
        "email": request.headers.get(ACTOR_EMAIL_HEADER, ""),
        "role": request.headers.get(ACTOR_ROLE_HEADER, "").strip().lower(),
        "is_approved": request.headers.get(ACTOR_APPROVED_HEADER, "").strip().lower()
        in _TRUE_VALUES,
    }
    registration = request.headers.get(ACTOR_REGISTRATION_HEADER)
    if registration:
        data["registration_status"] = registration.strip().lower()
    try:
        return Actor.model_validate(data)
    except ValidationError:
        raise HTTPException(status_code=401, detail="Invalid actor context") from None


def client_ip(request: Request) -> str | None:
    """First hop in ``X-Forwarded-For``, else the socket peer address."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else None


def audit_context(request: Request, actor: Actor) -> AuditContext:
    """Audit context for *actor* making *request*."""
    return AuditContext.for_actor(
        actor,
        client_ip=client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )


async def read_json_body(request: Request, *, required: bool = True) -> dict[str, Any]:
    """Parse the request body as a JSON object with exact decimals.

    Numbers with a fraction are parsed as ``Decimal`` so money never passes
    through binary floating point.

    Raises:
        QuoteValidationError: If the body is missing, not JSON, or not an object.
    """
    raw = await request.body()
    if not raw.strip():
        if required:
            raise QuoteValidationError("Request body is required")
        return {}
    try:
        body = json.loads(raw, parse_float=Decimal)
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise QuoteValidationError("Request body must be valid JSON") from None
    if not isinstance(body, dict):
        raise QuoteValidationError("Request body must be a JSON object")
    return body
