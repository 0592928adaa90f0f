"""Admin quote routes.

Thin wrappers: each route resolves the actor, delegates to one of the
services in a worker thread, and wraps the result as
``{"success": true, "data": ...}``.  Domain errors are rendered by the
handlers in :mod:`quote_engine.api.errors`.
"""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from quote_engine.api.deps import audit_context, get_actor, get_services, read_json_body
from quote_engine.audit.store import query_audit_trail
from quote_engine.domain.errors import QuoteValidationError
from quote_engine.domain.models import Actor, Quote
from quote_engine.domain.types import QuoteOperation

router = APIRouter(prefix="/api/admin/quotes")

# Query parameter spellings accepted by the export endpoint.
EXPORT_PARAM_ALIASES: dict[str, str] = {
    "dateFrom": "date_from",
    "dateTo": "date_to",
    "minPrice": "min_price",
    "maxPrice": "max_price",
    "emailStatus": "email_status",
    "bookingInterest": "booking_interest",
    "isSuperPackage": "is_super_package",
    "createdBy": "created_by",
}

# Query parameter spellings accepted by the booking-analytics endpoint.
ANALYTICS_PARAM_ALIASES: dict[str, str] = {
    "startDate": "date_from",
    "endDate": "date_to",
}

AUDIT_TRAIL_LIMIT = 200


def _quote_body(quote: Quote) -> dict[str, Any]:
    return {"success": True, "data": quote.model_dump(mode="json")}


def _expected_version(body: dict[str, Any]) -> int | None:
    value = body.pop("expected_version", None)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise QuoteValidationError(
            "expected_version must be an integer",
            details=[
                {"field": "expected_version", "message": "must be an integer", "type": "int_type"}
            ],
        )
    return value


@router.post("")
async def create_quote(
    request: Request,
    actor: Actor = Depends(get_actor),
    services: dict[str, Any] = Depends(get_services),
) -> JSONResponse:
    """Create a draft quote."""
    body = await read_json_body(request)
    quote = await asyncio.to_thread(
        services["quote_service"].create_quote, body, actor, audit_context(request, actor)
    )
    return JSONResponse(status_code=201, content=_quote_body(quote))


@router.post("/calculate-price")
async def calculate_price(
    request: Request,
    actor: Actor = Depends(get_actor),
    services: dict[str, Any] = Depends(get_services),
) -> dict[str, Any]:
    """Preview a total and per-unit prices without saving a quote."""
    body = await read_json_body(request)
    breakdown, unit_prices = await asyncio.to_thread(
        services["quote_service"].calculate_price, body, actor, audit_context(request, actor)
    )
    return {
        "success": True,
        "data": {
            "breakdown": breakdown.model_dump(mode="json"),
            "unit_prices": unit_prices.model_dump(mode="json"),
            "has_mismatches": breakdown.has_mismatches,
        },
    }


@router.get("/export")
async def export_quotes(
    request: Request,
    actor: Actor = Depends(get_actor),
    services: dict[str, Any] = Depends(get_services),
) -> Response:
    """Download matching quotes as CSV or JSON."""
    filters = {
        EXPORT_PARAM_ALIASES.get(key, key): value
        for key, value in request.query_params.items()
        if value != ""
    }
    result = await asyncio.to_thread(
        services["exporter"].export, filters, actor, audit_context(request, actor)
    )
    return Response(
        content=result.content,
        media_type=result.media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{result.filename}"',
            "X-Total-Records": str(result.total_records),
            "X-Max-Records-Reached": "true" if result.max_records_reached else "false",
            "X-Content-Type-Options": "nosniff",
            "Cache-Control": "no-cache, no-store, must-revalidate",
        },
    )


@router.get("/stats")
async def quote_stats(
    request: Request,
    actor: Actor = Depends(get_actor),
    services: dict[str, Any] = Depends(get_services),
) -> dict[str, Any]:
    """Dashboard counts and values over live quotes."""
    stats = await asyncio.to_thread(
        services["analytics"].quote_stats, actor, audit_context(request, actor)
    )
    return {"success": True, "data": stats.model_dump(mode="json")}


@router.get("/booking-analytics")
async def booking_analytics(
    request: Request,
    actor: Actor = Depends(get_actor),
    services: dict[str, Any] = Depends(get_services),
) -> dict[str, Any]:
    """Booking-interest conversion for quotes created in a date window."""
    window = {
        ANALYTICS_PARAM_ALIASES.get(key, key): value
        for key, value in request.query_params.items()
        if value != ""
    }
    report = await asyncio.to_thread(
        services["analytics"].booking_analytics, window, actor, audit_context(request, actor)
    )
    return {"success": True, "data": report.model_dump(mode="json")}


@router.get("/{quote_id}")
async def get_quote(
    quote_id: str,
    request: Request,
    actor: Actor = Depends(get_actor),
    services: dict[str, Any] = Depends(get_services),
) -> dict[str, Any]:
    """Fetch one quote."""
    quote = await asyncio.to_thread(
        services["quote_service"].get_quote, quote_id, actor, audit_context(request, actor)
    )
    return _quote_body(quote)


@router.put("/{quote_id}")
async def update_quote(
    quote_id: str,
    request: Request,
    actor: Actor = Depends(get_actor),
    services: dict[str, Any] = Depends(get_services),
) -> dict[str, Any]:
    """Edit a quote; an optional ``expected_version`` guards against lost updates."""
    body = await read_json_body(request)
    expected_version = _expected_version(body)
    quote = await asyncio.to_thread(
        services["quote_service"].update_quote,
        quote_id,
        body,
        actor,
        audit_context(request, actor),
        expected_version,
    )
    return _quote_body(quote)


@router.delete("/{quote_id}")
async def delete_quote(
    quote_id: str,
    request: Request,
    actor: Actor = Depends(get_actor),
    services: dict[str, Any] = Depends(get_services),
) -> dict[str, Any]:
    """Soft-delete a quote."""
    quote = await asyncio.to_thread(
        services["quote_service"].delete_quote, quote_id, actor, audit_context(request, actor)
    )
    return _quote_body(quote)


@router.post("/{quote_id}/status")
async def transition_status(
    quote_id: str,
    request: Request,
    actor: Actor = Depends(get_actor),
    services: dict[str, Any] = Depends(get_services),
) -> dict[str, Any]:
    """Move a quote to a new status."""
    body = await read_json_body(request)
    expected_version = _expected_version(body)
    status = body.get("status")
    if not isinstance(status, str):
        raise QuoteValidationError(
            "status is required",
            details=[{"field": "status", "message": "Field required", "type": "missing"}],
        )
    quote = await asyncio.to_thread(
        services["quote_service"].transition_status,
        quote_id,
        status,
        actor,
        audit_context(request, actor),
        expected_version,
    )
    return _quote_body(quote)


@router.post("/{quote_id}/send-email")
async def send_quote_email(
    quote_id: str,
    request: Request,
    actor: Actor = Depends(get_actor),
    services: dict[str, Any] = Depends(get_services),
) -> dict[str, Any]:
    """Send (or re-send) the quote email."""
    result = await services["email_coordinator"].send_quote_email(
        quote_id, actor, audit_context(request, actor)
    )
    return {"success": True, "data": result.model_dump(mode="json")}


@router.post("/{quote_id}/retry-email")
async def retry_quote_email(
    quote_id: str,
    request: Request,
    actor: Actor = Depends(get_actor),
    services: dict[str, Any] = Depends(get_services),
) -> dict[str, Any]:
    """Retry a failed quote email."""
    result = await services["email_coordinator"].retry_quote_email(
        quote_id, actor, audit_context(request, actor)
    )
    return {"success": True, "data": result.model_dump(mode="json")}


@router.get("/{quote_id}/audit")
async def quote_audit_trail(
    quote_id: str,
    request: Request,
    actor: Actor = Depends(get_actor),
    services: dict[str, Any] = Depends(get_services),
) -> dict[str, Any]:
    """Return the audit trail for one quote, newest first."""
    context = audit_context(request, actor)
    await asyncio.to_thread(
        services["quote_service"].authorize,
        actor,
        QuoteOperation.VIEW_AUDIT_LOG,
        context,
        quote_id,
    )
    entries = await asyncio.to_thread(
        query_audit_trail,
        services["audit_conn"],
        quote_id=quote_id,
        limit=AUDIT_TRAIL_LIMIT,
    )
    return {"success": True, "data": entries}


@router.get("/{quote_id}/email-preview")
async def preview_quote_email(
    quote_id: str,
    request: Request,
    actor: Actor = Depends(get_actor),
    services: dict[str, Any] = Depends(get_services),
) -> dict[str, Any]:
    """Render the quote email without sending it."""
    message = await asyncio.to_thread(
        services["email_coordinator"].preview_quote_email,
        quote_id,
        actor,
        audit_context(request, actor),
    )
    return {"success": True, "data": message.model_dump(mode="json")}
