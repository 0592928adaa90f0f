"""Public tracking routes hit by customers following links in quote emails.

These routes never return an error: every outcome is a redirect, to the
booking-interest page for a valid token or to the fallback page otherwise.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from pydantic import ValidationError

from quote_engine.api.deps import client_ip, get_services
from quote_engine.domain.models import BookingInterestDetails

logger = structlog.get_logger()

router = APIRouter(prefix="/api/tracking")


def _fallback_url(services: dict[str, Any]) -> str:
    settings = services["settings"]
    return f"{settings.public_base_url.rstrip('/')}{settings.fallback_path}"


async def _interest_details(request: Request) -> BookingInterestDetails | None:
    raw = await request.body()
    if not raw.strip():
        return None
    try:
        return BookingInterestDetails.model_validate(json.loads(raw))
    except (UnicodeDecodeError, ValueError, ValidationError):
        logger.info("booking_interest_details_ignored")
        return None


@router.get("/click")
async def tracking_click(
    request: Request,
    t: str = "",
    services: dict[str, Any] = Depends(get_services),
) -> RedirectResponse:
    """Record a click and send the customer on to the booking-interest page."""
    result = await asyncio.to_thread(
        services["engagement_recorder"].record_click,
        t,
        client_ip(request),
        request.headers.get("User-Agent"),
    )
    if not result.success:
        return RedirectResponse(_fallback_url(services), status_code=307)
    return RedirectResponse(services["token_service"].booking_interest_url(t), status_code=307)


@router.post("/booking-interest")
async def booking_interest(
    request: Request,
    t: str = "",
    services: dict[str, Any] = Depends(get_services),
) -> RedirectResponse:
    """Record booking interest, with optional contact details in a JSON body."""
    details = await _interest_details(request)
    result = await asyncio.to_thread(
        services["engagement_recorder"].record_booking_interest,
        t,
        details,
        client_ip(request),
        request.headers.get("User-Agent"),
    )
    if not result.success:
        return RedirectResponse(_fallback_url(services), status_code=303)
    confirmation = services["token_service"].booking_interest_url(t)
    return RedirectResponse(f"{confirmation}&submitted=1", status_code=303)
