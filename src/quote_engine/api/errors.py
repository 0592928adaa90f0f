"""Translate domain errors into HTTP responses.

Every error body has the shape
``{"success": false, "error": {"code", "message", "details"}}``.
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from quote_engine.domain.errors import EmailDispatchError, QuoteError
from quote_engine.domain.types import ErrorCode

logger = structlog.get_logger()

STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.PRICING_ERROR: 400,
    ErrorCode.INVALID_TRANSITION: 400,
    ErrorCode.EMAIL_ALREADY_SENT: 400,
    ErrorCode.PERMISSION_DENIED: 403,
    ErrorCode.PENDING_APPROVAL: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.STALE_VERSION: 409,
    ErrorCode.EMAIL_SEND_FAILED: 500,
    ErrorCode.EMAIL_RETRY_FAILED: 500,
}


def error_response(
    code: ErrorCode,
    message: str,
    details: list[dict[str, object]] | None = None,
) -> JSONResponse:
    """Build the JSON error response for *code*."""
    return JSONResponse(
        status_code=STATUS_BY_CODE.get(code, 400),
        content={
            "success": False,
            "error": {"code": code.value, "message": message, "details": details or []},
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register handlers for domain and request-validation errors on *app*."""

    @app.exception_handler(QuoteError)
    async def handle_quote_error(request: Request, exc: QuoteError) -> JSONResponse:
        details = list(exc.details)
        if isinstance(exc, EmailDispatchError):
            details.append({"transport_error": exc.transport_error})
        logger.info(
            "request_failed",
            code=exc.code.value,
            path=request.url.path,
            message=exc.message,
        )
        return error_response(exc.code, exc.message, details)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        details = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ())),
                "message": err.get("msg", ""),
                "type": err.get("type", ""),
            }
            for err in exc.errors()
        ]
        return error_response(ErrorCode.VALIDATION_ERROR, "Request failed validation", details)
