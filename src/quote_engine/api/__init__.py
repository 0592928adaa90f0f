"""HTTP surface: admin quote routes, public tracking routes, error handlers."""

from quote_engine.api.errors import register_exception_handlers
from quote_engine.api.quotes import router as quotes_router
from quote_engine.api.tracking import router as tracking_router

__all__ = [
    "quotes_router",
    "register_exception_handlers",
    "tracking_router",
]
