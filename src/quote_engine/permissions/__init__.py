"""Permission manager: the single capability table for quote operations."""

from quote_engine.permissions.manager import (
    ADMIN_ONLY_OPERATIONS,
    CAPABILITIES,
    can_perform_operation,
    can_view_quote,
)

__all__ = [
    "ADMIN_ONLY_OPERATIONS",
    "CAPABILITIES",
    "can_perform_operation",
    "can_view_quote",
]
