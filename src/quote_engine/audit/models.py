"""Audit trail models for quote lifecycle and security events.

Each entry records who acted (actor id/email/role), from where (client IP
and user agent), against which quote, whether it succeeded, and an optional
structured payload such as the filters used for an export.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict

from quote_engine.domain.models import Actor

ANONYMOUS_ACTOR_ID = "anonymous"
ANONYMOUS_ROLE = "anonymous"


class AuditAction(StrEnum):
    """Kinds of action recorded in the audit trail."""

    CREATE_QUOTE = "create_quote"
    UPDATE_QUOTE = "update_quote"
    DELETE_QUOTE = "delete_quote"
    TRANSITION_STATUS = "transition_status"
    SEND_QUOTE_EMAIL = "send_quote_email"
    RETRY_QUOTE_EMAIL = "retry_quote_email"
    VIEW_QUOTE = "view_quote"
    EXPORT_QUOTES = "export_quotes"
    PERMISSION_DENIED = "permission_denied"
    TRACKING_CLICK = "tracking_click"
    BOOKING_INTEREST = "booking_interest"
    TRACKING_REJECTED = "tracking_rejected"


class AuditContext(BaseModel):
    """Who performed an action and from which client."""

    model_config = ConfigDict(frozen=True)

    actor_id: str
    actor_email: str = ""
    actor_role: str
    client_ip: str = "unknown"
    user_agent: str = "unknown"

    @classmethod
    def for_actor(
        cls,
        actor: Actor,
        client_ip: str | None = None,
        user_agent: str | None = None,
    ) -> AuditContext:
        """Build a context for an authenticated back-office actor."""
        return cls(
            actor_id=actor.id,
            actor_email=actor.email,
            actor_role=str(actor.role),
            client_ip=client_ip or "unknown",
            user_agent=user_agent or "unknown",
        )

    @classmethod
    def anonymous(
        cls,
        client_ip: str | None = None,
        user_agent: str | None = None,
    ) -> AuditContext:
        """Build a context for an unauthenticated party such as a link clicker."""
        return cls(
            actor_id=ANONYMOUS_ACTOR_ID,
            actor_role=ANONYMOUS_ROLE,
            client_ip=client_ip or "unknown",
            user_agent=user_agent or "unknown",
        )


class AuditEntry(BaseModel):
    """A single immutable audit trail entry.

    ``passive`` marks engagement events raised by customers clicking tracking
    links, as opposed to administrative actions.
    """

    model_config = ConfigDict(frozen=True)

    action: AuditAction
    actor_id: str
    actor_email: str = ""
    actor_role: str
    quote_id: str | None = None
    client_ip: str = "unknown"
    user_agent: str = "unknown"
    success: bool = True
    failure_reason: str | None = None
    payload: dict[str, Any] | None = None
    passive: bool = False
