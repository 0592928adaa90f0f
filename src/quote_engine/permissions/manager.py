"""Centralized capability table for quote operations.

Every enforcement point asks :func:`can_perform_operation`; no route or
service checks roles inline.  Lookups are pure -- callers log denials
through the audit logger.
"""

from __future__ import annotations

from quote_engine.domain.models import Actor, Quote
from quote_engine.domain.types import ActorRole, QuoteOperation

# Operations each role may perform once its account is approved.
CAPABILITIES: dict[ActorRole, frozenset[QuoteOperation]] = {
    ActorRole.ADMIN: frozenset(QuoteOperation),
    ActorRole.AGENT: frozenset({QuoteOperation.VIEW_OWN_QUOTE}),
}

ADMIN_ONLY_OPERATIONS: frozenset[QuoteOperation] = (
    CAPABILITIES[ActorRole.ADMIN] - CAPABILITIES[ActorRole.AGENT]
)


def can_perform_operation(actor: Actor, operation: QuoteOperation) -> bool:
    """Return True if *actor* may perform *operation*.

    Unapproved actors are denied every operation regardless of role.

    Args:
        actor: The authenticated actor.
        operation: The operation being attempted.

    Returns:
        Whether the capability table grants the operation.
    """
    if not actor.is_approved:
        return False
    return operation in CAPABILITIES.get(actor.role, frozenset())


def can_view_quote(actor: Actor, quote: Quote) -> bool:
    """Return True if *actor* may read *quote*.

    Admins may read any quote; agents only quotes raised against their own
    enquiries.
    """
    if can_perform_operation(actor, QuoteOperation.VIEW_QUOTE):
        return True
    return (
        can_perform_operation(actor, QuoteOperation.VIEW_OWN_QUOTE)
        and quote.agent_id is not None
        and quote.agent_id == actor.id
    )
