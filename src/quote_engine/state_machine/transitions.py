"""Transition map defining all valid (status, event) -> status mappings."""

from enum import StrEnum

from quote_engine.domain.types import QuoteStatus


class QuoteEvent(StrEnum):
    """Events that can trigger status transitions on a quote."""

    SEND = "send"
    VIEW = "view"
    ACCEPT = "accept"
    DECLINE = "decline"
    EXPIRE = "expire"


# All valid (current_status, event) -> next_status mappings.
# Any pair not in this dict is an invalid transition.
TRANSITIONS: dict[tuple[QuoteStatus, str], QuoteStatus] = {
    # From DRAFT
    (QuoteStatus.DRAFT, QuoteEvent.SEND): QuoteStatus.SENT,
    # From SENT -- a re-send keeps the quote in SENT
    (QuoteStatus.SENT, QuoteEvent.SEND): QuoteStatus.SENT,
    (QuoteStatus.SENT, QuoteEvent.VIEW): QuoteStatus.VIEWED,
    (QuoteStatus.SENT, QuoteEvent.ACCEPT): QuoteStatus.ACCEPTED,
    (QuoteStatus.SENT, QuoteEvent.DECLINE): QuoteStatus.DECLINED,
    (QuoteStatus.SENT, QuoteEvent.EXPIRE): QuoteStatus.EXPIRED,
    # From VIEWED -- only an explicit re-send regresses to SENT
    (QuoteStatus.VIEWED, QuoteEvent.SEND): QuoteStatus.SENT,
    (QuoteStatus.VIEWED, QuoteEvent.ACCEPT): QuoteStatus.ACCEPTED,
    (QuoteStatus.VIEWED, QuoteEvent.DECLINE): QuoteStatus.DECLINED,
    (QuoteStatus.VIEWED, QuoteEvent.EXPIRE): QuoteStatus.EXPIRED,
}

# States that reject all events -- no outgoing transitions allowed.
TERMINAL_STATES: frozenset[QuoteStatus] = frozenset(
    {QuoteStatus.ACCEPTED, QuoteStatus.DECLINED, QuoteStatus.EXPIRED}
)
