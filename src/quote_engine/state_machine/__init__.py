"""Quote status state machine with transition validation."""

from quote_engine.state_machine.machine import QuoteStateMachine
from quote_engine.state_machine.transitions import (
    TERMINAL_STATES,
    TRANSITIONS,
    QuoteEvent,
)

__all__ = [
    "QuoteEvent",
    "QuoteStateMachine",
    "TERMINAL_STATES",
    "TRANSITIONS",
]
