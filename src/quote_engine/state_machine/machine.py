"""QuoteStateMachine class with trigger, target lookup, and history."""

from __future__ import annotations

from quote_engine.domain.errors import InvalidTransitionError
from quote_engine.domain.types import QuoteStatus
from quote_engine.state_machine.transitions import TERMINAL_STATES, TRANSITIONS


class QuoteStateMachine:
    """Finite state machine governing a quote's status.

    Validates transitions against the transition map and records the
    ``(from, event, to)`` history of the instance.  The machine is rebuilt
    from the persisted status for each operation, so history covers only the
    transitions applied during that operation.

    Usage::

        sm = QuoteStateMachine()
        sm.trigger("send")     # -> SENT
        sm.trigger("view")     # -> VIEWED
        sm.trigger("accept")   # -> ACCEPTED (terminal)
    """

    def __init__(self, initial_state: QuoteStatus = QuoteStatus.DRAFT) -> None:
        self._state: QuoteStatus = initial_state
        self._history: list[tuple[QuoteStatus, str, QuoteStatus]] = []

    @property
    def state(self) -> QuoteStatus:
        """Return the current quote status."""
        return self._state

    @property
    def is_terminal(self) -> bool:
        """Return True if the quote is accepted, declined, or expired."""
        return self._state in TERMINAL_STATES

    @property
    def history(self) -> list[tuple[QuoteStatus, str, QuoteStatus]]:
        """Return a copy of the transition history."""
        return list(self._history)

    def can_trigger(self, event: str) -> bool:
        """Return True if *event* is valid from the current status."""
        return not self.is_terminal and (self._state, event) in TRANSITIONS

    def trigger(self, event: str) -> QuoteStatus:
        """Apply an event to the current status and transition.

        Args:
            event: The event string (e.g. ``"send"``).

        Returns:
            The new status after the transition.

        Raises:
            InvalidTransitionError: If the transition is not allowed from
                the current status, or if the quote is in a terminal status.
        """
        if not self.can_trigger(event):
            raise InvalidTransitionError(self._state, event)

        old_state = self._state
        new_state = TRANSITIONS[(old_state, event)]
        self._history.append((old_state, event, new_state))
        self._state = new_state
        return new_state

    def event_for(self, target: QuoteStatus) -> str:
        """Find the event that moves the current status to *target*.

        Args:
            target: The desired status.

        Returns:
            The event string that reaches *target*.

        Raises:
            InvalidTransitionError: If *target* is not reachable in one step.
        """
        if not self.is_terminal:
            for (state, event), next_state in TRANSITIONS.items():
                if state == self._state and next_state == target:
                    return event
        raise InvalidTransitionError(self._state, f"-> {target}")

    def transition_to(self, target: QuoteStatus) -> QuoteStatus:
        """Move to *target* through whichever event reaches it."""
        return self.trigger(self.event_for(target))

    def get_valid_events(self) -> list[str]:
        """Return a sorted list of events valid from the current status."""
        if self.is_terminal:
            return []
        return sorted(event for state, event in TRANSITIONS if state == self._state)
