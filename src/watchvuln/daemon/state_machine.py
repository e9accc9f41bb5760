"""Pass Scheduler State Machine.

This module defines the lifecycle of the pass scheduler.

States:
    IDLE: Waiting for the next trigger
    RUNNING: A pass is in progress
    STOPPED: Scheduler shut down, no further passes

Valid Transitions:
    IDLE ↔ RUNNING
    IDLE/RUNNING → STOPPED

Usage:
    from watchvuln.daemon.state_machine import PassState, PassStateMachine

    sm = PassStateMachine("watchvuln")
    sm.begin_pass()   # IDLE → RUNNING
    sm.end_pass()     # RUNNING → IDLE
    sm.stop()         # IDLE → STOPPED
"""

from datetime import datetime, timezone
from enum import StrEnum

import structlog

from watchvuln.core.exceptions import InvalidStateTransition


log = structlog.get_logger()


class PassState(StrEnum):
    """Scheduler lifecycle states."""

    IDLE = "IDLE"
    RUNNING = "RUNNING"
    STOPPED = "STOPPED"


VALID_TRANSITIONS: frozenset[tuple[PassState, PassState]] = frozenset([
    (PassState.IDLE, PassState.RUNNING),
    (PassState.RUNNING, PassState.IDLE),
    (PassState.IDLE, PassState.STOPPED),
    (PassState.RUNNING, PassState.STOPPED),
])


def is_valid_transition(from_state: PassState, to_state: PassState) -> bool:
    """Check if a state transition is valid."""
    return (from_state, to_state) in VALID_TRANSITIONS


def get_valid_targets(from_state: PassState) -> set[PassState]:
    """Get all valid target states from a given state.

    Returns:
        Set of reachable states. Empty for STOPPED.
    """
    return {to for (frm, to) in VALID_TRANSITIONS if frm == from_state}


class PassStateMachine:
    """Strict scheduler state machine.

    Invalid transitions raise InvalidStateTransition.

    Attributes:
        scheduler_id: Scheduler identifier used in logs and errors.
        current_state: Current state (read-only).
        history: List of (state, timestamp) tuples (read-only copy).
    """

    def __init__(self, scheduler_id: str) -> None:
        self._scheduler_id = scheduler_id
        self._current_state = PassState.IDLE
        self._history: list[tuple[PassState, datetime]] = [
            (PassState.IDLE, datetime.now(timezone.utc))
        ]

    @property
    def scheduler_id(self) -> str:
        return self._scheduler_id

    @property
    def current_state(self) -> PassState:
        return self._current_state

    @property
    def history(self) -> list[tuple[PassState, datetime]]:
        """State transition history (read-only copy)."""
        return list(self._history)

    def transition(self, to_state: PassState) -> None:
        """Transition to a new state.

        Raises:
            InvalidStateTransition: If transition is not valid.
        """
        from_state = self._current_state

        if not is_valid_transition(from_state, to_state):
            raise InvalidStateTransition(
                scheduler_id=self._scheduler_id,
                from_state=str(from_state),
                to_state=str(to_state),
            )

        self._current_state = to_state
        self._history.append((to_state, datetime.now(timezone.utc)))

        log.debug(
            "scheduler_state_changed",
            scheduler_id=self._scheduler_id,
            from_state=str(from_state),
            to_state=str(to_state),
        )

    # Convenience transition methods

    def begin_pass(self) -> None:
        """IDLE → RUNNING."""
        self.transition(PassState.RUNNING)

    def end_pass(self) -> None:
        """RUNNING → IDLE."""
        self.transition(PassState.IDLE)

    def stop(self) -> None:
        """IDLE or RUNNING → STOPPED."""
        self.transition(PassState.STOPPED)
