"""State machine for fetcher lifecycle: IDLE -> POLLING -> PUBLISHING -> WAITING -> POLLING ... -> STOPPED."""

import enum
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class FetcherState(str, enum.Enum):
    """Fetcher lifecycle states."""

    IDLE = "idle"
    POLLING = "polling"
    PUBLISHING = "publishing"
    WAITING = "waiting"
    STOPPED = "stopped"


# Valid transitions: from_state -> set of allowed to_states
_TRANSITIONS: dict[FetcherState, set[FetcherState]] = {
    FetcherState.IDLE: {FetcherState.POLLING, FetcherState.STOPPED},
    FetcherState.POLLING: {FetcherState.PUBLISHING, FetcherState.STOPPED},
    FetcherState.PUBLISHING: {FetcherState.WAITING, FetcherState.STOPPED},
    FetcherState.WAITING: {FetcherState.POLLING, FetcherState.STOPPED},
    FetcherState.STOPPED: set(),
}


class StopReason(str, enum.Enum):
    """Why run() returned."""

    NO_SERVERS = "no_servers"
    TOLERANCE_VIOLATION = "tolerance_violation"
    ALL_SERVERS_DOWN = "all_servers_down"
    SINK_FAILURE = "sink_failure"
    STOP_REQUESTED = "stop_requested"
    MAX_CYCLES = "max_cycles"


class FetcherStateMachine:
    """Manages fetcher lifecycle state and transitions."""

    def __init__(
        self,
        on_transition: Optional[Callable[[FetcherState, FetcherState], None]] = None,
    ):
        self._current = FetcherState.IDLE
        self._on_transition = on_transition
        self._stop_requested = False

    @property
    def current(self) -> FetcherState:
        return self._current

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def can_transition_to(self, to_state: FetcherState) -> bool:
        """Check if transition from current state to to_state is valid."""
        allowed = _TRANSITIONS.get(self._current, set())
        return to_state in allowed

    def transition(self, to_state: FetcherState) -> bool:
        """
        Transition to new state if valid. Returns True on success, False otherwise.
        Calls on_transition(from, to) callback if provided.
        """
        if not self.can_transition_to(to_state):
            logger.warning(
                "Invalid transition: %s -> %s (allowed: %s)",
                self._current.value,
                to_state.value,
                [s.value for s in _TRANSITIONS.get(self._current, set())],
            )
            return False
        from_state = self._current
        self._current = to_state
        logger.debug("State: %s -> %s", from_state.value, to_state.value)
        if self._on_transition:
            try:
                self._on_transition(from_state, to_state)
            except Exception as e:
                logger.debug("on_transition callback error: %s", e)
        return True

    def is_stopped(self) -> bool:
        return self._current == FetcherState.STOPPED

    def request_stop(self) -> None:
        """Ask the run loop to exit after the current cycle; immediate when idle or waiting."""
        self._stop_requested = True
