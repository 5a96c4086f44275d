import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

logger = logging.getLogger("dose_reminder.state")


class SessionState(Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    READY = "ready"
    RESOLUTION_FAILED = "resolution_failed"
    COMPLETED = "completed"
    SNOOZED = "snoozed"
    DISMISSED = "dismissed"
    CLOSED = "closed"


@dataclass
class StateTransition:
    from_state: SessionState
    to_state: SessionState
    condition: str
    action: Optional[Callable] = None


class StateMachine:
    def __init__(self, initial_state: SessionState):
        self._state = initial_state
        self._transitions: List[StateTransition] = []
        self._state_enter_time = time.time()

    @property
    def current_state(self) -> SessionState:
        return self._state

    def register_transition(self, from_state: SessionState, to_state: SessionState, condition: str, action: Callable = None) -> None:
        self._transitions.append(StateTransition(from_state, to_state, condition, action))

    def can_trigger(self, condition: str) -> bool:
        return any(t.from_state == self._state and t.condition == condition for t in self._transitions)

    def trigger(self, condition: str) -> bool:
        for t in self._transitions:
            if t.from_state == self._state and t.condition == condition:
                logger.debug(f"{self._state.value} -> {t.to_state.value} ({condition})")
                self._state = t.to_state
                self._state_enter_time = time.time()
                if t.action:
                    t.action()
                return True
        return False

    def get_time_in_state(self) -> float:
        return time.time() - self._state_enter_time
