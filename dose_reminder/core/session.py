"""Reminder session: one reminder on screen, from notification to done.

Every notification path ends in ``on_reminder_batch``. Interactive
operations are only allowed once the batch has been resolved against the
server. Each batch gets a generation number; a result that comes back
after the session moved on (new batch, closed screen) is dropped.
"""

import logging
from typing import Callable, List, Optional

from .models import IntakeLogEntry, IntakeStatus, ReminderBatch
from .reconciler import ResolutionFailed
from .snooze import SnoozeResult
from .state_machine import SessionState, StateMachine
from .transitions import BatchOutcome, TransitionResult, is_batch_complete

logger = logging.getLogger("dose_reminder.session")


class SessionNotReady(Exception):
    def __init__(self, state: SessionState):
        super().__init__(f"Reminder is not ready for changes (state: {state.value})")
        self.state = state


class ReminderSession:
    def __init__(self, reconciler, engine, snooze, navigate_home: Callable[[], None] = None):
        self.reconciler = reconciler
        self.engine = engine
        self.snooze_coordinator = snooze
        self.navigate_home = navigate_home

        self.batch: Optional[ReminderBatch] = None
        self.entries: List[IntakeLogEntry] = []
        self.last_error: Optional[Exception] = None
        self._generation = 0

        self.machine = StateMachine(initial_state=SessionState.IDLE)
        self._register_transitions()

    def _register_transitions(self) -> None:
        S = SessionState
        for state in S:
            # A new notification always takes over the screen.
            self.machine.register_transition(state, S.RESOLVING, "batch_received")
            if state is not S.CLOSED:
                self.machine.register_transition(state, S.CLOSED, "closed")
        self.machine.register_transition(S.RESOLVING, S.READY, "resolved")
        self.machine.register_transition(S.RESOLVING, S.RESOLUTION_FAILED, "resolve_failed")
        self.machine.register_transition(S.RESOLUTION_FAILED, S.RESOLVING, "retry")
        self.machine.register_transition(S.READY, S.COMPLETED, "completed", self._go_home)
        self.machine.register_transition(S.READY, S.SNOOZED, "snoozed", self._go_home)
        self.machine.register_transition(S.READY, S.DISMISSED, "dismissed", self._go_home)

    @property
    def state(self) -> SessionState:
        return self.machine.current_state

    def _go_home(self) -> None:
        if self.navigate_home:
            self.navigate_home()

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and self.state is not SessionState.CLOSED

    def _require_ready(self) -> int:
        if self.state is not SessionState.READY:
            raise SessionNotReady(self.state)
        return self._generation

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def on_reminder_batch(self, batch: ReminderBatch) -> List[IntakeLogEntry]:
        self._generation += 1
        self.batch = batch
        self.entries = []
        self.last_error = None
        self.machine.trigger("batch_received")
        return await self._resolve(self._generation)

    async def retry(self) -> List[IntakeLogEntry]:
        if not self.machine.trigger("retry"):
            raise SessionNotReady(self.state)
        return await self._resolve(self._generation)

    async def _resolve(self, generation: int) -> List[IntakeLogEntry]:
        try:
            entries = await self.reconciler.resolve(self.batch)
        except ResolutionFailed as e:
            if self._is_current(generation):
                self.last_error = e
                self.machine.trigger("resolve_failed")
                raise
            logger.info("Dropping resolve failure for a superseded reminder")
            return []

        if not self._is_current(generation):
            logger.info("Dropping resolve result for a superseded reminder")
            return entries

        self.entries = entries
        self.machine.trigger("resolved")
        return entries

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    async def _apply(self, entry_id: str, status: IntakeStatus, confirm: bool = False) -> TransitionResult:
        generation = self._require_ready()
        entries = self.entries
        result = await self.engine.transition_one(entries, entry_id, status, confirm)
        if not self._is_current(generation):
            logger.info(f"Reminder closed while updating {entry_id}")
            return result
        if result.success and is_batch_complete(entries):
            self.machine.trigger("completed")
        return result

    async def take(self, entry_id: str) -> TransitionResult:
        return await self._apply(entry_id, IntakeStatus.TAKEN)

    async def untake(self, entry_id: str) -> TransitionResult:
        return await self._apply(entry_id, IntakeStatus.PENDING)

    async def miss(self, entry_id: str, confirm: bool = False) -> TransitionResult:
        return await self._apply(entry_id, IntakeStatus.MISSED, confirm)

    async def dismiss(self) -> BatchOutcome:
        """Mark every still-pending dose as missed."""
        generation = self._require_ready()
        pending = [e.id for e in self.entries if e.status is IntakeStatus.PENDING]
        if not pending:
            self.machine.trigger("dismissed")
            return BatchOutcome(IntakeStatus.MISSED)

        outcome = await self.engine.transition_all(self.entries, pending, IntakeStatus.MISSED)
        if self._is_current(generation) and outcome.all_succeeded:
            self.machine.trigger("dismissed")
        return outcome

    async def snooze(self) -> SnoozeResult:
        generation = self._require_ready()
        result = await self.snooze_coordinator.snooze(self.entries)
        if result.success and self._is_current(generation):
            self.machine.trigger("snoozed")
        return result

    def close(self) -> None:
        """Screen lost focus; anything still in flight is ignored."""
        self._generation += 1
        self.machine.trigger("closed")
