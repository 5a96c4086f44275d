"""Intake transition engine.

Applies Taken / Missed / Pending to due entries. The local change is
committed first (cache, then the in-memory list) and the server call
follows. A failed server call is not rolled back: it is reported on the
result and through ``on_sync_error``; the next resolve overwrites the
cache with server truth.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from ..modules.api_client import ApiError
from .models import IntakeLogEntry, IntakeStatus, format_timestamp

logger = logging.getLogger("dose_reminder.transitions")

P, T, M = IntakeStatus.PENDING, IntakeStatus.TAKEN, IntakeStatus.MISSED

ALLOWED_TRANSITIONS = {
    (P, T), (P, M),
    (T, P),
    (M, T),
}
# Reverses a completed dose; stock was already decremented server-side.
NEEDS_CONFIRMATION = {(T, M)}


class TransitionError(Exception):
    def __init__(self, entry_id: str, from_status: IntakeStatus, to_status: IntakeStatus, message: str):
        super().__init__(message)
        self.entry_id = entry_id
        self.from_status = from_status
        self.to_status = to_status


class InvalidTransition(TransitionError):
    pass


class ConfirmationRequired(TransitionError):
    pass


@dataclass
class TransitionResult:
    entry_id: str
    status: IntakeStatus
    success: bool
    entry: Optional[IntakeLogEntry] = None
    error_message: Optional[str] = None


@dataclass
class BatchOutcome:
    status: IntakeStatus
    results: Dict[str, TransitionResult] = field(default_factory=dict)

    @property
    def all_succeeded(self) -> bool:
        return bool(self.results) and all(r.success for r in self.results.values())

    @property
    def failed_ids(self) -> List[str]:
        return [i for i, r in self.results.items() if not r.success]


def is_batch_complete(entries: List[IntakeLogEntry]) -> bool:
    """True once every entry in the batch is Taken."""
    return bool(entries) and all(e.status is IntakeStatus.TAKEN for e in entries)


def check_transition(entry: IntakeLogEntry, new_status: IntakeStatus, confirm: bool = False) -> None:
    pair = (entry.status, new_status)
    if entry.status is new_status or pair in ALLOWED_TRANSITIONS:
        return
    if pair in NEEDS_CONFIRMATION:
        if confirm:
            return
        raise ConfirmationRequired(
            entry.id, entry.status, new_status,
            f"{entry.medication_name} was already taken. Mark it as missed anyway?",
        )
    raise InvalidTransition(
        entry.id, entry.status, new_status,
        f"Cannot change {entry.medication_name} from {entry.status.value} to {new_status.value}",
    )


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class IntakeTransitionEngine:
    def __init__(
        self,
        api,
        cache,
        on_sync_error: Callable[[TransitionResult], None] = None,
        on_batch_complete: Callable[[BatchOutcome], None] = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.api = api
        self.cache = cache
        self.on_sync_error = on_sync_error
        self.on_batch_complete = on_batch_complete
        self.clock = clock

    async def transition_one(
        self,
        entries: List[IntakeLogEntry],
        entry_id: str,
        new_status: IntakeStatus,
        confirm: bool = False,
    ) -> TransitionResult:
        """Apply ``new_status`` to one entry of ``entries`` (updated in place).

        Guard errors (``InvalidTransition``, ``ConfirmationRequired``) are
        raised before anything is changed.
        """
        index = next((i for i, e in enumerate(entries) if e.id == entry_id), None)
        if index is None:
            raise KeyError(entry_id)
        current = entries[index]
        check_transition(current, new_status, confirm)

        if current.status is new_status:
            # Re-applying keeps the original timestamp so repeats are idempotent.
            updated = current
        else:
            stamp = None if new_status is P else format_timestamp(self.clock())
            updated = current.with_status(new_status, stamp)

        await self.cache.patch(entry_id, new_status, taken_at=updated.taken_at, missed_at=updated.missed_at)
        entries[index] = updated

        try:
            response = await self.api.mark_medication(
                entry_id, new_status.value,
                taken_at=updated.taken_at, missed_at=updated.missed_at,
            )
        except ApiError as e:
            return self._sync_failed(entry_id, new_status, updated, f"Connection error: {e}")

        if response.get("success") is False:
            return self._sync_failed(
                entry_id, new_status, updated,
                response.get("message") or "Could not update medication",
            )

        logger.info(f"{updated.medication_name} ({entry_id}) -> {new_status.value}")
        return TransitionResult(entry_id, new_status, True, entry=updated)

    def _sync_failed(self, entry_id, status, entry, message) -> TransitionResult:
        logger.warning(f"Sync failed for {entry_id} -> {status.value}: {message}")
        result = TransitionResult(entry_id, status, False, entry=entry, error_message=message)
        if self.on_sync_error:
            self.on_sync_error(result)
        return result

    async def _guarded(self, entries, entry_id, new_status, confirm) -> TransitionResult:
        try:
            return await self.transition_one(entries, entry_id, new_status, confirm)
        except (TransitionError, KeyError) as e:
            return TransitionResult(entry_id, new_status, False, error_message=str(e))

    async def transition_all(
        self,
        entries: List[IntakeLogEntry],
        entry_ids: List[str],
        new_status: IntakeStatus,
        confirm: bool = False,
    ) -> BatchOutcome:
        """Apply ``new_status`` to every id concurrently; one failure blocks none."""
        results = await asyncio.gather(*(
            self._guarded(entries, entry_id, new_status, confirm) for entry_id in entry_ids
        ))
        outcome = BatchOutcome(new_status, {r.entry_id: r for r in results})

        if outcome.all_succeeded:
            if self.on_batch_complete:
                self.on_batch_complete(outcome)
        else:
            logger.warning(f"Bulk {new_status.value}: {len(outcome.failed_ids)} of {len(entry_ids)} failed")
        return outcome
