"""Reminder dispatch reconciler.

Turns the medication ids named by a device notification into the
authoritative list of intake log entries. One batched request per
notification; the result overwrites the matching cache entries.
"""

import logging
from typing import List

from ..modules.api_client import ApiError
from .models import IntakeLogEntry, ReminderBatch

logger = logging.getLogger("dose_reminder.reconciler")


class ResolutionFailed(Exception):
    """Server truth for a reminder batch could not be fetched."""

    def __init__(self, batch: ReminderBatch, cause: Exception):
        super().__init__(f"Could not load medications for reminder: {cause}")
        self.batch = batch
        self.cause = cause


class ReminderDispatchReconciler:
    def __init__(self, api, cache):
        self.api = api
        self.cache = cache

    async def resolve(self, batch: ReminderBatch) -> List[IntakeLogEntry]:
        if not batch.medication_ids:
            return []

        try:
            raw = await self.api.get_medication_logs_by_id(batch.medication_ids)
            resolved = [IntakeLogEntry.from_dict(item) for item in raw]
        except (ApiError, KeyError, ValueError) as e:
            logger.warning(f"Resolve failed for {batch.medication_ids}: {e}")
            raise ResolutionFailed(batch, e) from e

        # Entries outside this batch keep their cached state.
        fresh_ids = {e.id for e in resolved}
        kept = [e for e in await self.cache.get_all() if e.id not in fresh_ids]
        await self.cache.replace_all(kept + resolved)

        missing = set(batch.medication_ids) - fresh_ids
        if missing:
            logger.info(f"Server returned no log for {sorted(missing)}")

        return sorted(resolved, key=lambda e: (e.medication_name.lower(), e.scheduled_time, e.id))
