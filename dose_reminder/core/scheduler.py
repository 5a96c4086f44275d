"""Reminder scheduler.

Periodically fetches upcoming intake logs, plans fire points and hands the
new ones to the device notification layer. Runs as a task on the app's
event loop; slots that were already handed over are remembered so an
hourly refresh does not book them twice.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional

from ..modules.api_client import ApiError
from .models import IntakeLogEntry
from .planner import FirePoint, plan_fire_points

logger = logging.getLogger("dose_reminder.scheduler")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReminderScheduler:
    def __init__(
        self,
        api,
        schedule_reminder: Callable[[FirePoint], Awaitable[Optional[str]]],
        poll_interval: float = 3600.0,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.api = api
        self.schedule_reminder = schedule_reminder
        self.poll_interval = poll_interval
        self.clock = clock
        self._scheduled: Dict[str, datetime] = {}
        self._stop: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        if self._task and not self._task.done():
            return
        self._stop = asyncio.Event()
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._stop:
            self._stop.set()
        if self._task:
            await self._task
            self._task = None

    @staticmethod
    def _key(point: FirePoint) -> str:
        return f"{point.slot_id}:{','.join(sorted(point.medication_ids))}"

    async def refresh_once(self) -> List[FirePoint]:
        """Hand every fire point not scheduled yet to the device layer."""
        raw = await self.api.get_medication_logs()
        entries = [IntakeLogEntry.from_dict(item) for item in raw]
        now = self.clock()

        # prune slots that have already fired
        self._scheduled = {k: t for k, t in self._scheduled.items() if t >= now}

        added = []
        for point in plan_fire_points(entries, now):
            key = self._key(point)
            if key in self._scheduled:
                continue
            try:
                identifier = await self.schedule_reminder(point)
            except Exception as e:
                logger.warning(f"Could not book reminder at {point.fire_at.isoformat()}: {e}")
                continue
            if identifier is None:
                logger.warning(f"Device refused reminder at {point.fire_at.isoformat()}")
                continue
            self._scheduled[key] = point.fire_at
            added.append(point)

        logger.info(f"Scheduled reminders for {len(added)} new time slot(s)")
        return added

    async def _run(self) -> None:
        while not self._stop.is_set():
            try:
                await self.refresh_once()
            except ApiError as e:
                logger.warning(f"Reminder refresh failed: {e}")
            except (KeyError, ValueError) as e:
                logger.warning(f"Reminder refresh skipped, malformed intake logs: {e}")
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass
