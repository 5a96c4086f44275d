"""Snooze coordinator: push the still-pending doses of a reminder back."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, List, Optional

from ..modules.api_client import ApiError
from .models import IntakeLogEntry, IntakeStatus

logger = logging.getLogger("dose_reminder.snooze")


class SnoozeErrorKind(Enum):
    NO_PENDING_MEDICATIONS = "no_pending_medications"
    NETWORK_ERROR = "network_error"
    REJECTED = "rejected"


@dataclass
class SnoozeResult:
    success: bool
    next_fire_time: Optional[datetime] = None
    snoozed_ids: Optional[List[str]] = None
    error: Optional[SnoozeErrorKind] = None
    message: str = ""


class SnoozeCoordinator:
    def __init__(self, api, snooze_minutes: int = 5, clock: Callable[[], datetime] = datetime.now):
        self.api = api
        self.snooze_minutes = snooze_minutes
        self.clock = clock

    async def snooze(self, entries: List[IntakeLogEntry]) -> SnoozeResult:
        pending = [e.id for e in entries if e.status is IntakeStatus.PENDING]
        if not pending:
            return SnoozeResult(
                success=False,
                error=SnoozeErrorKind.NO_PENDING_MEDICATIONS,
                message="There are no pending medications to snooze.",
            )

        try:
            response = await self.api.snooze_medication_reminder(pending)
        except ApiError as e:
            logger.warning(f"Snooze failed for {pending}: {e}")
            return SnoozeResult(
                success=False, error=SnoozeErrorKind.NETWORK_ERROR,
                message="Please check your internet connection and try again.",
            )

        if not response.get("success"):
            return SnoozeResult(
                success=False, error=SnoozeErrorKind.REJECTED,
                message=response.get("message") or "Could not snooze reminder",
            )

        # Informational only; the server owns re-delivery.
        next_fire = self.clock() + timedelta(minutes=self.snooze_minutes)
        logger.info(f"Snoozed {len(pending)} medication(s) until {next_fire:%H:%M}")
        return SnoozeResult(
            success=True,
            next_fire_time=next_fire,
            snoozed_ids=pending,
            message=response.get("message") or f"Reminder snoozed for {self.snooze_minutes} minutes",
        )
