"""Dose schedule validation and submission.

The client checks only format and duplicates. Whether the doses are far
enough apart is decided by the server, which answers with a structured
rejection that is turned into an actionable message here.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ..config import DOSE_TIME_PATTERN
from .models import MedicationSchedule
from .time_input import circular_gaps, format_partial_time, normalize_dose_time

logger = logging.getLogger("dose_reminder.schedule")

_TIME_RE = re.compile(DOSE_TIME_PATTERN)


class ValidationErrorKind(Enum):
    INVALID_FORMAT = "invalid_format"
    DUPLICATE = "duplicate"


class RejectionKind(Enum):
    DOSE_INTERVAL_TOO_SHORT = "DOSE_INTERVAL_TOO_SHORT"
    INVALID_TIME_FORMAT = "INVALID_TIME_FORMAT"
    INVALID_INPUT = "INVALID_INPUT"
    OTHER = "OTHER"

    @classmethod
    def from_code(cls, code: Optional[str]) -> "RejectionKind":
        for kind in cls:
            if kind.value == code:
                return kind
        return cls.OTHER


@dataclass
class ValidationResult:
    ok: bool
    kind: Optional[ValidationErrorKind] = None
    value: Optional[str] = None        # Offending entry

    @property
    def message(self) -> str:
        if self.ok:
            return ""
        if self.kind is ValidationErrorKind.INVALID_FORMAT:
            return f"Please enter valid time in HH:mm format for: {self.value}"
        return "Please remove duplicate time entries"


def validate(dose_times: List[str]) -> ValidationResult:
    for value in dose_times:
        if not isinstance(value, str) or not _TIME_RE.fullmatch(value):
            return ValidationResult(False, ValidationErrorKind.INVALID_FORMAT, value)

    seen = set()
    for value in dose_times:
        normalized = normalize_dose_time(value)
        if normalized in seen:
            return ValidationResult(False, ValidationErrorKind.DUPLICATE, value)
        seen.add(normalized)

    return ValidationResult(True)


def format_required_interval(minutes: int) -> str:
    """480 -> ``"8 hour(s) and 0 minute(s)"``; 45 -> ``"45 minute(s)"``."""
    hours, rest = divmod(int(minutes), 60)
    if hours > 0:
        return f"{hours} hour(s) and {rest} minute(s)"
    return f"{rest} minute(s)"


@dataclass
class ScheduleUpdateResult:
    success: bool
    message: str = ""
    rejection: Optional[RejectionKind] = None
    required_minutes: Optional[int] = None
    validation: Optional[ValidationResult] = None

    @property
    def title(self) -> str:
        if self.success:
            return "Success"
        if self.validation is not None:
            if self.validation.kind is ValidationErrorKind.DUPLICATE:
                return "Duplicate Times"
            return "Invalid Time"
        return {
            RejectionKind.DOSE_INTERVAL_TOO_SHORT: "Schedule Conflict",
            RejectionKind.INVALID_TIME_FORMAT: "Invalid Time Format",
            RejectionKind.INVALID_INPUT: "Invalid Input",
        }.get(self.rejection, "Schedule Error")

    def user_message(self) -> str:
        if self.success:
            return self.message or "Medication schedule updated successfully"
        if self.validation is not None:
            return self.validation.message
        if self.rejection is RejectionKind.DOSE_INTERVAL_TOO_SHORT and self.required_minutes is not None:
            required = format_required_interval(self.required_minutes)
            return (
                f"{self.message}\n\nPlease adjust your dose times to have at least "
                f"{required} between each dose."
            )
        return self.message or "Failed to update schedule"


class DoseScheduleService:
    """Fetches a medication's schedule and submits replacement dose times."""

    def __init__(self, api):
        self.api = api

    async def fetch(self, medication_id: str) -> MedicationSchedule:
        data = await self.api.get_medication_schedule(medication_id)
        return MedicationSchedule.from_dict(data)

    async def submit(self, medication_id: str, dose_times: List[str]) -> ScheduleUpdateResult:
        """Replace every dose time in one call. Transport errors propagate."""
        check = validate(dose_times)
        if not check.ok:
            return ScheduleUpdateResult(success=False, validation=check)

        response = await self.api.update_medication_schedule(medication_id, dose_times)
        if response.get("success"):
            logger.info(f"Schedule for {medication_id} updated: {dose_times}")
            return ScheduleUpdateResult(success=True, message=response.get("message", ""))

        kind = RejectionKind.from_code(response.get("error"))
        required = response.get("requiredIntervalMinutes")
        logger.info(f"Schedule for {medication_id} rejected: {kind.value}")
        return ScheduleUpdateResult(
            success=False,
            message=response.get("message", ""),
            rejection=kind,
            required_minutes=int(required) if required is not None else None,
        )


class ScheduleEditor:
    """Transient edit state for one medication's dose times.

    Nothing is persisted locally; the edit is dropped unless ``save``
    succeeds.
    """

    def __init__(self, service: DoseScheduleService):
        self.service = service
        self.schedule: Optional[MedicationSchedule] = None
        self.dose_times: List[str] = []

    async def load(self, medication_id: str) -> MedicationSchedule:
        self.schedule = await self.service.fetch(medication_id)
        self.dose_times = list(self.schedule.dose_times)
        return self.schedule

    def set_time(self, index: int, raw: str) -> ValidationResult:
        value = format_partial_time(raw)
        if not _TIME_RE.fullmatch(value):
            return ValidationResult(False, ValidationErrorKind.INVALID_FORMAT, value)
        self.dose_times[index] = value
        return ValidationResult(True)

    def add_time(self, raw: str) -> ValidationResult:
        self.dose_times.append("")
        result = self.set_time(len(self.dose_times) - 1, raw)
        if not result.ok:
            self.dose_times.pop()
        return result

    def remove_time(self, index: int) -> None:
        del self.dose_times[index]

    def shortest_gap(self) -> Optional[int]:
        """Smallest gap between doses in minutes, for display only."""
        if not validate(self.dose_times).ok:
            return None
        gaps = circular_gaps(self.dose_times)
        return min(gaps) if gaps else None

    def discard(self) -> None:
        self.schedule = None
        self.dose_times = []

    async def save(self) -> ScheduleUpdateResult:
        if self.schedule is None:
            raise RuntimeError("No medication schedule loaded")
        result = await self.service.submit(self.schedule.medication_id, self.dose_times)
        if result.success:
            self.discard()
        return result
