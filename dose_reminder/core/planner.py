"""Map intake logs and dose times to reminder fire points."""

from dataclasses import dataclass, field
from datetime import date, datetime, time as dtime, timezone
from typing import Dict, List

from .models import IntakeLogEntry, IntakeStatus, MedicationSchedule, format_timestamp
from .time_input import normalize_dose_time


@dataclass
class FirePoint:
    fire_at: datetime
    medication_ids: List[str] = field(default_factory=list)

    @property
    def slot_id(self) -> str:
        """Stable id for the slot, milliseconds since the epoch."""
        return str(int(self.fire_at.timestamp() * 1000))

    def payload(self, reminder_type: str) -> Dict:
        return {
            "type": reminder_type,
            "timeSlotId": self.slot_id,
            "medications": list(self.medication_ids),
            "time": format_timestamp(self.fire_at),
        }


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def plan_fire_points(entries: List[IntakeLogEntry], now: datetime) -> List[FirePoint]:
    """Group future pending doses by their exact scheduled time."""
    now = _aware(now)
    groups: Dict[datetime, List[str]] = {}
    for entry in entries:
        if entry.status is not IntakeStatus.PENDING:
            continue
        when = entry.scheduled_at
        if when is None:
            continue
        when = _aware(when)
        if when < now:
            continue
        groups.setdefault(when, []).append(entry.id)

    return [FirePoint(when, ids) for when, ids in sorted(groups.items())]


def fire_points_for_schedule(schedule: MedicationSchedule, day: date, tzinfo=None) -> List[FirePoint]:
    """One fire point per configured dose time on ``day``."""
    points = []
    for value in sorted({normalize_dose_time(t) for t in schedule.dose_times}):
        hours, minutes = value.split(":")
        when = datetime.combine(day, dtime(int(hours), int(minutes)), tzinfo=tzinfo)
        points.append(FirePoint(when, [schedule.medication_id]))
    return points
