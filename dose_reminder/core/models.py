"""Data model shared by the scheduling core.

The server is the system of record for every type here; the client only
reads, transitions and shadows them.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional


class IntakeStatus(str, Enum):
    PENDING = "Pending"
    TAKEN = "Taken"
    MISSED = "Missed"


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, accepting the trailing ``Z`` form."""
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def format_timestamp(value: datetime) -> str:
    text = value.isoformat(timespec="milliseconds")
    if text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text


@dataclass
class MedicationSchedule:
    medication_id: str
    name: str = ""
    type: str = ""
    dosage: Optional[str] = None
    unit: Optional[str] = None
    dose_times: List[str] = field(default_factory=list)
    dose_interval_minutes: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict) -> "MedicationSchedule":
        med = data.get("medication", data)
        interval = med.get("doseInterval")
        return cls(
            medication_id=str(med.get("_id") or med.get("id") or ""),
            name=med.get("name", ""),
            type=med.get("type", ""),
            dosage=med.get("dosage"),
            unit=med.get("unit"),
            dose_times=list(med.get("selectedDoseTimes") or []),
            dose_interval_minutes=int(interval) if interval is not None else None,
        )


@dataclass(frozen=True)
class IntakeLogEntry:
    id: str
    medication_id: str
    medication_name: str
    medication_type: str
    scheduled_time: str
    status: IntakeStatus = IntakeStatus.PENDING
    taken_at: Optional[str] = None
    missed_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict) -> "IntakeLogEntry":
        """Build an entry from either the server shape or the cached shape."""
        med = data.get("medication") or {}
        return cls(
            id=str(data.get("id") or data.get("_id")),
            medication_id=str(data.get("medicationId") or med.get("_id") or ""),
            medication_name=data.get("medicationName") or med.get("name", ""),
            medication_type=data.get("medicationType") or med.get("type", ""),
            scheduled_time=data.get("scheduledTime") or data.get("intakeTime") or "",
            status=IntakeStatus(data.get("status") or IntakeStatus.PENDING.value),
            taken_at=data.get("takenAt"),
            missed_at=data.get("missedAt"),
        )

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "medicationId": self.medication_id,
            "medicationName": self.medication_name,
            "medicationType": self.medication_type,
            "scheduledTime": self.scheduled_time,
            "status": self.status.value,
            "takenAt": self.taken_at,
            "missedAt": self.missed_at,
        }

    def with_status(self, status: IntakeStatus, timestamp: Optional[str]) -> "IntakeLogEntry":
        """Return a copy in ``status`` with the matching timestamp field set."""
        if status is IntakeStatus.TAKEN:
            return replace(self, status=status, taken_at=timestamp, missed_at=None)
        if status is IntakeStatus.MISSED:
            return replace(self, status=status, taken_at=None, missed_at=timestamp)
        return replace(self, status=status, taken_at=None, missed_at=None)

    @property
    def status_timestamp(self) -> Optional[str]:
        if self.status is IntakeStatus.TAKEN:
            return self.taken_at
        if self.status is IntakeStatus.MISSED:
            return self.missed_at
        return None

    @property
    def scheduled_at(self) -> Optional[datetime]:
        return parse_timestamp(self.scheduled_time)


@dataclass
class ReminderBatch:
    medication_ids: List[str]
    fired_at: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict) -> "ReminderBatch":
        ids = payload.get("medications") or payload.get("medicationIds") or []
        seen = []
        for med_id in ids:
            if med_id is not None and str(med_id) not in seen:
                seen.append(str(med_id))
        return cls(medication_ids=seen, fired_at=payload.get("time"))
