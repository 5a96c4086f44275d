"""Configuration for the dose reminder core.

All tunable parameters live here. Environment variables are loaded
from .env at import time via python-dotenv.
"""

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


# ---------------------------------------------------------------------------
# Module configs
# ---------------------------------------------------------------------------

@dataclass
class ApiConfig:
    """Backend REST settings."""
    base_url: str = field(default_factory=lambda: os.getenv("API_BASE_URL", "http://localhost:5000"))
    patient_prefix: str = "/api/patient"
    notification_prefix: str = "/api/notification"
    timeout: float = 10.0               # Seconds per request
    auth_token: Optional[str] = field(default_factory=lambda: os.getenv("API_TOKEN") or None)
    pool_connections: int = 4
    pool_maxsize: int = 8
    max_retries: int = 1                # Transport-level retries only (connect errors)


@dataclass
class CacheConfig:
    """Local key-value storage settings."""
    data_dir: Path = field(default_factory=lambda: Path(
        os.getenv("DOSE_REMINDER_DATA_DIR") or Path(__file__).resolve().parent / "data"
    ))
    intake_key: str = "medicationIntakeLogs"
    history_key: str = "notificationsHistory"
    history_limit: int = 100


@dataclass
class ReminderConfig:
    """Reminder delivery and snooze settings."""
    snooze_minutes: int = 5
    refresh_interval: float = 60 * 60.0   # Re-plan fire points every hour
    reminder_title: str = "MEDICATION REMINDER"
    reminder_body: str = "Time to take your medications."


# ---------------------------------------------------------------------------
# Shared constants
# ---------------------------------------------------------------------------

DOSE_TIME_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"

MEDICATION_REMINDER_TYPE = "MEDICATION_REMINDER"
