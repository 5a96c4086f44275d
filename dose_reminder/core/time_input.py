"""Dose time text entry helpers.

The editor accumulates raw keystrokes and only formats them for display;
validation happens on submit.
"""

import re
from typing import List


def format_partial_time(raw: str) -> str:
    """Format raw ``HH:MM`` input for display while the user is typing.

    Non-digit characters other than ``:`` are dropped, hours are clamped
    to 23 and minutes to 59, and a colon is inserted after two hour digits.
    """
    text = re.sub(r"[^0-9:]", "", raw or "")
    if not text:
        return ""

    if ":" in text:
        hours, minutes = text.split(":", 1)
        minutes = minutes.replace(":", "")
        hours = _clamp(hours[:2], 23)
        minutes = _clamp(minutes[:2], 59)
        return f"{hours}:{minutes}"

    if len(text) < 2:
        return text

    hours = _clamp(text[:2], 23)
    minutes = _clamp(text[2:4], 59)
    return f"{hours}:{minutes}"


def _clamp(part: str, upper: int) -> str:
    if len(part) == 2 and int(part) > upper:
        return str(upper)
    return part


def normalize_dose_time(value: str) -> str:
    """``"9:05"`` -> ``"09:05"``. Expects an already validated value."""
    hours, minutes = value.split(":")
    return f"{int(hours):02d}:{int(minutes):02d}"


def dose_minutes(value: str) -> int:
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def circular_gaps(dose_times: List[str]) -> List[int]:
    """Gaps in minutes between consecutive doses around a 24 hour clock."""
    minutes = sorted(dose_minutes(t) for t in dose_times)
    if len(minutes) < 2:
        return []
    gaps = [b - a for a, b in zip(minutes, minutes[1:])]
    gaps.append(minutes[0] + 24 * 60 - minutes[-1])
    return gaps
