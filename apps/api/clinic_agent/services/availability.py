"""Match requested appointment times against weekly doctor windows."""
from __future__ import annotations

import re
from datetime import date
from typing import Iterable, Protocol

from ..models.doctor import WEEKDAYS

HHMM_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class WeeklySlot(Protocol):
    """Duck type for anything carrying day/start_time/end_time."""

    day: str
    start_time: str
    end_time: str


def weekday_name(value: date) -> str:
    """Return the English weekday name, independent of the process locale."""

    return WEEKDAYS[value.weekday()]


def to_minutes(value: str) -> int | None:
    """Convert a zero-padded 24-hour HH:MM string to minutes since midnight."""

    match = HHMM_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        return None
    return int(match.group(1)) * 60 + int(match.group(2))


def is_available(slots: Iterable[WeeklySlot], requested_date: date, requested_time: str) -> bool:
    """Return True if any window covers the requested day and time (bounds inclusive)."""

    requested = to_minutes(requested_time)
    if requested is None:
        return False

    day = weekday_name(requested_date)
    for slot in slots:
        if slot.day != day:
            continue
        start = to_minutes(slot.start_time)
        end = to_minutes(slot.end_time)
        if start is None or end is None:
            continue
        if start <= requested <= end:
            return True
    return False


def describe_slots(slots: Iterable[WeeklySlot]) -> str:
    """Render windows for humans, e.g. ``Monday 09:00-17:00, Friday 09:00-15:00``."""

    parts = [f"{slot.day} {slot.start_time}-{slot.end_time}" for slot in slots]
    return ", ".join(parts) if parts else "no regular hours"
