"""Tests for weekly availability matching."""
from __future__ import annotations

from datetime import date

import pytest

from clinic_agent.repositories.doctors import SlotRow
from clinic_agent.services.availability import describe_slots, is_available, to_minutes, weekday_name

SLOTS = (
    SlotRow(day="Monday", start_time="09:00", end_time="17:00"),
    SlotRow(day="Friday", start_time="09:00", end_time="15:00"),
)

MONDAY = date(2025, 10, 27)
FRIDAY = date(2025, 10, 31)
SUNDAY = date(2025, 10, 26)


def test_weekday_name_is_english() -> None:
    assert weekday_name(MONDAY) == "Monday"
    assert weekday_name(SUNDAY) == "Sunday"


@pytest.mark.parametrize(
    ("value", "expected"),
    [("00:00", 0), ("09:30", 570), ("23:59", 1439), ("24:00", None), ("9:30", None), ("", None)],
)
def test_to_minutes(value: str, expected: int | None) -> None:
    assert to_minutes(value) == expected


def test_window_bounds_are_inclusive() -> None:
    assert is_available(SLOTS, MONDAY, "09:00")
    assert is_available(SLOTS, MONDAY, "17:00")
    assert not is_available(SLOTS, MONDAY, "17:01")
    assert not is_available(SLOTS, MONDAY, "08:59")


def test_day_must_match() -> None:
    assert is_available(SLOTS, FRIDAY, "14:30")
    assert not is_available(SLOTS, FRIDAY, "16:00")
    assert not is_available(SLOTS, SUNDAY, "10:00")


def test_malformed_window_is_skipped() -> None:
    slots = (
        SlotRow(day="Monday", start_time="nine", end_time="17:00"),
        SlotRow(day="Monday", start_time="13:00", end_time="14:00"),
    )

    assert not is_available(slots, MONDAY, "10:00")
    assert is_available(slots, MONDAY, "13:30")


def test_malformed_request_time_is_unavailable() -> None:
    assert not is_available(SLOTS, MONDAY, "10am")


def test_describe_slots() -> None:
    assert describe_slots(SLOTS) == "Monday 09:00-17:00, Friday 09:00-15:00"
    assert describe_slots(()) == "no regular hours"
