"""Parse machine-readable directives out of completion text.

The completion model is told to answer with one of two exact line formats
when it wants the call handler to act:

    BOOK_APPOINTMENT:<doctor>:<specialization>:<YYYY-MM-DD>:<HH:MM>:<patient>:<phone>
    END_CALL:<closing message>

Matching is strict. The directive has to be the whole (trimmed) response and
every field has to be well formed; anything else is returned untouched as a
plain reply so a half-understood booking is never acted on.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Union

from .availability import to_minutes

BOOKING_PREFIX = "BOOK_APPOINTMENT"
END_CALL_PREFIX = "END_CALL"
DEFAULT_CLOSING = "Thank you for calling. Goodbye!"

_FIELD = r"([^:\r\n]+)"
BOOKING_PATTERN = re.compile(
    rf"{BOOKING_PREFIX}:{_FIELD}:{_FIELD}:(\d{{4}}-\d{{2}}-\d{{2}}):(\d{{2}}:\d{{2}}):{_FIELD}:{_FIELD}"
)
END_CALL_PATTERN = re.compile(rf"{END_CALL_PREFIX}:(.*)", re.DOTALL)


@dataclass(frozen=True, slots=True)
class BookingDirective:
    doctor_name: str
    specialization: str
    date: date
    time: str
    patient_name: str
    patient_phone: str


@dataclass(frozen=True, slots=True)
class EndCallDirective:
    closing_message: str


@dataclass(frozen=True, slots=True)
class PlainReply:
    text: str


Directive = Union[BookingDirective, EndCallDirective, PlainReply]


def parse_directive(text: str) -> Directive:
    """Classify a completion as a booking, an end-call, or a plain reply."""

    candidate = (text or "").strip()

    booking = _parse_booking(candidate)
    if booking is not None:
        return booking

    end_match = END_CALL_PATTERN.fullmatch(candidate)
    if end_match:
        closing = end_match.group(1).strip()
        return EndCallDirective(closing_message=closing or DEFAULT_CLOSING)

    return PlainReply(text=text)


def _parse_booking(candidate: str) -> BookingDirective | None:
    match = BOOKING_PATTERN.fullmatch(candidate)
    if not match:
        return None

    doctor_name, specialization, date_str, time_str, patient_name, patient_phone = (
        part.strip() for part in match.groups()
    )
    if not all((doctor_name, specialization, patient_name, patient_phone)):
        return None
    if to_minutes(time_str) is None:
        return None
    try:
        requested_date = date.fromisoformat(date_str)
    except ValueError:
        return None

    return BookingDirective(
        doctor_name=doctor_name,
        specialization=specialization,
        date=requested_date,
        time=time_str,
        patient_name=patient_name,
        patient_phone=patient_phone,
    )
