"""Prompt construction for the clinic phone assistant."""
from __future__ import annotations

from datetime import date
from typing import Sequence

from ..models.call import Speaker
from ..repositories.calls import TurnRecord
from ..repositories.doctors import DoctorRow
from .availability import describe_slots, weekday_name
from .directives import BOOKING_PREFIX, END_CALL_PREFIX

ASSISTANT_PERSONA = (
    "You are a friendly AI medical receptionist answering a phone call for a clinic. "
    "Your replies are read aloud, so keep them to one or two short spoken sentences, "
    "never use lists or markdown, and do not give medical diagnoses."
)

BOOKING_CONTRACT = (
    "When the caller wants to book and you know the doctor, the date, the time, the caller's name "
    "and phone number, respond with exactly one line and nothing else, in this format:\n"
    f"{BOOKING_PREFIX}:DoctorName:Specialization:YYYY-MM-DD:HH:MM:PatientName:PatientPhone\n"
    f"For example: {BOOKING_PREFIX}:Dr. Aisha Khan:Pediatrician:2025-10-27:09:30:Alice Smith:555-1000\n"
    "Use the doctor's name and specialization exactly as listed, a future date, and 24-hour time. "
    "Only offer times inside the doctor's listed hours. If any detail is missing, ask for it instead."
)

END_CALL_CONTRACT = (
    "When the caller says goodbye or has nothing else to ask, respond with exactly one line "
    "and nothing else, in this format:\n"
    f"{END_CALL_PREFIX}:<short closing message>\n"
    f"For example: {END_CALL_PREFIX}:Thank you for calling, take care!"
)

FOLLOW_UP_GUIDANCE = (
    "An appointment has already been booked on this call. Do not book another one and do not "
    "repeat the booking details. Ask whether there is anything else you can help with and answer "
    "general questions briefly."
)


def format_directory(doctors: Sequence[DoctorRow]) -> str:
    """List doctors with their weekly hours in plain language."""

    if not doctors:
        return "No doctors are currently taking appointments."
    lines = ["Doctors taking appointments:"]
    for doctor in doctors:
        lines.append(f"- {doctor.name} ({doctor.specialization}): {describe_slots(doctor.slots)}")
    return "\n".join(lines)


def format_transcript(turns: Sequence[TurnRecord]) -> str:
    if not turns:
        return "No prior dialogue."
    labels = {Speaker.CALLER: "Caller", Speaker.ASSISTANT: "Assistant"}
    return "\n".join(f"{labels[turn.speaker]}: {turn.message}" for turn in turns)


def build_prompt(
    *,
    turns: Sequence[TurnRecord],
    doctors: Sequence[DoctorRow],
    today: date,
    appointment_booked: bool,
) -> str:
    """Return the completion prompt for the next assistant turn."""

    lines = [
        ASSISTANT_PERSONA,
        "",
        f"Today is {weekday_name(today)}, {today.isoformat()}.",
        "",
    ]
    if appointment_booked:
        lines.extend([FOLLOW_UP_GUIDANCE, "", END_CALL_CONTRACT])
    else:
        lines.extend([format_directory(doctors), "", BOOKING_CONTRACT, "", END_CALL_CONTRACT])
    lines.extend(
        [
            "",
            "Otherwise, reply naturally to the caller.",
            "",
            "Conversation so far:",
            format_transcript(turns),
            "Assistant:",
        ]
    )
    return "\n".join(lines)
