"""Schemas for the dashboard read API."""
from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from ..models.appointment import AppointmentStatus
from ..models.call import CallStatus, Speaker
from ..repositories.calls import CallRecord
from ..repositories.doctors import DoctorRow


class TranscriptLine(BaseModel):
    speaker: Speaker
    ts: datetime
    text: str


class CallSummary(BaseModel):
    call_id: str
    from_number: str
    to_number: str
    status: CallStatus
    started_at: datetime
    ended_at: datetime | None = None
    duration_sec: int | None = None
    appointment_booked: bool = False

    @classmethod
    def from_record(cls, record: CallRecord) -> "CallSummary":
        return cls(
            call_id=record.call_id,
            from_number=record.from_number,
            to_number=record.to_number,
            status=record.status,
            started_at=record.started_at,
            ended_at=record.ended_at,
            duration_sec=record.duration_sec,
            appointment_booked=record.appointment_booked,
        )


class CallDetail(CallSummary):
    transcript: list[TranscriptLine] = Field(default_factory=list)

    @classmethod
    def from_record(cls, record: CallRecord) -> "CallDetail":
        summary = CallSummary.from_record(record)
        return cls(
            **summary.model_dump(),
            transcript=[
                TranscriptLine(speaker=turn.speaker, ts=turn.timestamp, text=turn.message)
                for turn in record.transcript
            ],
        )


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class CallListResponse(BaseModel):
    items: list[CallSummary]
    pagination: Pagination


class WeeklySlotOut(BaseModel):
    day: str
    start_time: str
    end_time: str


class DoctorOut(BaseModel):
    doctor_id: str
    name: str
    specialization: str
    available_slots: list[WeeklySlotOut]

    @classmethod
    def from_row(cls, row: DoctorRow) -> "DoctorOut":
        return cls(
            doctor_id=row.doctor_id,
            name=row.name,
            specialization=row.specialization,
            available_slots=[
                WeeklySlotOut(day=slot.day, start_time=slot.start_time, end_time=slot.end_time) for slot in row.slots
            ],
        )


class AppointmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    patient_name: str
    patient_phone: str
    doctor_id: str
    appointment_date: date
    appointment_time: str
    status: AppointmentStatus
    notes: str
    originating_call_id: str | None = None
