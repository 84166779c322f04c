"""Appointment persistence helpers."""
from __future__ import annotations

from datetime import date
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.appointment import Appointment, AppointmentStatus


async def create_appointment(
    session: AsyncSession,
    *,
    patient_name: str,
    patient_phone: str,
    doctor_id: str,
    appointment_date: date,
    appointment_time: str,
    originating_call_id: str,
) -> Appointment:
    """Persist a new appointment; IntegrityError if the call already booked one."""

    appointment = Appointment(
        id=str(uuid4()),
        patient_name=patient_name,
        patient_phone=patient_phone,
        doctor_id=doctor_id,
        appointment_date=appointment_date,
        appointment_time=appointment_time,
        status=AppointmentStatus.SCHEDULED,
        notes=f"Booked via AI call (CallSid: {originating_call_id})",
        originating_call_id=originating_call_id,
    )
    session.add(appointment)
    await session.flush()
    return appointment


async def get_by_call(session: AsyncSession, call_id: str) -> Appointment | None:
    """Return the appointment created by a call, if any."""

    stmt = select(Appointment).where(Appointment.originating_call_id == call_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_appointments(session: AsyncSession, *, limit: int = 100) -> list[Appointment]:
    """Return appointments, most recent date first."""

    stmt = (
        select(Appointment)
        .order_by(Appointment.appointment_date.desc(), Appointment.appointment_time.desc())
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())
