"""Read-only access to the doctor directory."""
from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..models.doctor import WEEKDAYS, Doctor


@dataclass(frozen=True, slots=True)
class SlotRow:
    """Recurring weekly availability window."""

    day: str
    start_time: str
    end_time: str


@dataclass(frozen=True, slots=True)
class DoctorRow:
    """Flattened doctor details used by the service layer."""

    doctor_id: str
    name: str
    specialization: str
    slots: tuple[SlotRow, ...] = field(default_factory=tuple)


async def list_active(session: AsyncSession) -> list[DoctorRow]:
    """Return active doctors with their weekly windows, ordered by name."""

    stmt = (
        select(Doctor)
        .where(Doctor.is_active.is_(True))
        .options(selectinload(Doctor.slots))
        .order_by(Doctor.name.asc())
    )
    result = await session.execute(stmt)
    return [_to_row(doctor) for doctor in result.scalars().all()]


async def find_active(session: AsyncSession, *, name: str, specialization: str) -> DoctorRow | None:
    """Return the active doctor matching name and specialization exactly."""

    stmt = (
        select(Doctor)
        .where(
            Doctor.is_active.is_(True),
            Doctor.name == name,
            Doctor.specialization == specialization,
        )
        .options(selectinload(Doctor.slots))
        .limit(1)
    )
    result = await session.execute(stmt)
    doctor = result.scalar_one_or_none()
    return _to_row(doctor) if doctor else None


def _to_row(doctor: Doctor) -> DoctorRow:
    slots = sorted(
        doctor.slots,
        key=lambda slot: (WEEKDAYS.index(slot.day) if slot.day in WEEKDAYS else len(WEEKDAYS), slot.start_time),
    )
    return DoctorRow(
        doctor_id=doctor.id,
        name=doctor.name,
        specialization=doctor.specialization,
        slots=tuple(SlotRow(day=slot.day, start_time=slot.start_time, end_time=slot.end_time) for slot in slots),
    )
