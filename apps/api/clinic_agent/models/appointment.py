"""Appointment model."""
from __future__ import annotations

from datetime import date, datetime, timezone
import enum

from sqlalchemy import Date, DateTime, Enum, ForeignKey, String, Text
from typing import TYPE_CHECKING

from sqlalchemy.orm import Mapped, mapped_column, relationship

if TYPE_CHECKING:
    from .call import Call
    from .doctor import Doctor

from .base import Base, enum_values


class AppointmentStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


class Appointment(Base):
    """Booked doctor appointment."""

    __tablename__ = "appointments"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    patient_name: Mapped[str] = mapped_column(String, nullable=False)
    patient_phone: Mapped[str] = mapped_column(String, nullable=False)
    doctor_id: Mapped[str] = mapped_column(ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False)
    appointment_date: Mapped[date] = mapped_column(Date, nullable=False)
    # Wall-clock HH:MM in the clinic's time zone.
    appointment_time: Mapped[str] = mapped_column(String(5), nullable=False)
    status: Mapped[AppointmentStatus] = mapped_column(
        Enum(AppointmentStatus, name="appointment_status", values_callable=enum_values),
        default=AppointmentStatus.SCHEDULED,
        nullable=False,
    )
    notes: Mapped[str] = mapped_column(Text, default="", nullable=False)
    # Unique so a call can create at most one appointment.
    originating_call_id: Mapped[str | None] = mapped_column(
        ForeignKey("calls.id", ondelete="SET NULL"), unique=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )

    doctor: Mapped["Doctor"] = relationship("Doctor", back_populates="appointments")
    call: Mapped["Call | None"] = relationship("Call", back_populates="appointment")
