"""Expose ORM models."""
from .appointment import Appointment, AppointmentStatus
from .call import Call, CallStatus, CallTurn, Speaker
from .doctor import Doctor, DoctorSlot

__all__ = [
    "Appointment",
    "AppointmentStatus",
    "Call",
    "CallStatus",
    "CallTurn",
    "Doctor",
    "DoctorSlot",
    "Speaker",
]
