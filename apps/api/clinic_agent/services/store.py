"""Persistence boundary for call sessions, transcripts, and bookings.

Every public coroutine runs in its own short transaction. Nothing here is
held open across the completion call, and all cross-request guarantees rest
on single-statement compare-and-set updates plus the unique
``appointments.originating_call_id`` constraint.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from fastapi import Depends
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..db.session import get_session
from ..models.appointment import Appointment
from ..models.call import CallStatus, Speaker
from ..repositories import appointments as appointments_repo
from ..repositories import calls as calls_repo
from ..repositories import doctors as doctors_repo
from ..repositories.calls import CallRecord, ensure_tz
from ..repositories.doctors import DoctorRow
from .reaper import reap_stale

logger = logging.getLogger(__name__)


class StoreError(RuntimeError):
    """Raised when storage is unavailable or a write could not complete."""


@dataclass(frozen=True, slots=True)
class Conflict:
    """The call already has its booking (or can no longer take one)."""

    call_id: str
    reason: str


@dataclass(frozen=True, slots=True)
class BookingRequest:
    doctor_id: str
    patient_name: str
    patient_phone: str
    appointment_date: date
    appointment_time: str


def compute_duration(started_at: datetime, ended_at: datetime) -> int:
    """Whole seconds between start and end, never negative."""

    seconds = (ensure_tz(ended_at) - ensure_tz(started_at)).total_seconds()
    return max(0, int(seconds))


class CallStore:
    """Store adapter used by the conversation orchestrator."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def load(self, call_id: str) -> CallRecord | None:
        try:
            async with self._session.begin():
                call = await calls_repo.get_by_id(self._session, call_id)
                if call is None:
                    return None
                turns = await calls_repo.list_turns(self._session, call_id)
                return calls_repo.to_record(call, turns)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to load call {call_id}") from exc

    async def load_or_create(
        self,
        call_id: str,
        *,
        from_number: str = "",
        to_number: str = "",
        now: datetime | None = None,
    ) -> tuple[CallRecord, bool]:
        """Return the session for ``call_id``, creating it if needed.

        The boolean is True when this invocation created the session.
        """

        existing = await self.load(call_id)
        if existing is not None:
            return existing, False

        started_at = ensure_tz(now or datetime.now(timezone.utc))
        try:
            async with self._session.begin():
                call = await calls_repo.create_call(
                    self._session,
                    call_id=call_id,
                    from_number=from_number,
                    to_number=to_number,
                    started_at=started_at,
                )
                record = calls_repo.to_record(call)
        except IntegrityError:
            # Another delivery for the same call created it first.
            logger.info("Call %s was created concurrently; reusing it", call_id)
            winner = await self.load(call_id)
            if winner is None:
                raise StoreError(f"Call {call_id} vanished after a create conflict")
            return winner, False
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to create call {call_id}") from exc

        logger.info("New call started: %s", call_id)
        return record, True

    async def append_turn(
        self,
        call_id: str,
        speaker: Speaker,
        message: str,
        *,
        now: datetime | None = None,
    ) -> bool:
        """Append one transcript line. Returns False if the call is terminal or unknown."""

        created_at = ensure_tz(now or datetime.now(timezone.utc))
        try:
            async with self._session.begin():
                status = await calls_repo.lock_status(self._session, call_id)
                if status is None or CallStatus(status).is_terminal:
                    logger.warning("Dropping %s turn for call %s in status %s", speaker.value, call_id, status)
                    return False
                await calls_repo.add_turn(
                    self._session,
                    call_id=call_id,
                    speaker=speaker,
                    message=message,
                    created_at=created_at,
                )
                return True
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to append turn for call {call_id}") from exc

    async def set_status(
        self,
        call_id: str,
        status: CallStatus,
        ended_at: datetime | None = None,
    ) -> CallRecord | None:
        """Move an active call to a terminal status.

        Returns the updated record, or None when the call was already terminal
        (a duplicate lifecycle callback) or does not exist.
        """

        if not status.is_terminal:
            raise ValueError(f"{status.value} is not a terminal status")

        ended = ensure_tz(ended_at or datetime.now(timezone.utc))
        try:
            async with self._session.begin():
                call = await calls_repo.get_by_id(self._session, call_id)
                if call is None or CallStatus(call.status).is_terminal:
                    return None
                duration = compute_duration(call.started_at, ended)
                changed = await calls_repo.close_if_active(
                    self._session,
                    call_id=call_id,
                    status=status,
                    ended_at=ended,
                    duration_sec=duration,
                )
                if not changed:
                    return None
                call = await calls_repo.get_by_id(self._session, call_id)
                record = calls_repo.to_record(call)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to update status for call {call_id}") from exc

        logger.info("Call %s ended with status %s after %ss", call_id, status.value, record.duration_sec)
        return record

    async def book_appointment(self, call_id: str, request: BookingRequest) -> Appointment | Conflict:
        """Create the call's appointment exactly once."""

        try:
            async with self._session.begin():
                claimed = await calls_repo.claim_booking(self._session, call_id)
                if not claimed:
                    return Conflict(call_id=call_id, reason="already booked or call not active")
                appointment = await appointments_repo.create_appointment(
                    self._session,
                    patient_name=request.patient_name,
                    patient_phone=request.patient_phone,
                    doctor_id=request.doctor_id,
                    appointment_date=request.appointment_date,
                    appointment_time=request.appointment_time,
                    originating_call_id=call_id,
                )
        except IntegrityError:
            logger.info("Duplicate booking for call %s rejected by unique constraint", call_id)
            return Conflict(call_id=call_id, reason="appointment exists for call")
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to book appointment for call {call_id}") from exc

        logger.info(
            "Booked appointment %s for call %s on %s at %s",
            appointment.id,
            call_id,
            request.appointment_date.isoformat(),
            request.appointment_time,
        )
        return appointment

    async def list_active_doctors(self) -> list[DoctorRow]:
        try:
            async with self._session.begin():
                return await doctors_repo.list_active(self._session)
        except SQLAlchemyError as exc:
            raise StoreError("Failed to load doctor directory") from exc

    async def find_active_doctor(self, name: str, specialization: str) -> DoctorRow | None:
        try:
            async with self._session.begin():
                return await doctors_repo.find_active(self._session, name=name, specialization=specialization)
        except SQLAlchemyError as exc:
            raise StoreError("Failed to look up doctor") from exc

    async def active_started_before(self, cutoff: datetime) -> list[CallRecord]:
        try:
            async with self._session.begin():
                calls = await calls_repo.active_started_before(self._session, ensure_tz(cutoff))
                return [calls_repo.to_record(call) for call in calls]
        except SQLAlchemyError as exc:
            raise StoreError("Failed to scan for stale calls") from exc

    async def latest_active(self) -> CallRecord | None:
        try:
            async with self._session.begin():
                call = await calls_repo.latest_active(self._session)
                if call is None:
                    return None
                turns = await calls_repo.list_turns(self._session, call.id)
                return calls_repo.to_record(call, turns)
        except SQLAlchemyError as exc:
            raise StoreError("Failed to load live call") from exc

    async def find_current_live(self, *, now: datetime | None = None, max_age: timedelta) -> CallRecord | None:
        """Return the most recent active call after reaping stale ones."""

        await reap_stale(self, now=now or datetime.now(timezone.utc), max_age=max_age)
        return await self.latest_active()

    async def list_calls(self, *, page: int, limit: int) -> tuple[list[CallRecord], int]:
        try:
            async with self._session.begin():
                calls, total = await calls_repo.list_recent(self._session, offset=(page - 1) * limit, limit=limit)
                return [calls_repo.to_record(call) for call in calls], total
        except SQLAlchemyError as exc:
            raise StoreError("Failed to list calls") from exc

    async def list_appointments(self) -> list[Appointment]:
        try:
            async with self._session.begin():
                return await appointments_repo.list_appointments(self._session)
        except SQLAlchemyError as exc:
            raise StoreError("Failed to list appointments") from exc


def get_store(session: AsyncSession = Depends(get_session)) -> CallStore:
    """FastAPI dependency wrapping the request's database session."""

    return CallStore(session)
