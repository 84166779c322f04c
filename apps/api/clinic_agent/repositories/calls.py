"""Call repository helpers for session tracking."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.call import Call, CallStatus, CallTurn, Speaker


@dataclass(frozen=True, slots=True)
class TurnRecord:
    """Transcript line detached from the ORM session."""

    speaker: Speaker
    message: str
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class CallRecord:
    """Snapshot of a call session and its transcript."""

    call_id: str
    from_number: str
    to_number: str
    status: CallStatus
    started_at: datetime
    ended_at: datetime | None
    duration_sec: int | None
    appointment_booked: bool
    transcript: tuple[TurnRecord, ...] = ()

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


def ensure_tz(value: datetime) -> datetime:
    """Ensure the provided datetime is timezone-aware in UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


async def get_by_id(session: AsyncSession, call_id: str) -> Call | None:
    """Return a call record by identifier."""

    return await session.get(Call, call_id, populate_existing=True)


async def create_call(
    session: AsyncSession,
    *,
    call_id: str,
    from_number: str,
    to_number: str,
    started_at: datetime,
) -> Call:
    """Insert a new active call; raises IntegrityError if the id exists."""

    call = Call(
        id=call_id,
        from_number=from_number,
        to_number=to_number,
        status=CallStatus.ACTIVE,
        started_at=started_at,
        appointment_booked=False,
    )
    session.add(call)
    await session.flush()
    return call


async def lock_status(session: AsyncSession, call_id: str) -> CallStatus | None:
    """Read the call status while holding the row lock for this transaction."""

    stmt = select(Call.status).where(Call.id == call_id).with_for_update()
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def add_turn(
    session: AsyncSession,
    *,
    call_id: str,
    speaker: Speaker,
    message: str,
    created_at: datetime,
) -> None:
    """Insert one transcript row; existing rows are never rewritten."""

    session.add(CallTurn(call_id=call_id, speaker=speaker, message=message, created_at=created_at))
    await session.flush()


async def list_turns(session: AsyncSession, call_id: str) -> list[CallTurn]:
    """Return the transcript in conversation order."""

    stmt = select(CallTurn).where(CallTurn.call_id == call_id).order_by(CallTurn.id.asc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def close_if_active(
    session: AsyncSession,
    *,
    call_id: str,
    status: CallStatus,
    ended_at: datetime,
    duration_sec: int,
) -> bool:
    """Compare-and-set the terminal status. Returns False if already terminal."""

    stmt = (
        update(Call)
        .where(Call.id == call_id, Call.status == CallStatus.ACTIVE)
        .values(status=status, ended_at=ended_at, duration_sec=duration_sec)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount == 1


async def claim_booking(session: AsyncSession, call_id: str) -> bool:
    """Flip appointment_booked false->true on an active call. Returns False if lost."""

    stmt = (
        update(Call)
        .where(
            Call.id == call_id,
            Call.status == CallStatus.ACTIVE,
            Call.appointment_booked.is_(False),
        )
        .values(appointment_booked=True)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount == 1


async def latest_active(session: AsyncSession) -> Call | None:
    """Return the most recently started active call."""

    stmt = (
        select(Call)
        .where(Call.status == CallStatus.ACTIVE)
        .order_by(Call.started_at.desc())
        .limit(1)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def active_started_before(session: AsyncSession, cutoff: datetime) -> list[Call]:
    """Return active calls that started before the cutoff."""

    stmt = (
        select(Call)
        .where(Call.status == CallStatus.ACTIVE, Call.started_at < cutoff)
        .order_by(Call.started_at.asc())
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_recent(session: AsyncSession, *, offset: int, limit: int) -> tuple[list[Call], int]:
    """Return a page of calls, newest first, with the total count."""

    stmt = (
        select(Call)
        .order_by(Call.started_at.desc())
        .offset(offset)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    rows = list((await session.execute(stmt)).scalars().all())
    total = (await session.execute(select(func.count(Call.id)))).scalar_one()
    return rows, total


def to_record(call: Call, turns: list[CallTurn] | None = None) -> CallRecord:
    """Detach an ORM call (and optional transcript) into a CallRecord."""

    return CallRecord(
        call_id=call.id,
        from_number=call.from_number,
        to_number=call.to_number,
        status=CallStatus(call.status),
        started_at=ensure_tz(call.started_at),
        ended_at=ensure_tz(call.ended_at) if call.ended_at else None,
        duration_sec=call.duration_sec,
        appointment_booked=bool(call.appointment_booked),
        transcript=tuple(
            TurnRecord(speaker=Speaker(turn.speaker), message=turn.message, timestamp=ensure_tz(turn.created_at))
            for turn in turns or ()
        ),
    )
