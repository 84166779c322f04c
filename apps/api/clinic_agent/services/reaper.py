"""Close calls whose terminal lifecycle callback never arrived."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..models.call import CallStatus
from ..repositories.calls import CallRecord, ensure_tz

if TYPE_CHECKING:
    from .store import CallStore

logger = logging.getLogger(__name__)


def is_stale(call: CallRecord, *, now: datetime, max_age: timedelta) -> bool:
    """An active call is stale once it has been open longer than ``max_age``."""

    if call.is_terminal:
        return False
    return ensure_tz(now) - call.started_at > max_age


async def reap_stale(store: "CallStore", *, now: datetime, max_age: timedelta) -> list[CallRecord]:
    """Force stale active calls to ``failed``; returns the calls that were closed."""

    closed: list[CallRecord] = []
    for candidate in await store.active_started_before(ensure_tz(now) - max_age):
        if not is_stale(candidate, now=now, max_age=max_age):
            continue
        record = await store.set_status(candidate.call_id, CallStatus.FAILED, ended_at=now)
        if record is None:
            # Its terminal callback landed between the scan and the update.
            continue
        logger.warning(
            "Reaped stale call %s (started %s) as failed",
            record.call_id,
            record.started_at.isoformat(),
        )
        closed.append(record)
    return closed


async def run_periodic_sweep(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    interval_seconds: int,
    max_age: timedelta,
    clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
) -> None:
    """Sweep for stale calls every ``interval_seconds`` until cancelled."""

    from .store import CallStore, StoreError

    while True:
        await asyncio.sleep(interval_seconds)
        try:
            async with session_factory() as session:
                await reap_stale(CallStore(session), now=clock(), max_age=max_age)
        except StoreError:
            logger.exception("Stale call sweep failed; retrying in %ss", interval_seconds)
