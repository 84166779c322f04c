"""Tests for stale call reaping."""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from clinic_agent.models.call import CallStatus
from clinic_agent.services import reaper
from clinic_agent.services.reaper import reap_stale, run_periodic_sweep
from clinic_agent.services.store import StoreError

NOW = datetime(2025, 10, 24, 18, 0, tzinfo=timezone.utc)
MAX_AGE = timedelta(hours=1)


@pytest.mark.asyncio
async def test_reap_closes_only_calls_older_than_max_age(store) -> None:
    await store.load_or_create("old", now=NOW - timedelta(hours=2))
    await store.load_or_create("fresh", now=NOW - timedelta(minutes=10))
    await store.load_or_create("done", now=NOW - timedelta(hours=3))
    await store.set_status("done", CallStatus.COMPLETED, ended_at=NOW - timedelta(hours=2, minutes=59))

    closed = await reap_stale(store, now=NOW, max_age=MAX_AGE)

    assert [record.call_id for record in closed] == ["old"]
    old = await store.load("old")
    assert old.status is CallStatus.FAILED
    assert old.ended_at == NOW
    assert old.duration_sec == 7200
    assert (await store.load("fresh")).status is CallStatus.ACTIVE
    assert (await store.load("done")).status is CallStatus.COMPLETED


@pytest.mark.asyncio
async def test_live_call_lookup_reaps_before_answering(store) -> None:
    await store.load_or_create("stale", now=NOW - timedelta(hours=5))

    assert await store.find_current_live(now=NOW, max_age=MAX_AGE) is None
    assert (await store.load("stale")).status is CallStatus.FAILED

    await store.load_or_create("current", now=NOW - timedelta(minutes=1))
    live = await store.find_current_live(now=NOW, max_age=MAX_AGE)
    assert live.call_id == "current"


@pytest.mark.asyncio
async def test_periodic_sweep_runs_until_cancelled(session_factory, monkeypatch) -> None:
    swept = asyncio.Event()
    calls: list[tuple[datetime, timedelta]] = []

    async def fake_reap(store, *, now, max_age):
        calls.append((now, max_age))
        swept.set()
        return []

    monkeypatch.setattr(reaper, "reap_stale", fake_reap)
    task = asyncio.create_task(
        run_periodic_sweep(session_factory, interval_seconds=0, max_age=MAX_AGE, clock=lambda: NOW)
    )
    await asyncio.wait_for(swept.wait(), timeout=1)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert calls[0] == (NOW, MAX_AGE)


@pytest.mark.asyncio
async def test_periodic_sweep_survives_store_errors(session_factory, monkeypatch) -> None:
    attempts = 0
    recovered = asyncio.Event()

    async def flaky_reap(store, *, now, max_age):
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            raise StoreError("database unavailable")
        recovered.set()
        return []

    monkeypatch.setattr(reaper, "reap_stale", flaky_reap)
    task = asyncio.create_task(run_periodic_sweep(session_factory, interval_seconds=0, max_age=MAX_AGE))
    await asyncio.wait_for(recovered.wait(), timeout=1)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert attempts >= 2
