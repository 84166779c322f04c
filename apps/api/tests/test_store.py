"""Tests for the call store against an in-memory database."""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from clinic_agent.models.call import Call, CallStatus, Speaker
from clinic_agent.repositories import appointments as appointments_repo
from clinic_agent.repositories import calls as calls_repo
from clinic_agent.services.store import BookingRequest, CallStore, Conflict, StoreError, compute_duration

T0 = datetime(2025, 10, 24, 15, 0, tzinfo=timezone.utc)

REQUEST = BookingRequest(
    doctor_id="doc-aisha-khan",
    patient_name="Alice Smith",
    patient_phone="555-1000",
    appointment_date=date(2025, 10, 27),
    appointment_time="09:30",
)


def test_compute_duration_floors_and_never_goes_negative() -> None:
    assert compute_duration(T0, T0 + timedelta(seconds=12.9)) == 12
    assert compute_duration(T0, T0 - timedelta(seconds=5)) == 0
    assert compute_duration(T0.replace(tzinfo=None), T0 + timedelta(seconds=3)) == 3


@pytest.mark.asyncio
async def test_load_or_create_creates_once(store: CallStore) -> None:
    first, created = await store.load_or_create("CA1", from_number="+1", to_number="+2", now=T0)
    second, created_again = await store.load_or_create("CA1", from_number="+9", to_number="+9", now=T0)

    assert created and not created_again
    assert first.status is CallStatus.ACTIVE
    assert second.from_number == "+1"
    assert second.started_at == T0


@pytest.mark.asyncio
async def test_transcript_keeps_append_order(store: CallStore) -> None:
    await store.load_or_create("CA1", now=T0)

    assert await store.append_turn("CA1", Speaker.CALLER, "Hi", now=T0)
    assert await store.append_turn("CA1", Speaker.ASSISTANT, "Hello!", now=T0)
    assert await store.append_turn("CA1", Speaker.CALLER, "Bye", now=T0)

    call = await store.load("CA1")
    assert [turn.message for turn in call.transcript] == ["Hi", "Hello!", "Bye"]
    assert call.transcript[0].timestamp == T0


@pytest.mark.asyncio
async def test_append_after_terminal_or_unknown_is_dropped(store: CallStore) -> None:
    await store.load_or_create("CA1", now=T0)
    await store.set_status("CA1", CallStatus.COMPLETED, ended_at=T0 + timedelta(seconds=4))

    assert not await store.append_turn("CA1", Speaker.CALLER, "late")
    assert not await store.append_turn("missing", Speaker.CALLER, "who?")
    assert (await store.load("CA1")).transcript == ()


@pytest.mark.asyncio
async def test_set_status_is_first_writer_wins(store: CallStore) -> None:
    await store.load_or_create("CA1", now=T0)

    closed = await store.set_status("CA1", CallStatus.BUSY, ended_at=T0 + timedelta(seconds=7))
    again = await store.set_status("CA1", CallStatus.COMPLETED, ended_at=T0 + timedelta(seconds=70))

    assert closed.status is CallStatus.BUSY
    assert closed.duration_sec == 7
    assert again is None
    assert (await store.load("CA1")).status is CallStatus.BUSY
    assert await store.set_status("missing", CallStatus.FAILED) is None


@pytest.mark.asyncio
async def test_set_status_rejects_active(store: CallStore) -> None:
    await store.load_or_create("CA1", now=T0)

    with pytest.raises(ValueError):
        await store.set_status("CA1", CallStatus.ACTIVE)


@pytest.mark.asyncio
async def test_booking_happens_exactly_once(store: CallStore) -> None:
    await store.load_or_create("CA1", now=T0)

    appointment = await store.book_appointment("CA1", REQUEST)
    duplicate = await store.book_appointment("CA1", REQUEST)

    assert appointment.originating_call_id == "CA1"
    assert isinstance(duplicate, Conflict)
    assert (await store.load("CA1")).appointment_booked
    assert len(await store.list_appointments()) == 1


@pytest.mark.asyncio
async def test_unique_call_constraint_backs_the_booking_flag(store: CallStore, session) -> None:
    await store.load_or_create("CA1", now=T0)
    await store.book_appointment("CA1", REQUEST)
    async with session.begin():
        await session.execute(update(Call).where(Call.id == "CA1").values(appointment_booked=False))

    result = await store.book_appointment("CA1", REQUEST)

    assert result == Conflict(call_id="CA1", reason="appointment exists for call")
    async with session.begin():
        assert (await appointments_repo.get_by_call(session, "CA1")) is not None
        assert not (await calls_repo.get_by_id(session, "CA1")).appointment_booked
    assert len(await store.list_appointments()) == 1


@pytest.mark.asyncio
async def test_booking_rejected_once_call_ended(store: CallStore) -> None:
    await store.load_or_create("CA1", now=T0)
    await store.set_status("CA1", CallStatus.COMPLETED, ended_at=T0)

    result = await store.book_appointment("CA1", REQUEST)

    assert isinstance(result, Conflict)
    assert await store.list_appointments() == []


@pytest.mark.asyncio
async def test_doctor_lookup_is_exact_and_active_only(store: CallStore, session) -> None:
    doctors = await store.list_active_doctors()
    assert [doctor.name for doctor in doctors] == ["Dr. Aisha Khan", "Dr. Bilal Ahmed"]
    assert [slot.day for slot in doctors[0].slots] == ["Monday", "Wednesday", "Friday"]

    assert (await store.find_active_doctor("Dr. Bilal Ahmed", "Cardiologist")).doctor_id == "doc-bilal-ahmed"
    assert await store.find_active_doctor("Dr. Bilal Ahmed", "Pediatrician") is None


@pytest.mark.asyncio
async def test_list_calls_pages_newest_first(store: CallStore) -> None:
    for index in range(3):
        await store.load_or_create(f"CA{index}", now=T0 + timedelta(minutes=index))

    records, total = await store.list_calls(page=1, limit=2)
    tail, _ = await store.list_calls(page=2, limit=2)

    assert total == 3
    assert [record.call_id for record in records] == ["CA2", "CA1"]
    assert [record.call_id for record in tail] == ["CA0"]


@pytest.mark.asyncio
async def test_database_errors_surface_as_store_error(store: CallStore, monkeypatch) -> None:
    async def broken(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    monkeypatch.setattr(calls_repo, "get_by_id", broken)

    with pytest.raises(StoreError):
        await store.load("CA1")
