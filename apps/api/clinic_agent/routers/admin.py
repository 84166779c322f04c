"""Dashboard read endpoints for calls, doctors, and appointments."""
from __future__ import annotations

import math
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..core.config import settings
from ..schemas import admin as admin_schema
from ..services.store import CallStore, get_store

router = APIRouter()


@router.get("/calls", response_model=admin_schema.CallListResponse)
async def list_calls(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    store: CallStore = Depends(get_store),
) -> admin_schema.CallListResponse:
    """Return paginated call summaries, newest first."""

    records, total = await store.list_calls(page=page, limit=limit)
    return admin_schema.CallListResponse(
        items=[admin_schema.CallSummary.from_record(record) for record in records],
        pagination=admin_schema.Pagination(
            page=page, limit=limit, total=total, pages=math.ceil(total / limit) if total else 0
        ),
    )


@router.get("/calls/live", response_model=admin_schema.CallDetail | None)
async def live_call(store: CallStore = Depends(get_store)) -> admin_schema.CallDetail | None:
    """Return the most recent active call, closing any that went stale."""

    record = await store.find_current_live(max_age=timedelta(seconds=settings.stale_session_after_seconds))
    if record is None:
        return None
    return admin_schema.CallDetail.from_record(record)


@router.get("/calls/{call_id}", response_model=admin_schema.CallDetail)
async def get_call(call_id: str, store: CallStore = Depends(get_store)) -> admin_schema.CallDetail:
    """Return call transcript and outcome."""

    record = await store.load(call_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Call not found")
    return admin_schema.CallDetail.from_record(record)


@router.get("/doctors", response_model=list[admin_schema.DoctorOut])
async def list_doctors(store: CallStore = Depends(get_store)) -> list[admin_schema.DoctorOut]:
    """Return active doctors and their weekly hours."""

    return [admin_schema.DoctorOut.from_row(row) for row in await store.list_active_doctors()]


@router.get("/appointments", response_model=list[admin_schema.AppointmentOut])
async def list_appointments(store: CallStore = Depends(get_store)) -> list[admin_schema.AppointmentOut]:
    """Return booked appointments, latest first."""

    return [admin_schema.AppointmentOut.model_validate(row) for row in await store.list_appointments()]
