"""Twilio voice webhook."""
from __future__ import annotations

import logging
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, Form, HTTPException, Query, status
from fastapi.responses import Response

from ..core.config import settings
from ..services.conversation import STORE_FAILURE_REPLY, CallEvent, CallOrchestrator
from ..services.llm import CompletionGateway, get_gateway
from ..services.store import CallStore, get_store
from ..services.voice import TWIML_MEDIA_TYPE, VoiceReply, render_twiml

logger = logging.getLogger(__name__)

router = APIRouter()


def get_orchestrator(
    store: CallStore = Depends(get_store),
    gateway: CompletionGateway = Depends(get_gateway),
) -> CallOrchestrator:
    """Build the per-request orchestrator around the shared gateway."""

    return CallOrchestrator(store, gateway, clinic_tz=ZoneInfo(settings.clinic_timezone))


@router.post("/webhook", response_class=Response)
async def voice_webhook(
    call_sid: str | None = Form(default=None, alias="CallSid"),
    speech_result: str | None = Form(default=None, alias="SpeechResult"),
    call_status: str | None = Form(default=None, alias="CallStatus"),
    from_number: str | None = Form(default=None, alias="From"),
    to_number: str | None = Form(default=None, alias="To"),
    query_call_sid: str | None = Query(default=None, alias="callSid"),
    orchestrator: CallOrchestrator = Depends(get_orchestrator),
) -> Response:
    """Handle one conversational turn or lifecycle callback and answer with TwiML."""

    call_id = (call_sid or query_call_sid or "").strip()
    if not call_id:
        logger.error("CallSid is missing from Twilio request")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="CallSid missing")

    event = CallEvent(
        call_id=call_id,
        speech=speech_result,
        call_status=call_status,
        from_number=from_number or "",
        to_number=to_number or "",
    )

    try:
        reply = await orchestrator.handle(event)
    except Exception:  # noqa: BLE001 - the provider must always get a document back
        logger.exception("Unhandled error processing webhook for call %s", call_id)
        reply = VoiceReply.goodbye(STORE_FAILURE_REPLY)

    twiml = render_twiml(
        reply,
        call_id=call_id,
        webhook_path=settings.webhook_path,
        gather_timeout=settings.gather_timeout_seconds,
    )
    return Response(content=twiml, media_type=TWIML_MEDIA_TYPE)
