"""Call conversation orchestrator.

Each webhook invocation is handled from scratch: the session is reloaded,
``decide`` picks what this event means for the call, and the chosen step is
carried out against the store and the completion gateway. The returned
``VoiceReply`` is always something the caller can hear, even when storage or
the completion provider fails.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone, tzinfo
from typing import Callable

from ..models.call import TERMINAL_STATUSES, CallStatus, Speaker
from ..repositories.calls import CallRecord, TurnRecord
from ..repositories.doctors import DoctorRow
from .availability import describe_slots, is_available, weekday_name
from .directives import BookingDirective, EndCallDirective, parse_directive
from .llm import CompletionGateway, GatewayError
from .prompts import build_prompt
from .store import BookingRequest, CallStore, Conflict, StoreError
from .voice import VoiceReply

logger = logging.getLogger(__name__)

GREETING = "Hello! Welcome to our AI medical assistant. How can I help you today?"
REPROMPT = "I didn't catch that. Could you please repeat?"
FALLBACK_REPLY = "I'm sorry, I'm having trouble answering right now. Could you please say that again?"
ANYTHING_ELSE = "Is there anything else I can help you with?"
STORE_FAILURE_REPLY = "I apologize, an error occurred. Please try again later. Goodbye."


class Step(str, enum.Enum):
    GREET = "greet"
    CLOSE = "close"
    SKIP = "skip"
    HANG_UP = "hang_up"
    PROCESS_TURN = "process_turn"
    REPROMPT = "reprompt"


class BookingPlan(str, enum.Enum):
    ALREADY_BOOKED = "already_booked"
    DOCTOR_NOT_FOUND = "doctor_not_found"
    UNAVAILABLE = "unavailable"
    COMMIT = "commit"


@dataclass(frozen=True, slots=True)
class CallEvent:
    """One inbound provider callback."""

    call_id: str
    speech: str | None = None
    call_status: str | None = None
    from_number: str = ""
    to_number: str = ""

    @property
    def utterance(self) -> str | None:
        text = (self.speech or "").strip()
        return text or None

    @property
    def terminal_status(self) -> CallStatus | None:
        """The lifecycle status if it ends the call; ringing/in-progress are ignored."""

        value = (self.call_status or "").strip().lower()
        for status in TERMINAL_STATUSES:
            if status.value == value:
                return status
        return None


def decide(call: CallRecord | None, event: CallEvent) -> Step:
    """Pure transition over (session existence, event kind, session status)."""

    ends_call = event.terminal_status is not None
    if call is None:
        return Step.CLOSE if ends_call else Step.GREET
    if call.is_terminal:
        return Step.SKIP if ends_call else Step.HANG_UP
    if ends_call:
        return Step.CLOSE
    if event.utterance:
        return Step.PROCESS_TURN
    return Step.REPROMPT


def plan_booking(directive: BookingDirective, doctor: DoctorRow | None, *, already_booked: bool) -> BookingPlan:
    """Decide what a booking directive should do, before touching storage."""

    if already_booked:
        return BookingPlan.ALREADY_BOOKED
    if doctor is None:
        return BookingPlan.DOCTOR_NOT_FOUND
    if not is_available(doctor.slots, directive.date, directive.time):
        return BookingPlan.UNAVAILABLE
    return BookingPlan.COMMIT


def spoken_date(value: date) -> str:
    return f"{weekday_name(value)}, {value.strftime('%B')} {value.day}, {value.year}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CallOrchestrator:
    """Drives one webhook invocation for a call."""

    def __init__(
        self,
        store: CallStore,
        gateway: CompletionGateway,
        *,
        clinic_tz: tzinfo = timezone.utc,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._clinic_tz = clinic_tz
        self._clock = clock

    async def handle(self, event: CallEvent) -> VoiceReply:
        try:
            return await self._dispatch(event)
        except StoreError:
            logger.exception("Storage failure while handling call %s; hanging up", event.call_id)
            return VoiceReply.goodbye(STORE_FAILURE_REPLY)

    async def _dispatch(self, event: CallEvent) -> VoiceReply:
        now = self._clock()
        call, created = await self._store.load_or_create(
            event.call_id,
            from_number=event.from_number,
            to_number=event.to_number,
            now=now,
        )
        step = decide(None if created else call, event)
        logger.debug("Call %s: status=%s step=%s", event.call_id, call.status.value, step.value)

        if step is Step.GREET:
            return VoiceReply.prompt(GREETING)
        if step is Step.CLOSE:
            await self._store.set_status(event.call_id, event.terminal_status, ended_at=now)
            return VoiceReply.ack()
        if step is Step.SKIP:
            logger.info("Ignoring duplicate %s callback for ended call %s", event.call_status, event.call_id)
            return VoiceReply.ack()
        if step is Step.HANG_UP:
            return VoiceReply.goodbye()
        if step is Step.REPROMPT:
            return VoiceReply.prompt(REPROMPT)
        return await self._process_turn(call, event.utterance or "", now)

    async def _process_turn(self, call: CallRecord, utterance: str, now: datetime) -> VoiceReply:
        if not await self._store.append_turn(call.call_id, Speaker.CALLER, utterance, now=now):
            # The call ended while this turn was in flight.
            return VoiceReply.goodbye()
        logger.info("Caller said on %s: %s", call.call_id, utterance)

        doctors = [] if call.appointment_booked else await self._store.list_active_doctors()
        prompt = build_prompt(
            turns=(*call.transcript, TurnRecord(speaker=Speaker.CALLER, message=utterance, timestamp=now)),
            doctors=doctors,
            today=now.astimezone(self._clinic_tz).date(),
            appointment_booked=call.appointment_booked,
        )

        try:
            completion = await self._gateway.complete(prompt)
        except GatewayError as exc:
            logger.warning("Completion failed for call %s: %s", call.call_id, exc)
            completion = FALLBACK_REPLY

        await self._store.append_turn(call.call_id, Speaker.ASSISTANT, completion, now=self._clock())

        directive = parse_directive(completion)
        if isinstance(directive, BookingDirective):
            return await self._book(call, directive)
        if isinstance(directive, EndCallDirective):
            logger.info("Assistant ended call %s", call.call_id)
            return VoiceReply.goodbye(directive.closing_message)
        return VoiceReply.prompt(directive.text)

    async def _book(self, call: CallRecord, directive: BookingDirective) -> VoiceReply:
        doctor = None
        if not call.appointment_booked:
            doctor = await self._store.find_active_doctor(directive.doctor_name, directive.specialization)
        plan = plan_booking(directive, doctor, already_booked=call.appointment_booked)
        logger.info("Booking directive on call %s -> %s", call.call_id, plan.value)

        if plan is BookingPlan.ALREADY_BOOKED:
            return VoiceReply.prompt(ANYTHING_ELSE)
        if plan is BookingPlan.DOCTOR_NOT_FOUND:
            return VoiceReply.prompt(
                f"I'm sorry, I couldn't find a doctor named {directive.doctor_name} with specialization "
                f"{directive.specialization}. Please try again or ask for a different doctor."
            )
        if plan is BookingPlan.UNAVAILABLE:
            return VoiceReply.prompt(
                f"I'm sorry, {doctor.name} is not available on {weekday_name(directive.date)} at {directive.time}. "
                f"Their hours are {describe_slots(doctor.slots)}. What other time would work for you?"
            )

        result = await self._store.book_appointment(
            call.call_id,
            BookingRequest(
                doctor_id=doctor.doctor_id,
                patient_name=directive.patient_name,
                patient_phone=directive.patient_phone,
                appointment_date=directive.date,
                appointment_time=directive.time,
            ),
        )
        if isinstance(result, Conflict):
            logger.info("Booking for call %s already recorded (%s)", call.call_id, result.reason)
            return VoiceReply.prompt(ANYTHING_ELSE)

        return VoiceReply.prompt(
            f"Okay, I have booked an appointment for {directive.patient_name} with {doctor.name}, "
            f"a {doctor.specialization}, on {spoken_date(directive.date)} at {directive.time}.",
            ANYTHING_ELSE,
        )
