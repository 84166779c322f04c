"""Render orchestrator replies as TwiML documents."""
from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote

from twilio.twiml.voice_response import VoiceResponse

TWIML_MEDIA_TYPE = "text/xml"


@dataclass(frozen=True, slots=True)
class VoiceReply:
    """What the provider should do next: speak, then gather or hang up."""

    say: tuple[str, ...] = ()
    gather: bool = False
    hangup: bool = False

    @classmethod
    def ack(cls) -> "VoiceReply":
        return cls()

    @classmethod
    def prompt(cls, *lines: str) -> "VoiceReply":
        return cls(say=tuple(line for line in lines if line), gather=True)

    @classmethod
    def goodbye(cls, *lines: str) -> "VoiceReply":
        return cls(say=tuple(line for line in lines if line), hangup=True)


def gather_action_url(webhook_path: str, call_id: str) -> str:
    return f"{webhook_path}?callSid={quote(call_id, safe='')}"


def render_twiml(reply: VoiceReply, *, call_id: str, webhook_path: str, gather_timeout: int) -> str:
    """Return the TwiML string for a reply."""

    response = VoiceResponse()
    for line in reply.say:
        response.say(line)
    if reply.hangup:
        response.hangup()
    elif reply.gather:
        response.gather(
            input="speech",
            timeout=gather_timeout,
            action=gather_action_url(webhook_path, call_id),
            method="POST",
            action_on_empty_result=True,
        )
    return str(response)
