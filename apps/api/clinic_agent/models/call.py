"""Call session and transcript models."""
from __future__ import annotations

from datetime import datetime, timezone
import enum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, enum_values

if TYPE_CHECKING:
    from .appointment import Appointment


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CallStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    BUSY = "busy"
    FAILED = "failed"
    NO_ANSWER = "no-answer"

    @property
    def is_terminal(self) -> bool:
        return self is not CallStatus.ACTIVE


TERMINAL_STATUSES = frozenset(status for status in CallStatus if status.is_terminal)


class Speaker(str, enum.Enum):
    CALLER = "caller"
    ASSISTANT = "assistant"


class Call(Base):
    """One telephone call, keyed by the provider's call identifier."""

    __tablename__ = "calls"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    from_number: Mapped[str] = mapped_column(String, nullable=False, default="")
    to_number: Mapped[str] = mapped_column(String, nullable=False, default="")
    status: Mapped[CallStatus] = mapped_column(
        Enum(CallStatus, name="call_status", values_callable=enum_values),
        default=CallStatus.ACTIVE,
        nullable=False,
        index=True,
    )
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    duration_sec: Mapped[int | None] = mapped_column(Integer)
    appointment_booked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    turns: Mapped[list["CallTurn"]] = relationship(
        "CallTurn", back_populates="call", order_by="CallTurn.id", cascade="all, delete-orphan"
    )
    appointment: Mapped["Appointment | None"] = relationship("Appointment", back_populates="call")


class CallTurn(Base):
    """A single transcript line; row order is conversation order."""

    __tablename__ = "call_turns"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    call_id: Mapped[str] = mapped_column(ForeignKey("calls.id", ondelete="CASCADE"), nullable=False, index=True)
    speaker: Mapped[Speaker] = mapped_column(
        Enum(Speaker, name="call_speaker", values_callable=enum_values), nullable=False
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    call: Mapped["Call"] = relationship("Call", back_populates="turns")
