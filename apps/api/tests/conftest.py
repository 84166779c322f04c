"""Shared fixtures: an in-memory SQLite database seeded with two doctors."""
from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("GEMINI_API_KEY", "")

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from clinic_agent.db.session import create_schema
from clinic_agent.models.doctor import Doctor, DoctorSlot
from clinic_agent.services.llm import GatewayError
from clinic_agent.services.store import CallStore

DOCTORS = [
    (
        "doc-aisha-khan",
        "Dr. Aisha Khan",
        "Pediatrician",
        [("Monday", "09:00", "17:00"), ("Wednesday", "09:00", "17:00"), ("Friday", "09:00", "15:00")],
    ),
    (
        "doc-bilal-ahmed",
        "Dr. Bilal Ahmed",
        "Cardiologist",
        [("Tuesday", "10:00", "18:00"), ("Thursday", "10:00", "18:00"), ("Saturday", "09:00", "13:00")],
    ),
]


class ScriptedGateway:
    """Completion gateway that replays canned responses in order."""

    def __init__(self, *replies: str | Exception) -> None:
        self._replies = list(replies)
        self.prompts: list[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self._replies:
            raise GatewayError("no scripted reply left")
        reply = self._replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest_asyncio.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    async with factory() as session:
        async with session.begin():
            for doctor_id, name, specialization, slots in DOCTORS:
                session.add(Doctor(id=doctor_id, name=name, specialization=specialization, is_active=True))
                for day, start_time, end_time in slots:
                    session.add(DoctorSlot(doctor_id=doctor_id, day=day, start_time=start_time, end_time=end_time))
    return factory


@pytest_asyncio.fixture
async def session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(session: AsyncSession) -> CallStore:
    return CallStore(session)
