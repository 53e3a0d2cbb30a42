"""Integration test fixtures backed by a real SQL engine.

Every test gets a fresh in-memory SQLite database (through aiosqlite)
with the full schema created from ``Base.metadata``. A controllable clock
lets tests move time forward without sleeping.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool
from ulid import ULID

from infrastructure.database.models import Base
from infrastructure.outbox.models import OutboxEventModel  # noqa: F401
from infrastructure.outbox.publisher import OutboxEventPublisher
from infrastructure.settings import OutboxSettings
from shared_kernel.outbox.value_objects import EventEnvelope
from students.infrastructure.models import StudentModel  # noqa: F401

START = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class FakeClock:
    """A clock that only moves when told to."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory database shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def async_session(
    sessionmaker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with sessionmaker() as session:
        yield session


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def outbox_settings() -> OutboxSettings:
    """Settings with a long timer so only explicit ticks run."""
    return OutboxSettings(
        max_retries=3,
        base_backoff_ms=1000,
        max_backoff_ms=4000,
        batch_size=10,
        processing_interval_ms=60_000,
        enable_logging=False,
    )


@pytest_asyncio.fixture
async def publisher(
    sessionmaker: async_sessionmaker[AsyncSession],
    outbox_settings: OutboxSettings,
    clock: FakeClock,
) -> AsyncGenerator[OutboxEventPublisher, None]:
    publisher = OutboxEventPublisher(sessionmaker, outbox_settings, clock=clock)
    yield publisher
    await publisher.stop()


@pytest.fixture
def make_envelope(clock: FakeClock) -> Callable[..., EventEnvelope]:
    """Builder for envelopes stamped with the fake clock."""

    def build(event_type: str = "student.enrolled", **overrides) -> EventEnvelope:
        values = {
            "event_id": str(ULID()),
            "event_type": event_type,
            "aggregate_id": str(ULID()),
            "aggregate_type": "Student",
            "tenant_id": "tenant-a",
            "occurred_on": clock.now,
            "version": 1,
            "event_data": {"student_number": "STU000001"},
        }
        values.update(overrides)
        return EventEnvelope(**values)

    return build
