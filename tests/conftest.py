from __future__ import annotations

import os

# Settings are read at import time; tests never touch a real database or start the reminder loop.
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("REMINDERS_ENABLED", "false")
os.environ.setdefault("ENV", "test")

from datetime import UTC, datetime, timedelta  # noqa: E402

import pytest  # noqa: E402

from booking_engine.core.clock import FixedClock, to_naive_utc  # noqa: E402
from booking_engine.core.db import build_engine, build_session_maker, init_db  # noqa: E402
from booking_engine.models.availability import WeeklyRuleCreate  # noqa: E402
from booking_engine.models.booking import Booking, BookingStatus  # noqa: E402
from booking_engine.models.provider import ProviderCreate  # noqa: E402
from booking_engine.services.availability_service import add_weekly_rule  # noqa: E402
from booking_engine.services.booking_service import provider_locks  # noqa: E402
from booking_engine.services.provider_service import create_provider  # noqa: E402

from .helpers import MONDAY_DOW, at  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_provider_locks():
    provider_locks.clear()
    yield
    provider_locks.clear()


@pytest.fixture
async def engine(tmp_path):
    eng = build_engine(f"sqlite:///{tmp_path / 'booking_engine.db'}")
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as s:
        yield s


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2025, 3, 1, 12, 0, tzinfo=UTC))


@pytest.fixture
async def provider(session):
    p = await create_provider(session, ProviderCreate(name="Dr. Rivera", email="rivera@example.com"))
    await session.commit()
    return p


@pytest.fixture
async def monday_morning(session, provider):
    """Weekly rule: Mondays 09:00-12:00."""
    rule = await add_weekly_rule(
        session,
        provider.id,
        WeeklyRuleCreate(day_of_week=MONDAY_DOW, start_time=at(9).time(), end_time=at(12).time()),
    )
    await session.commit()
    return rule


@pytest.fixture
def add_booking(session):
    """Insert a booking row directly, bypassing the ledger's checks."""

    async def _add(
        provider_id: int,
        start: datetime,
        minutes: int = 60,
        status: BookingStatus = BookingStatus.REQUESTED,
        subject_ids: list[int] | None = None,
    ) -> Booking:
        booking = Booking(
            provider_id=provider_id,
            subject_ids=subject_ids or [100],
            scheduled_at=to_naive_utc(start),
            ends_at=to_naive_utc(start + timedelta(minutes=minutes)),
            duration_minutes=minutes,
            status=status,
        )
        session.add(booking)
        await session.commit()
        return booking

    return _add
