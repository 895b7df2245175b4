from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from booking_engine.core.errors import ReminderAlreadySent
from booking_engine.models.booking import BookingStatus
from booking_engine.models.reminder import ReminderType
from booking_engine.services.reminder_service import (
    due_bookings,
    record_reminder,
    reminder_window,
    run_reminder_tick,
)

from .helpers import at

T = at(10)  # Monday 10:00 UTC


class RecordingDispatcher:
    def __init__(self) -> None:
        self.events = []

    async def dispatch(self, event) -> None:
        self.events.append(event)


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


def test_reminder_window_is_centered_on_lead():
    lo, hi = reminder_window(ReminderType.TWENTY_FOUR_HOUR, T - timedelta(hours=24))
    assert (lo, hi) == (T - timedelta(minutes=30), T + timedelta(minutes=30))

    lo, hi = reminder_window(ReminderType.ONE_HOUR, T - timedelta(hours=1))
    assert (lo, hi) == (T - timedelta(minutes=10), T + timedelta(minutes=10))


@pytest.mark.parametrize(
    "before, due",
    [
        (timedelta(hours=24, minutes=30), True),
        (timedelta(hours=24), True),
        (timedelta(hours=23, minutes=30), True),
        (timedelta(hours=24, minutes=31), False),
        (timedelta(hours=23, minutes=29), False),
    ],
)
async def test_24h_window_boundaries(session, provider, clock, add_booking, dispatcher, before, due):
    booking_id = (await add_booking(provider.id, T, 60, status=BookingStatus.CONFIRMED)).id
    clock.set(T - before)

    sent = await run_reminder_tick(session, clock, dispatcher)

    expected = [(booking_id, ReminderType.TWENTY_FOUR_HOUR)] if due else []
    assert [(e.booking_id, e.reminder_type) for e in sent] == expected
    assert dispatcher.events == sent


@pytest.mark.parametrize(
    "before, due",
    [
        (timedelta(minutes=70), True),
        (timedelta(minutes=50), True),
        (timedelta(minutes=71), False),
        (timedelta(minutes=49), False),
    ],
)
async def test_1h_window_boundaries(session, provider, clock, add_booking, dispatcher, before, due):
    await add_booking(provider.id, T, 60, status=BookingStatus.REQUESTED)
    clock.set(T - before)

    sent = await run_reminder_tick(session, clock, dispatcher)

    assert [e.reminder_type for e in sent] == ([ReminderType.ONE_HOUR] if due else [])


async def test_event_carries_booking_details(session, provider, clock, add_booking, dispatcher):
    booking_id = (await add_booking(provider.id, T, 60, status=BookingStatus.CONFIRMED)).id
    provider_id = provider.id
    clock.set(T - timedelta(hours=24))

    (event,) = await run_reminder_tick(session, clock, dispatcher)

    assert event.booking_id == booking_id
    assert event.provider_id == provider_id
    assert event.scheduled_at == T


@pytest.mark.parametrize("status", [BookingStatus.CANCELLED, BookingStatus.COMPLETED, BookingStatus.NO_SHOW])
async def test_inactive_bookings_are_never_reminded(session, provider, clock, add_booking, dispatcher, status):
    await add_booking(provider.id, T, 60, status=status)

    for before in (timedelta(hours=24), timedelta(hours=1)):
        clock.set(T - before)
        assert await run_reminder_tick(session, clock, dispatcher) == []
    assert dispatcher.events == []


async def test_each_reminder_type_is_sent_once(session, provider, clock, add_booking, dispatcher):
    await add_booking(provider.id, T, 60, status=BookingStatus.CONFIRMED)

    # ticks every 5 minutes from T-25h to T
    clock.set(T - timedelta(hours=25))
    while clock.now() <= T:
        await run_reminder_tick(session, clock, dispatcher)
        clock.advance(timedelta(minutes=5))

    assert [e.reminder_type for e in dispatcher.events] == [ReminderType.TWENTY_FOUR_HOUR, ReminderType.ONE_HOUR]


async def test_both_types_in_one_tick_when_windows_coincide(session, provider, clock, add_booking, dispatcher):
    await add_booking(provider.id, T, 60, status=BookingStatus.CONFIRMED)
    await add_booking(provider.id, T + timedelta(hours=23), 60, status=BookingStatus.CONFIRMED)
    clock.set(T - timedelta(hours=1))

    sent = await run_reminder_tick(session, clock, dispatcher)

    assert sorted(e.reminder_type.value for e in sent) == ["1h", "24h"]


async def test_record_reminder_rejects_duplicates(session, provider, clock, add_booking):
    booking_id = (await add_booking(provider.id, T, 60)).id
    await record_reminder(session, booking_id, ReminderType.ONE_HOUR, clock.now())
    await session.commit()

    with pytest.raises(ReminderAlreadySent):
        await record_reminder(session, booking_id, ReminderType.ONE_HOUR, clock.now())
    await session.rollback()

    # a different type is a different key
    await record_reminder(session, booking_id, ReminderType.TWENTY_FOUR_HOUR, clock.now())
    await session.commit()


async def test_stale_tick_skips_reminder_claimed_elsewhere(
    session_maker, session, provider, clock, add_booking, dispatcher
):
    await add_booking(provider.id, T, 60, status=BookingStatus.CONFIRMED)
    clock.set(T - timedelta(hours=24))

    # A second worker reads the due list before the first one records anything.
    async with session_maker() as late:
        stale = await due_bookings(late, ReminderType.TWENTY_FOUR_HOUR, clock.now())
        await late.commit()
        assert len(stale) == 1

        first = await run_reminder_tick(session, clock, dispatcher)
        assert len(first) == 1

        async def stale_due(s, reminder_type, now):
            return stale if reminder_type == ReminderType.TWENTY_FOUR_HOUR else []

        with patch("booking_engine.services.reminder_service.due_bookings", AsyncMock(side_effect=stale_due)):
            second = await run_reminder_tick(late, clock, dispatcher)

    assert second == []
    assert len(dispatcher.events) == 1


async def test_failed_dispatch_is_retried_next_tick(session, provider, clock, add_booking):
    booking_id = (await add_booking(provider.id, T, 60, status=BookingStatus.CONFIRMED)).id
    clock.set(T - timedelta(hours=24, minutes=10))
    failing = AsyncMock()
    failing.dispatch.side_effect = [RuntimeError("notification service down"), None]

    assert await run_reminder_tick(session, clock, failing) == []
    assert await due_bookings(session, ReminderType.TWENTY_FOUR_HOUR, clock.now())

    clock.advance(timedelta(minutes=5))
    sent = await run_reminder_tick(session, clock, failing)

    assert [e.booking_id for e in sent] == [booking_id]
    assert failing.dispatch.await_count == 2
    assert await due_bookings(session, ReminderType.TWENTY_FOUR_HOUR, clock.now()) == []


async def test_rescheduled_booking_is_reminded_again(session, provider, monday_morning, clock, add_booking, dispatcher):
    from booking_engine.services.booking_service import reschedule_booking

    booking_id = (await add_booking(provider.id, at(9), 60, status=BookingStatus.CONFIRMED)).id
    clock.set(at(9) - timedelta(hours=24))
    assert len(await run_reminder_tick(session, clock, dispatcher)) == 1

    await reschedule_booking(session, booking_id, at(11), clock=clock)
    clock.set(at(11) - timedelta(hours=24))

    sent = await run_reminder_tick(session, clock, dispatcher)
    assert [(e.booking_id, e.scheduled_at) for e in sent] == [(booking_id, at(11))]
