"""
Reminder scheduler.

Each tick looks for active bookings whose start falls inside a reminder type's
tolerance window and that have no ReminderRecord of that type yet. The record
insert (ON CONFLICT DO NOTHING on booking_id + reminder_type) is the claim: a
zero-row insert means another tick already owns that reminder. A claimed
reminder is dispatched and then committed; a dispatch failure rolls the claim
back so the next tick retries it.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.clock import Clock, to_naive_utc
from booking_engine.core.db import dialect_insert
from booking_engine.core.errors import ReminderAlreadySent
from booking_engine.models.booking import ACTIVE_STATUSES, Booking
from booking_engine.models.reminder import REMINDER_WINDOWS, ReminderRecord, ReminderType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReminderDue:
    booking_id: int
    reminder_type: ReminderType
    provider_id: int
    scheduled_at: datetime


class ReminderDispatcher(Protocol):
    async def dispatch(self, event: ReminderDue) -> None: ...


class LoggingReminderDispatcher:
    """Default dispatcher: delivery belongs to the notification service, so just log."""

    async def dispatch(self, event: ReminderDue) -> None:
        logger.info(
            "Reminder due: booking=%d type=%s provider=%d scheduled_at=%s",
            event.booking_id,
            event.reminder_type.value,
            event.provider_id,
            event.scheduled_at.isoformat(),
        )


def reminder_window(reminder_type: ReminderType, now: datetime) -> tuple[datetime, datetime]:
    """Inclusive [now + lead - tolerance, now + lead + tolerance] for scheduled_at."""
    lead, tolerance = REMINDER_WINDOWS[reminder_type]
    target = now + lead
    return target - tolerance, target + tolerance


async def due_bookings(session: AsyncSession, reminder_type: ReminderType, now: datetime) -> list[Booking]:
    lo, hi = reminder_window(reminder_type, now)
    already_sent = exists().where(
        ReminderRecord.booking_id == Booking.id,
        ReminderRecord.reminder_type == reminder_type,
    )
    result = await session.execute(
        select(Booking)
        .where(
            Booking.status.in_(list(ACTIVE_STATUSES)),
            Booking.scheduled_at >= to_naive_utc(lo),
            Booking.scheduled_at <= to_naive_utc(hi),
            ~already_sent,
        )
        .order_by(Booking.scheduled_at)
    )
    return list(result.scalars().all())


async def record_reminder(
    session: AsyncSession, booking_id: int, reminder_type: ReminderType, sent_at: datetime
) -> None:
    """Insert the (booking, type) record; raises ReminderAlreadySent if the store already has it."""
    stmt = (
        dialect_insert(session, ReminderRecord.__table__)
        .values(booking_id=booking_id, reminder_type=reminder_type, sent_at=to_naive_utc(sent_at))
        .on_conflict_do_nothing(index_elements=["booking_id", "reminder_type"])
    )
    result = await session.execute(stmt)
    if not result.rowcount:
        raise ReminderAlreadySent(f"{reminder_type.value} reminder for booking {booking_id} already recorded")


async def run_reminder_tick(
    session: AsyncSession, clock: Clock, dispatcher: ReminderDispatcher
) -> list[ReminderDue]:
    """One pass over all reminder types. Returns the reminders dispatched in this tick."""
    now = clock.now()
    sent: list[ReminderDue] = []
    for reminder_type in ReminderType:
        # Snapshot plain values: rollbacks below expire ORM instances
        due = [
            ReminderDue(
                booking_id=b.id,
                reminder_type=reminder_type,
                provider_id=b.provider_id,
                scheduled_at=b.interval.start,
            )
            for b in await due_bookings(session, reminder_type, now)
        ]
        await session.commit()
        dispatched = 0
        for event in due:
            try:
                await record_reminder(session, event.booking_id, reminder_type, now)
            except ReminderAlreadySent as e:
                await session.rollback()
                logger.debug("Skipping reminder: %s", e.detail)
                continue
            try:
                await dispatcher.dispatch(event)
            except Exception:
                await session.rollback()
                logger.exception(
                    "Dispatch of %s reminder for booking %d failed; will retry next tick",
                    reminder_type.value,
                    event.booking_id,
                )
                continue
            await session.commit()
            sent.append(event)
            dispatched += 1
        if due:
            logger.info("Reminder tick: dispatched %d of %d %s reminder(s)", dispatched, len(due), reminder_type.value)
    return sent
