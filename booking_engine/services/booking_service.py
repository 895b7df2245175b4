"""
Booking ledger.

Every write that depends on the provider's other bookings (request, confirm,
reschedule) and every lifecycle transition runs inside ``provider_write_lock``:
an in-process lock per provider plus a row lock on the provider, with the
read-check-write committed before the lock is released.
"""
import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.clock import Clock, as_utc, to_naive_utc, utc_naive_now
from booking_engine.core.errors import (
    BookingNotFound,
    InvalidStateTransition,
    InvalidTimeRange,
    MissingSubjects,
    OutsideAvailability,
    SlotNoLongerAvailable,
)
from booking_engine.core.interval import Interval
from booking_engine.models.booking import ACTIVE_STATUSES, Booking, BookingCreate, BookingPublic, BookingStatus
from booking_engine.models.provider import Provider
from booking_engine.models.reminder import ReminderRecord
from booking_engine.services.conflict_service import conflicting_bookings
from booking_engine.services.provider_service import get_provider, provider_zone
from booking_engine.services.slot_service import resolve_windows, validate_duration

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.REQUESTED: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
    ),
}


class ProviderLocks:
    """One asyncio.Lock per provider id, created on first use."""

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}

    def get(self, provider_id: int) -> asyncio.Lock:
        if provider_id not in self._locks:
            self._locks[provider_id] = asyncio.Lock()
        return self._locks[provider_id]

    def clear(self) -> None:
        self._locks.clear()


provider_locks = ProviderLocks()


@asynccontextmanager
async def provider_write_lock(session: AsyncSession, provider_id: int) -> AsyncIterator[Provider]:
    async with provider_locks.get(provider_id):
        try:
            provider = await get_provider(session, provider_id, for_update=True)
            yield provider
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def _check_transition(booking: Booking, target: BookingStatus) -> None:
    if not can_transition(booking.status, target):
        raise InvalidStateTransition(
            f"Booking {booking.id} cannot move from {booking.status.value} to {target.value}"
        )


async def _ensure_within_availability(session: AsyncSession, provider: Provider, candidate: Interval) -> None:
    local_day = candidate.start.astimezone(provider_zone(provider)).date()
    windows = await resolve_windows(session, provider, local_day)
    if not any(w.contains(candidate) for w in windows):
        raise OutsideAvailability(
            f"{candidate.start.isoformat()} for {candidate.duration_minutes} minutes is outside "
            f"provider {provider.id}'s availability"
        )


def _aware(dt: datetime | None) -> datetime | None:
    return as_utc(dt) if dt is not None else None


def booking_to_public(b: Booking) -> BookingPublic:
    """Public shape; stored naive-UTC timestamps are returned timezone-aware."""
    return BookingPublic(
        id=b.id,
        provider_id=b.provider_id,
        subject_ids=list(b.subject_ids),
        scheduled_at=_aware(b.scheduled_at),
        ends_at=_aware(b.ends_at),
        duration_minutes=b.duration_minutes,
        status=b.status,
        notes=b.notes,
        provider_notes=b.provider_notes,
        cancellation_reason=b.cancellation_reason,
        cancelled_at=_aware(b.cancelled_at),
        cancelled_by=b.cancelled_by,
        created_at=_aware(b.created_at),
    )


async def get_booking(session: AsyncSession, booking_id: int) -> Booking:
    result = await session.execute(
        select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if booking is None:
        raise BookingNotFound(booking_id)
    return booking


async def list_bookings(
    session: AsyncSession,
    provider_id: int,
    from_dt: datetime | None = None,
    to_dt: datetime | None = None,
    statuses: Iterable[BookingStatus] | None = None,
) -> list[Booking]:
    await get_provider(session, provider_id)
    q = select(Booking).where(Booking.provider_id == provider_id).order_by(Booking.scheduled_at)
    if from_dt:
        q = q.where(Booking.scheduled_at >= to_naive_utc(from_dt))
    if to_dt:
        q = q.where(Booking.scheduled_at < to_naive_utc(to_dt))
    if statuses:
        q = q.where(Booking.status.in_(list(statuses)))
    result = await session.execute(q)
    return list(result.scalars().all())


async def request_booking(
    session: AsyncSession,
    data: BookingCreate,
    *,
    clock: Clock,
    enforce_availability: bool = True,
) -> Booking:
    """Create a Requested booking after availability and conflict checks.

    ``enforce_availability=False`` is for provider-initiated bookings that may
    fall outside the published windows; conflicts are still rejected.
    """
    if not data.subject_ids:
        raise MissingSubjects("A booking needs at least one subject")
    validate_duration(data.duration_minutes)
    start = as_utc(data.scheduled_at)
    if start <= clock.now():
        raise InvalidTimeRange("scheduled_at must be in the future")
    candidate = Interval.from_duration(start, data.duration_minutes)

    async with provider_write_lock(session, data.provider_id) as provider:
        if enforce_availability:
            await _ensure_within_availability(session, provider, candidate)
        clashes = await conflicting_bookings(session, provider.id, candidate)
        if clashes:
            raise SlotNoLongerAvailable(
                f"Provider {provider.id} already has booking {clashes[0].id} overlapping {start.isoformat()}"
            )
        now = utc_naive_now(clock)
        booking = Booking(
            provider_id=provider.id,
            subject_ids=list(data.subject_ids),
            scheduled_at=to_naive_utc(candidate.start),
            ends_at=to_naive_utc(candidate.end),
            duration_minutes=data.duration_minutes,
            status=BookingStatus.REQUESTED,
            notes=data.notes,
            created_at=now,
            updated_at=now,
        )
        session.add(booking)
        await session.flush()
        await session.refresh(booking)
    logger.info("Booking %d requested for provider %d at %s", booking.id, booking.provider_id, start.isoformat())
    return booking


async def confirm_booking(session: AsyncSession, booking_id: int, *, clock: Clock) -> Booking:
    """Requested -> Confirmed, re-checking against the provider's confirmed bookings.

    Two overlapping Requested holds can only exist through a creation race; the
    first one confirmed wins and the other gets SlotNoLongerAvailable.
    """
    provider_id = (await get_booking(session, booking_id)).provider_id
    async with provider_write_lock(session, provider_id):
        booking = await get_booking(session, booking_id)
        _check_transition(booking, BookingStatus.CONFIRMED)
        if booking.scheduled_at <= utc_naive_now(clock):
            raise InvalidStateTransition(f"Booking {booking_id} has already started")
        clashes = await conflicting_bookings(
            session,
            provider_id,
            booking.interval,
            exclude_booking_id=booking.id,
            statuses={BookingStatus.CONFIRMED},
        )
        if clashes:
            raise SlotNoLongerAvailable(
                f"Booking {booking_id} overlaps confirmed booking {clashes[0].id}"
            )
        booking.status = BookingStatus.CONFIRMED
        booking.updated_at = utc_naive_now(clock)
        session.add(booking)
        await session.flush()
    logger.info("Booking %d confirmed", booking_id)
    return booking


async def _transition(
    session: AsyncSession,
    booking_id: int,
    target: BookingStatus,
    clock: Clock,
    **changes,
) -> Booking:
    provider_id = (await get_booking(session, booking_id)).provider_id
    async with provider_write_lock(session, provider_id):
        booking = await get_booking(session, booking_id)
        _check_transition(booking, target)
        booking.status = target
        for key, value in changes.items():
            setattr(booking, key, value)
        booking.updated_at = utc_naive_now(clock)
        session.add(booking)
        await session.flush()
    logger.info("Booking %d moved to %s", booking_id, target.value)
    return booking


async def cancel_booking(
    session: AsyncSession,
    booking_id: int,
    *,
    clock: Clock,
    reason: str | None = None,
    cancelled_by: str | None = None,
) -> Booking:
    return await _transition(
        session,
        booking_id,
        BookingStatus.CANCELLED,
        clock,
        cancellation_reason=reason,
        cancelled_by=cancelled_by,
        cancelled_at=utc_naive_now(clock),
    )


async def complete_booking(
    session: AsyncSession, booking_id: int, *, clock: Clock, provider_notes: str | None = None
) -> Booking:
    return await _transition(session, booking_id, BookingStatus.COMPLETED, clock, provider_notes=provider_notes)


async def mark_no_show(session: AsyncSession, booking_id: int, *, clock: Clock) -> Booking:
    return await _transition(session, booking_id, BookingStatus.NO_SHOW, clock)


async def reschedule_booking(
    session: AsyncSession,
    booking_id: int,
    new_start: datetime,
    *,
    clock: Clock,
    enforce_availability: bool = True,
) -> Booking:
    """Move an active booking, keeping its status; sent reminders are cleared."""
    start = as_utc(new_start)
    if start <= clock.now():
        raise InvalidTimeRange("New start must be in the future")
    provider_id = (await get_booking(session, booking_id)).provider_id
    async with provider_write_lock(session, provider_id) as provider:
        booking = await get_booking(session, booking_id)
        if booking.status not in ACTIVE_STATUSES:
            raise InvalidStateTransition(f"Booking {booking_id} is {booking.status.value} and cannot be rescheduled")
        candidate = Interval.from_duration(start, booking.duration_minutes)
        if enforce_availability:
            await _ensure_within_availability(session, provider, candidate)
        clashes = await conflicting_bookings(session, provider_id, candidate, exclude_booking_id=booking.id)
        if clashes:
            raise SlotNoLongerAvailable(
                f"Provider {provider_id} already has booking {clashes[0].id} overlapping {start.isoformat()}"
            )
        booking.scheduled_at = to_naive_utc(candidate.start)
        booking.ends_at = to_naive_utc(candidate.end)
        booking.updated_at = utc_naive_now(clock)
        session.add(booking)
        await session.execute(delete(ReminderRecord).where(ReminderRecord.booking_id == booking.id))
        await session.flush()
    logger.info("Booking %d rescheduled to %s", booking_id, start.isoformat())
    return booking
