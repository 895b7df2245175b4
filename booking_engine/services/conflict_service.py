from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.interval import Interval
from booking_engine.models.booking import ACTIVE_STATUSES, Booking, BookingStatus


async def conflicting_bookings(
    session: AsyncSession,
    provider_id: int,
    candidate: Interval,
    exclude_booking_id: int | None = None,
    statuses: Iterable[BookingStatus] = ACTIVE_STATUSES,
) -> list[Booking]:
    """Bookings of the provider in ``statuses`` whose interval overlaps ``candidate``."""
    q = select(Booking).where(
        Booking.provider_id == provider_id,
        Booking.status.in_(list(statuses)),
        candidate.overlap_clause(Booking.scheduled_at, Booking.ends_at),
    )
    if exclude_booking_id is not None:
        q = q.where(Booking.id != exclude_booking_id)
    result = await session.execute(q.order_by(Booking.scheduled_at))
    return [b for b in result.scalars().all() if b.interval.overlaps(candidate)]


async def has_conflict(
    session: AsyncSession,
    provider_id: int,
    candidate: Interval,
    exclude_booking_id: int | None = None,
    statuses: Iterable[BookingStatus] = ACTIVE_STATUSES,
) -> bool:
    found = await conflicting_bookings(session, provider_id, candidate, exclude_booking_id, statuses)
    return bool(found)


async def active_bookings_between(session: AsyncSession, provider_id: int, window: Interval) -> list[Booking]:
    """Requested/Confirmed bookings overlapping ``window``; one query for a whole day's slot scan."""
    return await conflicting_bookings(session, provider_id, window)
