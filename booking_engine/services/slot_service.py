import logging
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.clock import Clock
from booking_engine.core.config import settings
from booking_engine.core.errors import InvalidTimeRange
from booking_engine.core.interval import Interval
from booking_engine.models.availability import OverrideKind
from booking_engine.models.booking import Booking
from booking_engine.models.provider import Provider
from booking_engine.services.availability_service import day_of_week_for, override_for, rules_for
from booking_engine.services.conflict_service import active_bookings_between
from booking_engine.services.provider_service import get_provider, provider_zone

logger = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class Slot:
    start: datetime
    end: datetime
    duration_minutes: int

    @property
    def interval(self) -> Interval:
        return Interval(self.start, self.end)


@dataclass
class DaySchedule:
    day: date
    slots: list[Slot] = field(default_factory=list)
    bookings: list[Booking] = field(default_factory=list)


def _localize(d: date, t: time, zone: ZoneInfo) -> datetime:
    """Wall-clock time on ``d`` in the provider's zone, as aware UTC."""
    return datetime.combine(d, t, tzinfo=zone).astimezone(UTC)


def _window(d: date, start: time, end: time, zone: ZoneInfo) -> Interval | None:
    """Localized window, or None when a DST gap swallows it (start no longer before end)."""
    lo, hi = _localize(d, start, zone), _localize(d, end, zone)
    if lo >= hi:
        logger.debug("Skipping window %s-%s on %s: empty in %s", start, end, d, zone.key)
        return None
    return Interval(lo, hi)


def day_bounds(d: date, zone: ZoneInfo) -> Interval:
    return Interval(_localize(d, time.min, zone), _localize(d + timedelta(days=1), time.min, zone))


async def resolve_windows(session: AsyncSession, provider: Provider, d: date) -> list[Interval]:
    """Availability windows for one date; an override replaces the weekly rules entirely."""
    zone = provider_zone(provider)
    override = await override_for(session, provider.id, d)
    if override is not None:
        if override.kind == OverrideKind.UNAVAILABLE:
            return []
        window = _window(d, override.start_time, override.end_time, zone)
        return [window] if window else []
    rules = await rules_for(session, provider.id, day_of_week_for(d))
    windows = (_window(d, r.start_time, r.end_time, zone) for r in rules)
    return sorted(w for w in windows if w is not None)


def earliest_bookable_start(clock: Clock, zone: ZoneInfo) -> datetime:
    """Start of the next calendar day in ``zone``, unless a lead in minutes is configured."""
    now = clock.now()
    if settings.booking_min_lead_minutes is not None:
        return now + timedelta(minutes=settings.booking_min_lead_minutes)
    tomorrow = now.astimezone(zone).date() + timedelta(days=1)
    return _localize(tomorrow, time.min, zone)


def validate_duration(minutes: int) -> None:
    """Bookable durations: the same bounds apply to slot queries and booking requests."""
    if not settings.min_duration_minutes <= minutes <= settings.max_duration_minutes:
        raise InvalidTimeRange(
            f"duration_minutes must be between {settings.min_duration_minutes} "
            f"and {settings.max_duration_minutes}, got {minutes}"
        )


def discretize(window: Interval, duration_minutes: int, granularity_minutes: int) -> list[Interval]:
    """Candidate intervals stepping through ``window`` every ``granularity_minutes``."""
    if duration_minutes <= 0 or granularity_minutes <= 0:
        raise InvalidTimeRange("Duration and granularity must be positive")
    duration = timedelta(minutes=duration_minutes)
    step = timedelta(minutes=granularity_minutes)
    out: list[Interval] = []
    current = window.start
    while current + duration <= window.end:
        out.append(Interval(current, current + duration))
        current += step
    return out


async def generate_slots(
    session: AsyncSession,
    provider_id: int,
    d: date,
    duration_minutes: int | None,
    *,
    clock: Clock,
    granularity_minutes: int | None = None,
) -> list[Slot]:
    """Bookable slots for a provider on ``d``, ascending by start.

    With ``duration_minutes`` the windows are discretized at the configured
    granularity; with ``None`` each window becomes one natural slot.
    """
    provider = await get_provider(session, provider_id)
    zone = provider_zone(provider)
    granularity = granularity_minutes or settings.slot_granularity_minutes
    if duration_minutes is not None:
        validate_duration(duration_minutes)

    windows = await resolve_windows(session, provider, d)
    if not windows:
        return []

    if duration_minutes is None:
        candidates = list(windows)
    else:
        candidates = [c for w in windows for c in discretize(w, duration_minutes, granularity)]
    if not candidates:
        return []

    span = Interval(min(w.start for w in windows), max(w.end for w in windows))
    booked = [b.interval for b in await active_bookings_between(session, provider.id, span)]
    earliest = earliest_bookable_start(clock, zone)

    slots = {
        Slot(
            start=c.start.astimezone(zone),
            end=c.end.astimezone(zone),
            duration_minutes=c.duration_minutes,
        )
        for c in candidates
        if c.start >= earliest and not any(c.overlaps(b) for b in booked)
    }
    return sorted(slots)


async def schedule_for(
    session: AsyncSession,
    provider_id: int,
    start_date: date,
    end_date: date,
    duration_minutes: int | None,
    *,
    clock: Clock,
) -> list[DaySchedule]:
    if end_date < start_date:
        raise InvalidTimeRange("end_date must not be before start_date")
    if (end_date - start_date).days > settings.max_schedule_days:
        raise InvalidTimeRange(f"Date range cannot exceed {settings.max_schedule_days} days")
    provider = await get_provider(session, provider_id)
    zone = provider_zone(provider)
    out: list[DaySchedule] = []
    d = start_date
    while d <= end_date:
        slots = await generate_slots(session, provider_id, d, duration_minutes, clock=clock)
        bookings = await active_bookings_between(session, provider_id, day_bounds(d, zone))
        out.append(DaySchedule(day=d, slots=slots, bookings=bookings))
        d += timedelta(days=1)
    logger.debug("Built %d-day schedule for provider %d", len(out), provider_id)
    return out
