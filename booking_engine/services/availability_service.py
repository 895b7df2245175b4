import logging
from datetime import date, time

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.db import dialect_insert
from booking_engine.core.errors import AvailabilityNotFound, InvalidTimeRange
from booking_engine.models.availability import (
    DateOverride,
    DateOverrideWrite,
    OverrideKind,
    WeeklyRule,
    WeeklyRuleCreate,
    WeeklyRuleUpdate,
)
from booking_engine.services.provider_service import get_provider

logger = logging.getLogger(__name__)


def day_of_week_for(d: date) -> int:
    """Weekday index with 0 = Sunday ... 6 = Saturday."""
    return (d.weekday() + 1) % 7


def _validate_range(start: time | None, end: time | None) -> None:
    if start is None or end is None:
        raise InvalidTimeRange("Both start_time and end_time are required")
    if start >= end:
        raise InvalidTimeRange(f"start_time {start.isoformat()} must be before end_time {end.isoformat()}")


def _validate_day(day_of_week: int) -> None:
    if not 0 <= day_of_week <= 6:
        raise InvalidTimeRange(f"day_of_week must be 0-6, got {day_of_week}")


async def add_weekly_rule(session: AsyncSession, provider_id: int, data: WeeklyRuleCreate) -> WeeklyRule:
    _validate_day(data.day_of_week)
    _validate_range(data.start_time, data.end_time)
    await get_provider(session, provider_id)
    rule = WeeklyRule(
        provider_id=provider_id,
        day_of_week=data.day_of_week,
        start_time=data.start_time,
        end_time=data.end_time,
        is_active=data.is_active,
    )
    session.add(rule)
    await session.flush()
    await session.refresh(rule)
    return rule


async def list_weekly_rules(session: AsyncSession, provider_id: int) -> list[WeeklyRule]:
    await get_provider(session, provider_id)
    result = await session.execute(
        select(WeeklyRule)
        .where(WeeklyRule.provider_id == provider_id)
        .order_by(WeeklyRule.day_of_week, WeeklyRule.start_time)
    )
    return list(result.scalars().all())


async def rules_for(session: AsyncSession, provider_id: int, day_of_week: int) -> list[WeeklyRule]:
    """Active rules for one weekday, ordered by start time."""
    result = await session.execute(
        select(WeeklyRule)
        .where(
            WeeklyRule.provider_id == provider_id,
            WeeklyRule.day_of_week == day_of_week,
            WeeklyRule.is_active.is_(True),
        )
        .order_by(WeeklyRule.start_time)
    )
    return list(result.scalars().all())


async def _get_rule(session: AsyncSession, provider_id: int, rule_id: int) -> WeeklyRule:
    result = await session.execute(
        select(WeeklyRule).where(WeeklyRule.id == rule_id, WeeklyRule.provider_id == provider_id)
    )
    rule = result.scalar_one_or_none()
    if rule is None:
        raise AvailabilityNotFound(f"Weekly rule {rule_id} not found for provider {provider_id}")
    return rule


async def update_weekly_rule(
    session: AsyncSession, provider_id: int, rule_id: int, data: WeeklyRuleUpdate
) -> WeeklyRule:
    rule = await _get_rule(session, provider_id, rule_id)
    start = data.start_time if data.start_time is not None else rule.start_time
    end = data.end_time if data.end_time is not None else rule.end_time
    _validate_range(start, end)
    rule.start_time = start
    rule.end_time = end
    if data.is_active is not None:
        rule.is_active = data.is_active
    session.add(rule)
    await session.flush()
    await session.refresh(rule)
    return rule


async def delete_weekly_rule(session: AsyncSession, provider_id: int, rule_id: int) -> None:
    rule = await _get_rule(session, provider_id, rule_id)
    await session.delete(rule)
    await session.flush()


async def override_for(session: AsyncSession, provider_id: int, d: date) -> DateOverride | None:
    result = await session.execute(
        select(DateOverride)
        .where(DateOverride.provider_id == provider_id, DateOverride.override_date == d)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def set_override(
    session: AsyncSession, provider_id: int, d: date, data: DateOverrideWrite
) -> DateOverride:
    """Create or replace the single override for (provider, date); last write wins."""
    if data.kind == OverrideKind.CUSTOM_HOURS:
        _validate_range(data.start_time, data.end_time)
        start, end = data.start_time, data.end_time
    else:
        start = end = None
    await get_provider(session, provider_id)
    values = {
        "provider_id": provider_id,
        "override_date": d,
        "kind": data.kind,
        "start_time": start,
        "end_time": end,
        "reason": data.reason,
    }
    stmt = dialect_insert(session, DateOverride.__table__).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["provider_id", "override_date"],
        set_={
            "kind": stmt.excluded.kind,
            "start_time": stmt.excluded.start_time,
            "end_time": stmt.excluded.end_time,
            "reason": stmt.excluded.reason,
        },
    )
    await session.execute(stmt)
    override = await override_for(session, provider_id, d)
    logger.debug("Override for provider %d on %s set to %s", provider_id, d, data.kind.value)
    return override


async def list_overrides(
    session: AsyncSession, provider_id: int, from_date: date | None = None
) -> list[DateOverride]:
    await get_provider(session, provider_id)
    q = select(DateOverride).where(DateOverride.provider_id == provider_id).order_by(DateOverride.override_date)
    if from_date:
        q = q.where(DateOverride.override_date >= from_date)
    result = await session.execute(q)
    return list(result.scalars().all())


async def delete_override(session: AsyncSession, provider_id: int, d: date) -> None:
    override = await override_for(session, provider_id, d)
    if override is None:
        raise AvailabilityNotFound(f"No override for provider {provider_id} on {d.isoformat()}")
    await session.delete(override)
    await session.flush()
