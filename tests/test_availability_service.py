from datetime import date, time

import pytest
from sqlalchemy import func, select

from booking_engine.core.errors import AvailabilityNotFound, InvalidTimeRange, ProviderNotFound
from booking_engine.models.availability import (
    DateOverride,
    DateOverrideWrite,
    OverrideKind,
    WeeklyRuleCreate,
    WeeklyRuleUpdate,
)
from booking_engine.services import availability_service as svc

from .helpers import MONDAY, MONDAY_DOW


def test_day_of_week_counts_from_sunday():
    assert svc.day_of_week_for(date(2025, 3, 2)) == 0  # Sunday
    assert svc.day_of_week_for(MONDAY) == MONDAY_DOW
    assert svc.day_of_week_for(date(2025, 3, 8)) == 6  # Saturday


@pytest.mark.parametrize("start, end", [(time(12), time(9)), (time(9), time(9))])
async def test_weekly_rule_with_bad_range_is_rejected(session, provider, start, end):
    with pytest.raises(InvalidTimeRange):
        await svc.add_weekly_rule(
            session, provider.id, WeeklyRuleCreate(day_of_week=1, start_time=start, end_time=end)
        )
    assert await svc.list_weekly_rules(session, provider.id) == []


async def test_weekly_rule_for_unknown_provider(session):
    with pytest.raises(ProviderNotFound):
        await svc.add_weekly_rule(
            session, 999, WeeklyRuleCreate(day_of_week=1, start_time=time(9), end_time=time(10))
        )


async def test_rules_for_returns_active_rules_in_start_order(session, provider):
    for start, end, active in [(time(14), time(17), True), (time(9), time(12), True), (time(18), time(19), False)]:
        await svc.add_weekly_rule(
            session,
            provider.id,
            WeeklyRuleCreate(day_of_week=MONDAY_DOW, start_time=start, end_time=end, is_active=active),
        )
    await svc.add_weekly_rule(
        session, provider.id, WeeklyRuleCreate(day_of_week=2, start_time=time(9), end_time=time(10))
    )
    await session.commit()

    rules = await svc.rules_for(session, provider.id, MONDAY_DOW)
    assert [(r.start_time, r.end_time) for r in rules] == [(time(9), time(12)), (time(14), time(17))]


async def test_update_weekly_rule_revalidates_range(session, provider, monday_morning):
    with pytest.raises(InvalidTimeRange):
        await svc.update_weekly_rule(session, provider.id, monday_morning.id, WeeklyRuleUpdate(end_time=time(8)))

    rule = await svc.update_weekly_rule(
        session, provider.id, monday_morning.id, WeeklyRuleUpdate(end_time=time(13), is_active=False)
    )
    assert rule.end_time == time(13)
    assert rule.is_active is False


async def test_delete_missing_rule(session, provider):
    with pytest.raises(AvailabilityNotFound):
        await svc.delete_weekly_rule(session, provider.id, 12345)


async def test_custom_hours_override_requires_times(session, provider):
    with pytest.raises(InvalidTimeRange):
        await svc.set_override(session, provider.id, MONDAY, DateOverrideWrite(kind=OverrideKind.CUSTOM_HOURS))
    with pytest.raises(InvalidTimeRange):
        await svc.set_override(
            session,
            provider.id,
            MONDAY,
            DateOverrideWrite(kind=OverrideKind.CUSTOM_HOURS, start_time=time(10), end_time=time(10)),
        )
    assert await svc.override_for(session, provider.id, MONDAY) is None


async def test_override_write_is_last_write_wins(session, provider):
    await svc.set_override(
        session,
        provider.id,
        MONDAY,
        DateOverrideWrite(kind=OverrideKind.CUSTOM_HOURS, start_time=time(13), end_time=time(15), reason="clinic"),
    )
    await session.commit()
    override = await svc.set_override(
        session, provider.id, MONDAY, DateOverrideWrite(kind=OverrideKind.UNAVAILABLE, reason="holiday")
    )
    await session.commit()

    assert override.kind == OverrideKind.UNAVAILABLE
    assert override.start_time is None and override.end_time is None
    assert override.reason == "holiday"
    count = await session.scalar(
        select(func.count()).select_from(DateOverride).where(DateOverride.provider_id == provider.id)
    )
    assert count == 1


async def test_unavailable_override_drops_times(session, provider):
    override = await svc.set_override(
        session,
        provider.id,
        MONDAY,
        DateOverrideWrite(kind=OverrideKind.UNAVAILABLE, start_time=time(9), end_time=time(10)),
    )
    assert override.start_time is None


async def test_list_and_delete_overrides(session, provider):
    for d in (date(2025, 3, 3), date(2025, 3, 10), date(2025, 2, 24)):
        await svc.set_override(session, provider.id, d, DateOverrideWrite(kind=OverrideKind.UNAVAILABLE))
    await session.commit()

    upcoming = await svc.list_overrides(session, provider.id, from_date=date(2025, 3, 1))
    assert [o.override_date for o in upcoming] == [date(2025, 3, 3), date(2025, 3, 10)]

    await svc.delete_override(session, provider.id, date(2025, 3, 3))
    assert await svc.override_for(session, provider.id, date(2025, 3, 3)) is None
    with pytest.raises(AvailabilityNotFound):
        await svc.delete_override(session, provider.id, date(2025, 3, 3))
