from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.api.deps import get_session
from booking_engine.models.availability import (
    DateOverridePublic,
    DateOverrideWrite,
    WeeklyRuleCreate,
    WeeklyRulePublic,
    WeeklyRuleUpdate,
)
from booking_engine.models.provider import ProviderCreate, ProviderPublic
from booking_engine.services import availability_service
from booking_engine.services.provider_service import create_provider, get_provider

router = APIRouter(prefix="/providers", tags=["providers"])


@router.post("", response_model=ProviderPublic, status_code=status.HTTP_201_CREATED)
async def add_provider(
    body: ProviderCreate,
    session: AsyncSession = Depends(get_session),
) -> ProviderPublic:
    provider = await create_provider(session, body)
    return ProviderPublic.model_validate(provider)


@router.get("/{provider_id}", response_model=ProviderPublic)
async def read_provider(
    provider_id: int,
    session: AsyncSession = Depends(get_session),
) -> ProviderPublic:
    provider = await get_provider(session, provider_id)
    return ProviderPublic.model_validate(provider)


@router.get("/{provider_id}/weekly-rules", response_model=list[WeeklyRulePublic])
async def list_weekly_rules(
    provider_id: int,
    session: AsyncSession = Depends(get_session),
) -> list[WeeklyRulePublic]:
    rules = await availability_service.list_weekly_rules(session, provider_id)
    return [WeeklyRulePublic.model_validate(r) for r in rules]


@router.post("/{provider_id}/weekly-rules", response_model=WeeklyRulePublic, status_code=status.HTTP_201_CREATED)
async def add_weekly_rule(
    provider_id: int,
    body: WeeklyRuleCreate,
    session: AsyncSession = Depends(get_session),
) -> WeeklyRulePublic:
    rule = await availability_service.add_weekly_rule(session, provider_id, body)
    return WeeklyRulePublic.model_validate(rule)


@router.patch("/{provider_id}/weekly-rules/{rule_id}", response_model=WeeklyRulePublic)
async def update_weekly_rule(
    provider_id: int,
    rule_id: int,
    body: WeeklyRuleUpdate,
    session: AsyncSession = Depends(get_session),
) -> WeeklyRulePublic:
    rule = await availability_service.update_weekly_rule(session, provider_id, rule_id, body)
    return WeeklyRulePublic.model_validate(rule)


@router.delete("/{provider_id}/weekly-rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_weekly_rule(
    provider_id: int,
    rule_id: int,
    session: AsyncSession = Depends(get_session),
) -> None:
    await availability_service.delete_weekly_rule(session, provider_id, rule_id)


@router.get("/{provider_id}/overrides", response_model=list[DateOverridePublic])
async def list_overrides(
    provider_id: int,
    from_date: date | None = Query(None),
    session: AsyncSession = Depends(get_session),
) -> list[DateOverridePublic]:
    overrides = await availability_service.list_overrides(session, provider_id, from_date=from_date)
    return [DateOverridePublic.model_validate(o) for o in overrides]


@router.put("/{provider_id}/overrides/{override_date}", response_model=DateOverridePublic)
async def set_override(
    provider_id: int,
    override_date: date,
    body: DateOverrideWrite,
    session: AsyncSession = Depends(get_session),
) -> DateOverridePublic:
    """Create or replace the override for this date (one per provider per date)."""
    override = await availability_service.set_override(session, provider_id, override_date, body)
    return DateOverridePublic.model_validate(override)


@router.delete("/{provider_id}/overrides/{override_date}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_override(
    provider_id: int,
    override_date: date,
    session: AsyncSession = Depends(get_session),
) -> None:
    await availability_service.delete_override(session, provider_id, override_date)
