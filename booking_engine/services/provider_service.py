from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.core.config import settings
from booking_engine.core.errors import InvalidTimeRange, ProviderNotFound
from booking_engine.models.provider import Provider, ProviderCreate


def provider_zone(provider: Provider) -> ZoneInfo:
    return ZoneInfo(provider.timezone or settings.default_timezone)


async def create_provider(session: AsyncSession, data: ProviderCreate) -> Provider:
    if data.timezone:
        try:
            ZoneInfo(data.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise InvalidTimeRange(f"Unknown timezone {data.timezone!r}") from e
    provider = Provider(name=data.name, email=data.email, timezone=data.timezone)
    session.add(provider)
    await session.flush()
    await session.refresh(provider)
    return provider


async def get_provider(session: AsyncSession, provider_id: int, for_update: bool = False) -> Provider:
    """Load a provider or raise ProviderNotFound.

    ``for_update`` takes a row lock (PostgreSQL) used to serialize booking writes
    for one provider across processes.
    """
    q = select(Provider).where(Provider.id == provider_id)
    if for_update:
        q = q.with_for_update()
    result = await session.execute(q)
    provider = result.scalar_one_or_none()
    if provider is None:
        raise ProviderNotFound(provider_id)
    return provider
