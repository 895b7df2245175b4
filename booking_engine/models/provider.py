from datetime import UTC, datetime

from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class ProviderBase(SQLModel):
    name: str
    email: str | None = Field(default=None, index=True)
    timezone: str | None = None  # IANA name; falls back to settings.default_timezone


class Provider(ProviderBase, table=True):
    __tablename__ = "providers"
    id: int | None = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=_utc_naive_now)


class ProviderCreate(ProviderBase):
    pass


class ProviderPublic(ProviderBase):
    id: int
    created_at: datetime
