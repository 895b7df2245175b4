from datetime import date, time
from enum import Enum

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


class OverrideKind(str, Enum):
    UNAVAILABLE = "unavailable"
    CUSTOM_HOURS = "custom_hours"


class WeeklyRule(SQLModel, table=True):
    __tablename__ = "weekly_rules"
    id: int | None = Field(default=None, primary_key=True)
    provider_id: int = Field(foreign_key="providers.id", index=True)
    day_of_week: int = Field(index=True)  # 0 = Sunday ... 6 = Saturday
    start_time: time
    end_time: time
    is_active: bool = True


class WeeklyRuleCreate(SQLModel):
    day_of_week: int = Field(ge=0, le=6)
    start_time: time
    end_time: time
    is_active: bool = True


class WeeklyRuleUpdate(SQLModel):
    start_time: time | None = None
    end_time: time | None = None
    is_active: bool | None = None


class WeeklyRulePublic(SQLModel):
    id: int
    provider_id: int
    day_of_week: int
    start_time: time
    end_time: time
    is_active: bool


class DateOverride(SQLModel, table=True):
    __tablename__ = "date_overrides"
    # One override per provider per date; writes upsert on this key
    __table_args__ = (UniqueConstraint("provider_id", "override_date", name="uq_date_overrides_provider_date"),)
    id: int | None = Field(default=None, primary_key=True)
    provider_id: int = Field(foreign_key="providers.id", index=True)
    override_date: date = Field(index=True)
    kind: OverrideKind
    start_time: time | None = None
    end_time: time | None = None
    reason: str | None = Field(default=None, max_length=255)


class DateOverrideWrite(SQLModel):
    kind: OverrideKind
    start_time: time | None = None
    end_time: time | None = None
    reason: str | None = Field(default=None, max_length=255)


class DateOverridePublic(SQLModel):
    id: int
    provider_id: int
    override_date: date
    kind: OverrideKind
    start_time: time | None = None
    end_time: time | None = None
    reason: str | None = None
