from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from booking_engine.core.interval import Interval


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class BookingStatus(str, Enum):
    REQUESTED = "requested"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


# Statuses that hold a provider's time
ACTIVE_STATUSES = frozenset({BookingStatus.REQUESTED, BookingStatus.CONFIRMED})
TERMINAL_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.COMPLETED, BookingStatus.NO_SHOW})


class Booking(SQLModel, table=True):
    __tablename__ = "bookings"
    id: int | None = Field(default=None, primary_key=True)
    provider_id: int = Field(foreign_key="providers.id", index=True)
    subject_ids: list[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    # Naive UTC; ends_at is derived from duration and kept for range queries
    scheduled_at: datetime = Field(index=True)
    ends_at: datetime = Field(index=True)
    duration_minutes: int
    status: BookingStatus = Field(default=BookingStatus.REQUESTED, index=True)
    notes: str | None = None
    provider_notes: str | None = None
    cancellation_reason: str | None = None
    cancelled_at: datetime | None = None
    cancelled_by: str | None = None
    created_at: datetime = Field(default_factory=_utc_naive_now)
    updated_at: datetime = Field(default_factory=_utc_naive_now)

    @property
    def interval(self) -> Interval:
        start = self.scheduled_at.replace(tzinfo=UTC)
        end = self.ends_at.replace(tzinfo=UTC)
        return Interval(start, end)


class BookingCreate(SQLModel):
    provider_id: int
    subject_ids: list[int]
    scheduled_at: datetime
    duration_minutes: int
    notes: str | None = Field(default=None, max_length=500)


class BookingPublic(SQLModel):
    id: int
    provider_id: int
    subject_ids: list[int]
    scheduled_at: datetime
    ends_at: datetime
    duration_minutes: int
    status: BookingStatus
    notes: str | None = None
    provider_notes: str | None = None
    cancellation_reason: str | None = None
    cancelled_at: datetime | None = None
    cancelled_by: str | None = None
    created_at: datetime
