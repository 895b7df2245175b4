from datetime import datetime, timedelta
from enum import Enum

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


class ReminderType(str, Enum):
    TWENTY_FOUR_HOUR = "24h"
    ONE_HOUR = "1h"


# (lead before scheduled_at, tolerance either side of the ideal instant)
REMINDER_WINDOWS: dict[ReminderType, tuple[timedelta, timedelta]] = {
    ReminderType.TWENTY_FOUR_HOUR: (timedelta(hours=24), timedelta(minutes=30)),
    ReminderType.ONE_HOUR: (timedelta(hours=1), timedelta(minutes=10)),
}


class ReminderRecord(SQLModel, table=True):
    __tablename__ = "reminder_records"
    # Store-enforced de-duplication key for at-most-once reminders
    __table_args__ = (UniqueConstraint("booking_id", "reminder_type", name="uq_reminder_records_booking_type"),)
    id: int | None = Field(default=None, primary_key=True)
    booking_id: int = Field(foreign_key="bookings.id", index=True)
    reminder_type: ReminderType
    sent_at: datetime
