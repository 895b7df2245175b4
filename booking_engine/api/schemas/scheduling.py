from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field

from booking_engine.models.booking import BookingPublic


class SlotMode(str, Enum):
    DISCRETE = "discrete"
    NATURAL = "natural"


class SlotInfo(BaseModel):
    start: datetime
    end: datetime
    duration_minutes: int


class AvailableSlotsResponse(BaseModel):
    date: str  # YYYY-MM-DD
    provider_id: int
    mode: SlotMode
    duration_minutes: int | None = None
    slots: list[SlotInfo]


class DayScheduleInfo(BaseModel):
    date: str
    available_slots: list[SlotInfo]
    bookings: list[BookingPublic]
    total_slots: int
    booked_slots: int


class ScheduleResponse(BaseModel):
    provider_id: int
    start_date: date
    end_date: date
    schedule: list[DayScheduleInfo]


class CancelBookingRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)
    cancelled_by: str | None = None


class CompleteBookingRequest(BaseModel):
    provider_notes: str | None = Field(default=None, max_length=1000)


class RescheduleBookingRequest(BaseModel):
    scheduled_at: datetime
