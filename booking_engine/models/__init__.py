from booking_engine.models.provider import Provider, ProviderCreate, ProviderPublic
from booking_engine.models.availability import (
    DateOverride,
    DateOverridePublic,
    DateOverrideWrite,
    OverrideKind,
    WeeklyRule,
    WeeklyRuleCreate,
    WeeklyRulePublic,
    WeeklyRuleUpdate,
)
from booking_engine.models.booking import Booking, BookingCreate, BookingPublic, BookingStatus
from booking_engine.models.reminder import ReminderRecord, ReminderType

__all__ = [
    "Provider",
    "ProviderCreate",
    "ProviderPublic",
    "WeeklyRule",
    "WeeklyRuleCreate",
    "WeeklyRulePublic",
    "WeeklyRuleUpdate",
    "DateOverride",
    "DateOverrideWrite",
    "DateOverridePublic",
    "OverrideKind",
    "Booking",
    "BookingCreate",
    "BookingPublic",
    "BookingStatus",
    "ReminderRecord",
    "ReminderType",
]
