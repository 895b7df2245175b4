"""
Scheduling error taxonomy.

Services raise these; the app-level exception handler in main.py maps them to
HTTP responses via ``status_code`` so routes stay thin.
"""
from __future__ import annotations

# HTTP status codes for known error categories
STATUS_NOT_FOUND = 404
STATUS_CONFLICT = 409
STATUS_UNPROCESSABLE = 422


class SchedulingError(Exception):
    status_code: int = STATUS_UNPROCESSABLE

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    @property
    def code(self) -> str:
        return type(self).__name__


class InvalidTimeRange(SchedulingError):
    """Start is not before end, or a duration/granularity is out of bounds."""


class MissingSubjects(SchedulingError):
    """A booking request with an empty subject list."""


class InvalidStateTransition(SchedulingError):
    status_code = STATUS_CONFLICT


class SlotNoLongerAvailable(SchedulingError):
    """Recoverable: the caller should re-query slots and retry with fresh data."""

    status_code = STATUS_CONFLICT


class OutsideAvailability(SchedulingError):
    status_code = STATUS_CONFLICT


class ProviderNotFound(SchedulingError):
    status_code = STATUS_NOT_FOUND

    def __init__(self, provider_id: int) -> None:
        super().__init__(f"Provider {provider_id} not found")
        self.provider_id = provider_id


class BookingNotFound(SchedulingError):
    status_code = STATUS_NOT_FOUND

    def __init__(self, booking_id: int) -> None:
        super().__init__(f"Booking {booking_id} not found")
        self.booking_id = booking_id


class AvailabilityNotFound(SchedulingError):
    status_code = STATUS_NOT_FOUND


class ReminderAlreadySent(SchedulingError):
    """Not a failure: another tick already recorded this (booking, type)."""

    status_code = STATUS_CONFLICT
