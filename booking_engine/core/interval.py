"""
Half-open time intervals [start, end).

Touching intervals (a.end == b.start) never overlap. The SQL form of the overlap
test lives here too so store-side filters use the exact same boundary rule.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import and_
from sqlalchemy.sql.elements import ColumnElement

from booking_engine.core.clock import to_naive_utc
from booking_engine.core.errors import InvalidTimeRange


@dataclass(frozen=True, order=True)
class Interval:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise InvalidTimeRange(f"Interval start {self.start} must be before end {self.end}")

    @classmethod
    def from_duration(cls, start: datetime, minutes: int) -> Interval:
        if minutes <= 0:
            raise InvalidTimeRange(f"Duration must be positive, got {minutes} minutes")
        return cls(start, start + timedelta(minutes=minutes))

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def duration_minutes(self) -> int:
        return int(self.duration.total_seconds() // 60)

    def overlaps(self, other: Interval) -> bool:
        return overlaps(self, other)

    def contains(self, inner: Interval) -> bool:
        return contains(self, inner)

    def overlap_clause(self, start_col, end_col) -> ColumnElement[bool]:
        """SQL predicate: rows whose [start_col, end_col) overlaps this interval.

        Columns hold naive UTC, so bounds are converted before binding.
        """
        return and_(start_col < to_naive_utc(self.end), end_col > to_naive_utc(self.start))


def overlaps(a: Interval, b: Interval) -> bool:
    return a.start < b.end and b.start < a.end


def contains(outer: Interval, inner: Interval) -> bool:
    return outer.start <= inner.start and inner.end <= outer.end
