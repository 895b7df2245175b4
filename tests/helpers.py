from datetime import UTC, date, datetime

# 2025-03-03 is a Monday; the default test clock sits on the Saturday before it.
MONDAY = date(2025, 3, 3)
MONDAY_DOW = 1  # 0 = Sunday


def at(hour: int, minute: int = 0, day: date = MONDAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=UTC)
