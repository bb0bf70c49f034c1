from __future__ import annotations

import re
from datetime import date, datetime, timezone

# Sunday-first indices, matching how schedules are stored.
DAY_NAMES = {
    "sunday": 0,
    "monday": 1,
    "tuesday": 2,
    "wednesday": 3,
    "thursday": 4,
    "friday": 5,
    "saturday": 6,
}

WALL_CLOCK_PATTERN = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*$")


def weekday_index(day: date) -> int:
    """Weekday of a date as 0-6 with 0 = Sunday."""
    return day.isoweekday() % 7


def normalize_weekday(token: int | str | None) -> int | None:
    """Map a weekday token (0-6 index, numeric string or day name) to 0-6. Returns None if unknown."""
    if token is None or isinstance(token, bool):
        return None
    if isinstance(token, int):
        return token if 0 <= token <= 6 else None
    if isinstance(token, str):
        normalized = token.strip().lower()
        if normalized.isdigit():
            value = int(normalized)
            return value if 0 <= value <= 6 else None
        return DAY_NAMES.get(normalized)
    return None


def matches_weekday(days_of_week: tuple[int | str, ...] | list[int | str], day: date) -> bool:
    """True if any token in days_of_week names the weekday of day."""
    target = weekday_index(day)
    return any(normalize_weekday(token) == target for token in days_of_week or ())


def parse_wall_clock(text: str | None) -> tuple[int, int] | None:
    """Parse "HH:mm" into (hour, minute). "24:00" is accepted as end of day. Returns None if invalid."""
    if not text or not isinstance(text, str):
        return None

    match = WALL_CLOCK_PATTERN.match(text)
    if not match:
        return None

    hour = int(match.group(1))
    minute = int(match.group(2))
    if hour == 24 and minute == 0:
        return (24, 0)
    if 0 <= hour <= 23 and 0 <= minute <= 59:
        return (hour, minute)
    return None


def parse_utc_datetime(value: str | datetime) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime. Naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
