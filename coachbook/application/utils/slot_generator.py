from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from coachbook.application.exceptions import TimezoneConversionError
from coachbook.application.utils.schedule_parser import matches_weekday, parse_wall_clock
from coachbook.domain.entities.schedule import CoachSchedule, WeeklyAvailabilityWindow
from coachbook.domain.entities.time_slot import TimeSlot

DEFAULT_STEP_MINUTES = 30

logger = logging.getLogger(__name__)


def windows_for_day(schedule: CoachSchedule, day: date) -> list[WeeklyAvailabilityWindow]:
    """Windows whose days_of_week include the weekday of day (index or name form)."""
    return [window for window in schedule.windows if matches_weekday(window.days_of_week, day)]


def schedule_covers_weekday(schedule: CoachSchedule, day: date) -> bool:
    return bool(windows_for_day(schedule, day))


def window_bounds_utc(window: WeeklyAvailabilityWindow, day: date, tz_name: str) -> tuple[datetime, datetime]:
    """
    Place a weekly window on a concrete date and return its (start, end) in UTC.

    The offset is taken from the coach timezone on that date, so windows on either
    side of a DST change keep their wall-clock times.
    Raises TimezoneConversionError for unparseable times, unknown zones or empty windows.
    """
    start = parse_wall_clock(window.start_time)
    end = parse_wall_clock(window.end_time)
    if start is None or end is None:
        raise TimezoneConversionError(
            f"Invalid window times start={window.start_time!r} end={window.end_time!r}"
        )
    if start[0] == 24:
        raise TimezoneConversionError("Window cannot start at 24:00")

    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError, TypeError) as e:
        raise TimezoneConversionError(f"Unknown timezone {tz_name!r}") from e

    try:
        start_local = datetime.combine(day, time(start[0], start[1]), tzinfo=tz)
        if end[0] == 24:
            end_local = datetime.combine(day + timedelta(days=1), time(0, 0), tzinfo=tz)
        else:
            end_local = datetime.combine(day, time(end[0], end[1]), tzinfo=tz)
        start_utc = start_local.astimezone(timezone.utc)
        end_utc = end_local.astimezone(timezone.utc)
    except (OverflowError, ValueError) as e:
        raise TimezoneConversionError(f"Cannot convert window on {day.isoformat()}") from e

    if end_utc <= start_utc:
        raise TimezoneConversionError(
            f"Window ends before it starts start={window.start_time!r} end={window.end_time!r}"
        )
    return start_utc, end_utc


class SlotGenerator:
    """
    Candidate slots for one date from a weekly schedule.

    Candidate starts advance in fixed steps regardless of duration, so durations
    longer than the step produce overlapping candidates. They are alternative
    choices, not duplicates.
    """

    def __init__(self, step_minutes: int = DEFAULT_STEP_MINUTES) -> None:
        if step_minutes <= 0:
            raise ValueError("step_minutes must be positive")
        self._step = timedelta(minutes=step_minutes)

    def generate(self, day: date, schedule: CoachSchedule, duration_minutes: int) -> list[TimeSlot]:
        if duration_minutes <= 0:
            raise ValueError("duration_minutes must be positive")

        duration = timedelta(minutes=duration_minutes)
        slots: list[TimeSlot] = []

        for window in windows_for_day(schedule, day):
            try:
                window_start, window_end = window_bounds_utc(window, day, schedule.timezone)
            except TimezoneConversionError as e:
                logger.warning(
                    "Skipping availability window",
                    extra={"coach_id": schedule.coach_id, "date": day.isoformat(), "reason": str(e)},
                )
                continue

            cursor = window_start
            while cursor < window_end:
                candidate_end = cursor + duration
                if candidate_end <= window_end:
                    slots.append(TimeSlot(start_utc=cursor, end_utc=candidate_end))
                cursor += self._step

        logger.debug(
            "Generated candidate slots",
            extra={"coach_id": schedule.coach_id, "date": day.isoformat(), "count": len(slots)},
        )
        return slots
