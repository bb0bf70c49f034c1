from __future__ import annotations

import asyncio
from datetime import date, datetime, timedelta, timezone

from coachbook.application.ports.busy_times import CalendarBusyTimePort
from coachbook.domain.entities.schedule import CoachSchedule, WeeklyAvailabilityWindow
from coachbook.domain.entities.time_slot import BusyInterval

# Sunday. The booking window is Monday 2030-01-07 through Monday 2030-01-21.
NOW = datetime(2030, 1, 6, 12, 0, tzinfo=timezone.utc)
MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)
SATURDAY = date(2030, 1, 12)

COACH_ID = "coach_jane"


class FakeClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingBusyTimes(CalendarBusyTimePort):
    """Busy time provider with call recording, optional failures and per-date gates."""

    def __init__(self, intervals: list[BusyInterval] | None = None) -> None:
        self.intervals = list(intervals or [])
        self.calls: list[date] = []
        self.gates: dict[date, asyncio.Event] = {}
        self.error: Exception | None = None

    async def fetch_busy_times(self, coach_id: str, from_date: date, span_days: int = 31) -> list[BusyInterval]:
        self.calls.append(from_date)
        gate = self.gates.get(from_date)
        if gate is not None:
            await gate.wait()
        if self.error is not None:
            raise self.error
        return list(self.intervals)


def weekday_schedule(coach_id: str = COACH_ID, tz: str = "America/New_York", duration: int = 60) -> CoachSchedule:
    return CoachSchedule(
        coach_id=coach_id,
        timezone=tz,
        windows=(
            WeeklyAvailabilityWindow(
                days_of_week=("Monday", "Tuesday", "Wednesday", "Thursday", "Friday"),
                start_time="09:00",
                end_time="17:00",
            ),
        ),
        default_duration_minutes=duration,
    )


def utc(year: int, month: int, day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)
