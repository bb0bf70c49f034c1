from __future__ import annotations

import pytest

from coachbook.domain.entities.booking import CoachingSession
from coachbook.domain.entities.schedule import CoachSchedule, EventType
from coachbook.infrastructure.calendar.mock_calendar import MockCalendar
from coachbook.infrastructure.store.memory_store import MemoryScheduleRepository

from tests.helpers import COACH_ID, FakeClock, utc, weekday_schedule


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def schedule() -> CoachSchedule:
    return weekday_schedule()


@pytest.fixture
def repository(schedule: CoachSchedule) -> MemoryScheduleRepository:
    return MemoryScheduleRepository(
        schedules=[schedule],
        slugs={"jane-doe": COACH_ID},
        event_types={
            COACH_ID: [
                EventType(event_type_id=101, title="Intro call", duration_minutes=30),
                EventType(event_type_id=102, title="Coaching session", duration_minutes=60, is_default=True),
            ]
        },
        sessions=[
            # Monday 09:00-10:00 New York
            CoachingSession(
                session_id="session_1",
                coach_id=COACH_ID,
                start_utc=utc(2030, 1, 7, 14),
                end_utc=utc(2030, 1, 7, 15),
                booking_uid="cal_uid_1",
            ),
            CoachingSession(
                session_id="session_cancelled",
                coach_id=COACH_ID,
                start_utc=utc(2030, 1, 8, 14),
                end_utc=utc(2030, 1, 8, 15),
                status="CANCELLED",
            ),
        ],
        coach_ids={"coach_unpublished"},
    )


@pytest.fixture
def calendar(repository: MemoryScheduleRepository) -> MockCalendar:
    return MockCalendar(sessions=repository)
