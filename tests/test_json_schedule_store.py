"""
Tests for the JSON schedule store.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from coachbook.application.exceptions import CoachNotFound, ScheduleUnavailable, SessionNotFound
from coachbook.application.utils.slot_generator import SlotGenerator
from coachbook.infrastructure.store.json_schedule_store import JsonScheduleRepository

from tests.helpers import MONDAY, utc

SAMPLE_STORE = Path(__file__).resolve().parents[1] / "data" / "schedules.json"


def _write(tmp_path: Path, document: dict) -> Path:
    path = tmp_path / "schedules.json"
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


@pytest.mark.asyncio
async def test_reads_camel_case_document(tmp_path):
    path = _write(
        tmp_path,
        {
            "coaches": [
                {
                    "id": "c1",
                    "slug": "Alex-Kim",
                    "schedules": [
                        {
                            "name": "Old",
                            "timeZone": "UTC",
                            "isDefault": True,
                            "active": False,
                            "availability": [{"days": ["Monday"], "startTime": "06:00", "endTime": "07:00"}],
                        },
                        {
                            "name": "Current",
                            "timeZone": "Europe/Berlin",
                            "isDefault": True,
                            "active": True,
                            "defaultDuration": 45,
                            "availability": [{"days": ["MONDAY", 3], "startTime": "09:00", "endTime": "12:00"}],
                        },
                    ],
                    "eventTypes": [{"id": 7, "title": "Deep dive", "length": 90}],
                }
            ]
        },
    )
    repo = JsonScheduleRepository(path)

    assert await repo.resolve_coach_id("alex-kim") == "c1"
    assert await repo.resolve_coach_id("c1") == "c1"

    schedule = await repo.fetch("c1")
    assert schedule.name == "Current"
    assert schedule.timezone == "Europe/Berlin"
    assert schedule.default_duration_minutes == 45
    assert schedule.windows[0].days_of_week == ("MONDAY", 3)
    assert schedule.windows[0].start_time == "09:00"

    event_types = await repo.list_event_types("c1")
    assert [(e.event_type_id, e.duration_minutes) for e in event_types] == [(7, 90)]


@pytest.mark.asyncio
async def test_reads_snake_case_and_string_availability(tmp_path):
    path = _write(
        tmp_path,
        {
            "coaches": [
                {
                    "coach_id": "c2",
                    "schedules": [
                        {
                            "time_zone": "UTC",
                            "is_default": True,
                            "availability": json.dumps(
                                [{"days_of_week": [1], "start_time": "10:00", "end_time": "11:00"}]
                            ),
                        }
                    ],
                }
            ],
            "sessions": [
                {
                    "session_id": "s9",
                    "coach_id": "c2",
                    "start_utc": "2030-01-07T10:00:00Z",
                    "end_utc": "2030-01-07T11:30:00Z",
                    "booking_uid": "uid-9",
                },
                {"session_id": "broken", "coach_id": "c2"},
            ],
        },
    )
    repo = JsonScheduleRepository(path)

    schedule = await repo.fetch("c2")
    assert schedule.default_duration_minutes == 60
    assert [s.start_utc for s in SlotGenerator().generate(MONDAY, schedule, 30)] == [
        utc(2030, 1, 7, 10),
        utc(2030, 1, 7, 10, 30),
    ]

    session = await repo.get_session("s9")
    assert session.duration_minutes == 90
    assert session.status == "SCHEDULED"
    assert session.booking_uid == "uid-9"
    with pytest.raises(SessionNotFound):
        await repo.get_session("broken")


@pytest.mark.asyncio
async def test_coach_without_active_schedule(tmp_path):
    path = _write(tmp_path, {"coaches": [{"id": "c3", "schedules": [{"active": False, "availability": []}]}]})
    repo = JsonScheduleRepository(path)

    assert await repo.resolve_coach_id("c3") == "c3"
    with pytest.raises(ScheduleUnavailable):
        await repo.fetch("c3")


@pytest.mark.asyncio
async def test_non_default_schedule_is_not_used(tmp_path):
    path = _write(
        tmp_path,
        {
            "coaches": [
                {
                    "id": "c5",
                    "schedules": [
                        {
                            "timeZone": "UTC",
                            "isDefault": False,
                            "active": True,
                            "availability": [{"days": [1], "startTime": "09:00", "endTime": "17:00"}],
                        }
                    ],
                }
            ]
        },
    )
    repo = JsonScheduleRepository(path)

    with pytest.raises(ScheduleUnavailable):
        await repo.fetch("c5")


@pytest.mark.asyncio
async def test_malformed_coach_does_not_hide_the_others(tmp_path):
    good_window = [{"days": [1], "startTime": "09:00", "endTime": "10:00"}]
    path = _write(
        tmp_path,
        {
            "coaches": [
                {"id": "broken", "schedules": [{"isDefault": True, "availability": "[{not json"}]},
                {
                    "id": "good",
                    "schedules": [{"isDefault": True, "timeZone": "UTC", "availability": good_window}],
                    "eventTypes": [{"title": "No id"}, {"id": 3, "length": 20}],
                },
            ]
        },
    )
    repo = JsonScheduleRepository(path)

    assert (await repo.fetch("good")).windows[0].start_time == "09:00"
    assert [e.event_type_id for e in await repo.list_event_types("good")] == [3]
    assert await repo.resolve_coach_id("broken") == "broken"
    with pytest.raises(ScheduleUnavailable):
        await repo.fetch("broken")


@pytest.mark.asyncio
async def test_missing_file_has_no_coaches(tmp_path):
    repo = JsonScheduleRepository(tmp_path / "nope.json")

    with pytest.raises(CoachNotFound):
        await repo.resolve_coach_id("anyone")


@pytest.mark.asyncio
async def test_corrupt_file(tmp_path):
    path = tmp_path / "schedules.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ScheduleUnavailable):
        await JsonScheduleRepository(path).resolve_coach_id("anyone")


@pytest.mark.asyncio
async def test_reload_picks_up_changes(tmp_path):
    path = _write(tmp_path, {"coaches": []})
    repo = JsonScheduleRepository(path)
    with pytest.raises(CoachNotFound):
        await repo.resolve_coach_id("c4")

    _write(tmp_path, {"coaches": [{"id": "c4"}]})
    repo.reload()

    assert await repo.resolve_coach_id("c4") == "c4"


@pytest.mark.asyncio
async def test_sample_store_loads():
    repo = JsonScheduleRepository(SAMPLE_STORE)

    assert await repo.resolve_coach_id("jane-doe") == "coach_jane"
    assert (await repo.fetch("coach_raj")).default_duration_minutes == 45
    with pytest.raises(ScheduleUnavailable):
        await repo.fetch(await repo.resolve_coach_id("new-coach"))
    assert (await repo.get_session("session_1")).booking_uid == "cal_uid_1"
