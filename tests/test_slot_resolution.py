from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import date, timedelta

import pytest

from coachbook.application.exceptions import CalendarFetchFailed, SlotNotOffered
from coachbook.application.use_cases.slot_resolution import CALENDAR_WARNING, SlotResolutionService
from coachbook.application.utils.busy_time_cache import BOOKING_CACHE_POLICY
from coachbook.domain.entities.resolution_state import ResolutionStatus
from coachbook.domain.entities.time_slot import BusyInterval
from coachbook.infrastructure.store.memory_store import MemoryScheduleRepository

from tests.helpers import COACH_ID, MONDAY, SATURDAY, TUESDAY, RecordingBusyTimes, utc, weekday_schedule

# Weekdays from Monday 2030-01-07 through Monday 2030-01-21
WEEKDAYS_IN_WINDOW = [
    date(2030, 1, d) for d in (7, 8, 9, 10, 11, 14, 15, 16, 17, 18, 21)
]


def _service(repository, busy_times, clock, **kwargs) -> SlotResolutionService:
    return SlotResolutionService(
        coach_ref=kwargs.pop("coach_ref", COACH_ID),
        schedules=repository,
        busy_times=busy_times,
        clock=clock,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_load_walks_the_state_machine(repository, clock):
    service = _service(repository, RecordingBusyTimes(), clock)

    state = await service.load()

    assert state.status == ResolutionStatus.ready
    assert service.status_history == [
        ResolutionStatus.idle,
        ResolutionStatus.loading_schedule,
        ResolutionStatus.loading_busy_times,
        ResolutionStatus.computing_slots,
        ResolutionStatus.ready,
    ]
    assert state.coach_id == COACH_ID
    assert state.timezone == "America/New_York"
    assert state.duration_minutes == 60
    assert list(state.bookable_dates) == WEEKDAYS_IN_WINDOW
    assert state.selected_date == MONDAY
    assert len(state.slots) == 15
    # 09:00-16:00 New York is 14:00-21:00 UTC
    assert [g.title for g in state.groups] == ["Afternoon", "Evening"]
    assert state.warnings == ()


@pytest.mark.asyncio
async def test_load_resolves_profile_slug(repository, clock):
    service = _service(repository, RecordingBusyTimes(), clock, coach_ref="Jane-Doe")
    state = await service.load()

    assert state.status == ResolutionStatus.ready
    assert state.coach_id == COACH_ID


@pytest.mark.asyncio
async def test_busy_times_fetched_once_for_whole_window(repository, clock):
    provider = RecordingBusyTimes()
    service = _service(repository, provider, clock)

    await service.load()
    await service.select_date(date(2030, 1, 15))

    assert provider.calls == [MONDAY]


@pytest.mark.asyncio
async def test_unknown_coach(repository, clock):
    state = await _service(repository, RecordingBusyTimes(), clock, coach_ref="nobody").load()

    assert state.status == ResolutionStatus.error
    assert state.error_code == "coach_not_found"


@pytest.mark.asyncio
async def test_coach_without_schedule(repository, clock):
    state = await _service(repository, RecordingBusyTimes(), clock, coach_ref="coach_unpublished").load()

    assert state.status == ResolutionStatus.error
    assert state.error_code == "schedule_unavailable"
    assert state.slots == ()


@pytest.mark.asyncio
async def test_fully_booked_window_is_empty(repository, clock):
    everything = BusyInterval(start_utc=utc(2030, 1, 1, 0), end_utc=utc(2030, 2, 28, 0))
    state = await _service(repository, RecordingBusyTimes([everything]), clock).load()

    assert state.status == ResolutionStatus.empty
    assert state.error_code == "no_availability_in_window"
    assert "15 days" in state.error_message
    assert state.bookable_dates == ()
    assert state.selected_date is None


@pytest.mark.asyncio
async def test_calendar_outage_fails_open_with_warning(repository, clock):
    provider = RecordingBusyTimes()
    provider.error = CalendarFetchFailed("calendar down")

    state = await _service(repository, provider, clock).load()

    assert state.status == ResolutionStatus.ready
    assert state.warnings == (CALENDAR_WARNING,)
    assert len(state.slots) == 15


@pytest.mark.asyncio
async def test_calendar_outage_is_asked_once_per_pass(repository, clock):
    provider = RecordingBusyTimes()
    provider.error = CalendarFetchFailed("calendar down")
    service = _service(repository, provider, clock)

    state = await service.load()

    assert provider.calls == [MONDAY]
    assert state.bookable_dates == tuple(WEEKDAYS_IN_WINDOW)

    await service.refresh()
    assert provider.calls == [MONDAY, MONDAY]

    # once the calendar recovers the next pass sees its busy times again
    provider.error = None
    provider.intervals = [BusyInterval(start_utc=utc(2030, 1, 7, 14), end_utc=utc(2030, 1, 7, 22))]
    state = await service.refresh()
    assert state.warnings == ()
    assert state.bookable_dates[0] == TUESDAY


@pytest.mark.asyncio
async def test_calendar_outage_fails_closed_when_configured(repository, clock):
    provider = RecordingBusyTimes()
    provider.error = CalendarFetchFailed("calendar down")
    policy = replace(BOOKING_CACHE_POLICY, fail_open=False)

    state = await _service(repository, provider, clock, cache_policy=policy).load()

    assert state.status == ResolutionStatus.error
    assert state.error_code == CALENDAR_WARNING


@pytest.mark.asyncio
async def test_select_date(repository, clock):
    service = _service(repository, RecordingBusyTimes(), clock)
    await service.load()

    state = await service.select_date(TUESDAY)

    assert state.status == ResolutionStatus.ready
    assert state.selected_date == TUESDAY
    assert state.slots[0].start_utc == utc(2030, 1, 8, 14)
    assert service.status_history[-3:] == [
        ResolutionStatus.loading_busy_times,
        ResolutionStatus.computing_slots,
        ResolutionStatus.ready,
    ]


@pytest.mark.asyncio
async def test_select_date_without_hours_is_empty(repository, clock):
    service = _service(repository, RecordingBusyTimes(), clock)
    await service.load()

    state = await service.select_date(SATURDAY)

    assert state.status == ResolutionStatus.empty
    assert state.slots == ()
    assert state.groups == ()


@pytest.mark.asyncio
async def test_select_date_outside_window_rejected(repository, clock):
    service = _service(repository, RecordingBusyTimes(), clock)
    await service.load()

    with pytest.raises(ValueError):
        await service.select_date(date(2030, 1, 6))
    with pytest.raises(ValueError):
        await service.select_date(date(2030, 1, 22))


@pytest.mark.asyncio
async def test_select_before_load_rejected(repository, clock):
    service = _service(repository, RecordingBusyTimes(), clock)
    with pytest.raises(RuntimeError):
        await service.select_date(MONDAY)


@pytest.mark.asyncio
async def test_selected_date_dropping_out_moves_to_first_remaining(repository, clock):
    provider = RecordingBusyTimes()
    service = _service(repository, provider, clock)
    await service.load()

    # Tuesday fills up after the dates were computed
    provider.intervals = [BusyInterval(start_utc=utc(2030, 1, 8, 0), end_utc=utc(2030, 1, 9, 0))]
    service.invalidate_busy_times()
    state = await service.select_date(TUESDAY)

    assert TUESDAY not in state.bookable_dates
    assert state.selected_date == MONDAY
    assert state.status == ResolutionStatus.ready


@pytest.mark.asyncio
async def test_late_response_for_earlier_selection_is_discarded(repository, clock):
    provider = RecordingBusyTimes()
    service = _service(repository, provider, clock)
    await service.load()
    service.invalidate_busy_times()

    tuesday_gate = asyncio.Event()
    provider.gates = {TUESDAY: tuesday_gate}

    # Tuesday is selected first but answers last
    tuesday_task = asyncio.create_task(service.select_date(TUESDAY))
    await asyncio.sleep(0)
    monday_task = asyncio.create_task(service.select_date(MONDAY))
    await asyncio.sleep(0)

    await monday_task
    assert service.state.selected_date == MONDAY

    tuesday_gate.set()
    await tuesday_task

    assert service.state.selected_date == MONDAY
    assert service.state.status == ResolutionStatus.ready
    assert all(slot.start_utc.date() == MONDAY for slot in service.state.slots)


@pytest.mark.asyncio
async def test_duration_change_recomputes(repository, clock):
    service = _service(repository, RecordingBusyTimes(), clock)
    await service.load()

    state = await service.set_duration(30)

    assert state.duration_minutes == 30
    assert len(state.slots) == 16
    with pytest.raises(ValueError):
        await service.set_duration(0)


@pytest.mark.asyncio
async def test_viewer_timezone_regroups(repository, clock):
    service = _service(repository, RecordingBusyTimes(), clock)
    await service.load()

    # 09:00-16:00 New York is 23:00-06:00 in Tokyo
    state = service.set_viewer_timezone("Asia/Tokyo")

    assert [g.title for g in state.groups] == ["Morning", "Evening"]
    assert sum(len(g.slots) for g in state.groups) == 15


@pytest.mark.asyncio
async def test_require_offered(repository, clock):
    service = _service(repository, RecordingBusyTimes(), clock)
    await service.load()
    slot = service.state.slots[3]

    assert service.require_offered(slot.start_utc, slot.end_utc) == slot
    with pytest.raises(SlotNotOffered):
        service.require_offered(slot.start_utc, slot.end_utc + timedelta(minutes=30))


@pytest.mark.asyncio
async def test_schedule_with_only_bad_windows_has_no_availability(clock):
    broken = replace(weekday_schedule(), timezone="Not/AZone")
    repository = MemoryScheduleRepository(schedules=[broken])

    state = await _service(repository, RecordingBusyTimes(), clock).load()

    assert state.status == ResolutionStatus.empty
    assert state.error_code == "no_availability_in_window"
