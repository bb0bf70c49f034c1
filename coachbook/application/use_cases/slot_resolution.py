from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import date, datetime

from coachbook.application.exceptions import (
    CalendarFetchFailed,
    CoachNotFound,
    NoAvailabilityInWindow,
    ScheduleUnavailable,
    SlotNotOffered,
)
from coachbook.application.ports.busy_times import CalendarBusyTimePort
from coachbook.application.ports.schedule_repository import ScheduleRepositoryPort
from coachbook.application.utils.booking_window import BookingWindowPolicy
from coachbook.application.utils.busy_time_cache import BOOKING_CACHE_POLICY, BusyTimeCache, CachePolicy
from coachbook.application.utils.clock import Clock, local_today, utc_now
from coachbook.application.utils.conflict_filter import filter_conflicts
from coachbook.application.utils.slot_generator import SlotGenerator, schedule_covers_weekday
from coachbook.application.utils.slot_grouping import group_slots
from coachbook.domain.entities.booking_window import BookingWindow
from coachbook.domain.entities.resolution_state import ResolutionState, ResolutionStatus
from coachbook.domain.entities.schedule import CoachSchedule
from coachbook.domain.entities.time_slot import TimeSlot

CALENDAR_WARNING = "calendar_unavailable"


class DateAvailabilityResolver:
    """Runs generate -> busy times -> conflict filter for each date of the booking window."""

    def __init__(
        self,
        cache: BusyTimeCache,
        window_policy: BookingWindowPolicy,
        slot_generator: SlotGenerator,
    ) -> None:
        self._cache = cache
        self._window_policy = window_policy
        self._slot_generator = slot_generator

    async def resolve(
        self,
        schedule: CoachSchedule,
        duration_minutes: int,
        today: date,
        calendar_down: bool = False,
    ) -> dict[date, list[TimeSlot]]:
        """
        Bookable dates of the window mapped to their free slots, in date order.
        Raises NoAvailabilityInWindow when no date has a free slot.

        Once a busy-times fetch fails (or calendar_down is passed in) the rest of
        the pass treats the calendar as empty instead of asking it again.
        """
        bookable: dict[date, list[TimeSlot]] = {}
        for day in self._window_policy.dates(today):
            if not schedule_covers_weekday(schedule, day):
                continue
            candidates = self._slot_generator.generate(day, schedule, duration_minutes)
            if not candidates:
                continue
            if calendar_down:
                busy = []
            else:
                busy = await self._cache.get(day)
                calendar_down = self._cache.last_error is not None
            slots = filter_conflicts(candidates, busy)
            if slots:
                bookable[day] = slots
        if not bookable:
            raise NoAvailabilityInWindow(
                f"No available booking slots found in the next {self._window_policy.days} days."
            )
        return bookable


class SlotResolutionService:
    """
    Availability for one viewer session against one coach.

    The booking and reschedule flows use this same pipeline; they differ only in
    the cache policy and whether the duration is fixed. Every date selection bumps
    a generation counter and results are committed only while their generation is
    still current, so a slow response for an earlier selection is dropped.
    """

    def __init__(
        self,
        coach_ref: str,
        schedules: ScheduleRepositoryPort,
        busy_times: CalendarBusyTimePort,
        cache_policy: CachePolicy = BOOKING_CACHE_POLICY,
        window_policy: BookingWindowPolicy | None = None,
        slot_generator: SlotGenerator | None = None,
        viewer_timezone: str = "UTC",
        duration_minutes: int | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._coach_ref = coach_ref
        self._schedules = schedules
        self._busy_times = busy_times
        self._cache_policy = cache_policy
        self._window_policy = window_policy or BookingWindowPolicy()
        self._slot_generator = slot_generator or SlotGenerator()
        self._viewer_timezone = viewer_timezone
        self._duration_override = duration_minutes
        self._clock = clock or utc_now
        self._schedule: CoachSchedule | None = None
        self._cache: BusyTimeCache | None = None
        self._resolver: DateAvailabilityResolver | None = None
        self._generation = 0
        self._state = ResolutionState()
        self._history: list[ResolutionStatus] = [ResolutionStatus.idle]
        self._logger = logging.getLogger(__name__)

    @property
    def state(self) -> ResolutionState:
        return self._state

    @property
    def status_history(self) -> list[ResolutionStatus]:
        return list(self._history)

    @property
    def schedule(self) -> CoachSchedule | None:
        return self._schedule

    @property
    def cache(self) -> BusyTimeCache | None:
        return self._cache

    @property
    def cache_policy(self) -> CachePolicy:
        return self._cache_policy

    @property
    def viewer_timezone(self) -> str:
        return self._viewer_timezone

    @property
    def duration_minutes(self) -> int | None:
        if self._duration_override is not None:
            return self._duration_override
        if self._schedule is not None:
            return self._schedule.default_duration_minutes
        return None

    def booking_window(self) -> BookingWindow:
        return self._window_policy.compute_window(self._today())

    async def load(self) -> ResolutionState:
        """Resolve the coach, fetch the schedule and compute the bookable dates."""
        self._set_state(replace(self._state, status=ResolutionStatus.loading_schedule))

        try:
            coach_id = await self._schedules.resolve_coach_id(self._coach_ref)
        except CoachNotFound as e:
            self._logger.warning("Coach not found", extra={"coach_id": self._coach_ref, "error": str(e)})
            return self._fail("coach_not_found", "Coach not found. Please check the link and try again.")

        self._cache = BusyTimeCache(self._busy_times, coach_id, self._cache_policy, self._clock)
        self._resolver = DateAvailabilityResolver(self._cache, self._window_policy, self._slot_generator)
        self._set_state(replace(self._state, coach_id=coach_id))

        # Busy times for the window start are warmed while the schedule loads.
        schedule_result, busy_result = await asyncio.gather(
            self._schedules.fetch(coach_id),
            self._cache.get(self.booking_window().earliest),
            return_exceptions=True,
        )
        if isinstance(schedule_result, ScheduleUnavailable):
            self._logger.warning("No schedule for coach", extra={"coach_id": coach_id, "error": str(schedule_result)})
            return self._fail("schedule_unavailable", "This coach has not published an availability schedule yet.")
        if isinstance(schedule_result, BaseException):
            raise schedule_result
        if isinstance(busy_result, CalendarFetchFailed):
            return self._fail(CALENDAR_WARNING, "Could not load the coach calendar.")
        if isinstance(busy_result, BaseException):
            raise busy_result

        self._schedule = schedule_result
        self._set_state(
            replace(
                self._state,
                status=ResolutionStatus.loading_busy_times,
                timezone=schedule_result.timezone,
                duration_minutes=self.duration_minutes,
            )
        )
        # A failed warm-up fetch is not retried for every date of the first pass.
        return await self._refresh(calendar_down=self._cache.last_error is not None)

    async def refresh(self) -> ResolutionState:
        """Recompute the bookable dates and keep or replace the selected date."""
        return await self._refresh()

    async def _refresh(self, calendar_down: bool = False) -> ResolutionState:
        schedule, resolver = self._require_loaded()
        self._generation += 1
        generation = self._generation

        self._set_state(replace(self._state, status=ResolutionStatus.computing_slots))
        try:
            bookable = await resolver.resolve(
                schedule, self.duration_minutes, self._today(), calendar_down=calendar_down
            )
        except (CalendarFetchFailed, NoAvailabilityInWindow) as e:
            if generation != self._generation:
                return self._state
            if isinstance(e, NoAvailabilityInWindow):
                return self._no_availability(str(e))
            return self._fail(CALENDAR_WARNING, "Could not load the coach calendar.")

        dates = tuple(bookable)
        if generation != self._generation:
            # A date was selected meanwhile; keep its slots and only update the date list.
            self._logger.info("Refresh superseded by date selection", extra={"coach_id": schedule.coach_id})
            self._set_state(replace(self._state, bookable_dates=dates))
            return self._state

        selected = self._state.selected_date
        if selected not in bookable:
            selected = dates[0]

        self._logger.info(
            "Bookable dates resolved",
            extra={"coach_id": schedule.coach_id, "count": len(dates), "date": selected.isoformat()},
        )
        return self._commit_slots(selected, bookable[selected], bookable_dates=dates)

    async def select_date(self, day: date) -> ResolutionState:
        """Select a date and compute its slots. A later selection supersedes this one."""
        schedule, resolver = self._require_loaded()
        if not self._window_policy.is_within_window(day, self._today()):
            raise ValueError(f"{day.isoformat()} is outside the booking window")

        self._generation += 1
        generation = self._generation
        self._set_state(
            replace(
                self._state,
                status=ResolutionStatus.loading_busy_times,
                selected_date=day,
                slots=(),
                groups=(),
                error_code=None,
                error_message=None,
            )
        )

        try:
            candidates = self._slot_generator.generate(day, schedule, self.duration_minutes)
            busy = await self._cache.get(day) if candidates else []
        except CalendarFetchFailed:
            if generation != self._generation:
                return self._state
            return self._fail(CALENDAR_WARNING, "Could not load the coach calendar.")

        if generation != self._generation:
            self._logger.info(
                "Discarding superseded busy times response",
                extra={"coach_id": schedule.coach_id, "date": day.isoformat()},
            )
            return self._state

        self._set_state(replace(self._state, status=ResolutionStatus.computing_slots))
        slots = filter_conflicts(candidates, busy)

        if not slots and day in self._state.bookable_dates:
            # Newly fetched conflicts emptied a previously bookable date.
            remaining = tuple(d for d in self._state.bookable_dates if d != day)
            self._set_state(replace(self._state, bookable_dates=remaining))
            if not remaining:
                return self._no_availability()
            self._logger.info(
                "Selected date no longer bookable",
                extra={"coach_id": schedule.coach_id, "date": day.isoformat()},
            )
            return await self.select_date(remaining[0])

        return self._commit_slots(day, slots)

    async def set_duration(self, duration_minutes: int) -> ResolutionState:
        if duration_minutes <= 0:
            raise ValueError("duration_minutes must be positive")
        self._duration_override = duration_minutes
        self._set_state(replace(self._state, duration_minutes=duration_minutes))
        if self._schedule is None:
            return self._state
        return await self.refresh()

    def set_viewer_timezone(self, viewer_timezone: str) -> ResolutionState:
        self._viewer_timezone = viewer_timezone
        if self._state.slots:
            self._set_state(replace(self._state, groups=tuple(group_slots(self._state.slots, viewer_timezone))))
        return self._state

    def require_offered(self, start_utc: datetime, end_utc: datetime) -> TimeSlot:
        """Return the offered slot matching start/end or raise SlotNotOffered."""
        for slot in self._state.slots:
            if slot.start_utc == start_utc and slot.end_utc == end_utc:
                return slot
        raise SlotNotOffered("That time is not available. Please pick another time.")

    def invalidate_busy_times(self) -> None:
        if self._cache is not None:
            self._cache.invalidate()

    def _commit_slots(
        self,
        day: date,
        slots: list[TimeSlot],
        bookable_dates: tuple[date, ...] | None = None,
    ) -> ResolutionState:
        warnings = (CALENDAR_WARNING,) if self._cache is not None and self._cache.last_error else ()
        status = ResolutionStatus.ready if slots else ResolutionStatus.empty
        self._set_state(
            replace(
                self._state,
                status=status,
                bookable_dates=bookable_dates if bookable_dates is not None else self._state.bookable_dates,
                selected_date=day,
                slots=tuple(slots),
                groups=tuple(group_slots(slots, self._viewer_timezone)),
                duration_minutes=self.duration_minutes,
                warnings=warnings,
                error_code=None,
                error_message=None,
            )
        )
        return self._state

    def _no_availability(self, message: str | None = None) -> ResolutionState:
        self._logger.warning(
            "No availability in booking window",
            extra={"coach_id": self._state.coach_id, "status": ResolutionStatus.empty.value},
        )
        warnings = (CALENDAR_WARNING,) if self._cache is not None and self._cache.last_error else ()
        self._set_state(
            replace(
                self._state,
                status=ResolutionStatus.empty,
                bookable_dates=(),
                selected_date=None,
                slots=(),
                groups=(),
                warnings=warnings,
                error_code="no_availability_in_window",
                error_message=message
                or f"No available booking slots found in the next {self._window_policy.days} days.",
            )
        )
        return self._state

    def _fail(self, code: str, message: str) -> ResolutionState:
        self._set_state(
            replace(
                self._state,
                status=ResolutionStatus.error,
                slots=(),
                groups=(),
                error_code=code,
                error_message=message,
            )
        )
        return self._state

    def _set_state(self, state: ResolutionState) -> None:
        if state.status != self._state.status:
            self._history.append(state.status)
        self._state = state

    def _require_loaded(self) -> tuple[CoachSchedule, DateAvailabilityResolver]:
        if self._schedule is None or self._resolver is None:
            raise RuntimeError("Availability has not been loaded")
        return self._schedule, self._resolver

    def _today(self) -> date:
        return local_today(self._clock, self._viewer_timezone)
