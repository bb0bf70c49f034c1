from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from coachbook.application.exceptions import (
    BookingRaceLost,
    BookingSubmissionError,
    BookingValidationError,
    CoachNotFound,
    SlotNotOffered,
    UnknownEventType,
)
from coachbook.application.ports.booking_submission import BookingSubmissionPort
from coachbook.application.ports.busy_times import CalendarBusyTimePort
from coachbook.application.ports.schedule_repository import ScheduleRepositoryPort
from coachbook.application.use_cases.slot_resolution import SlotResolutionService
from coachbook.application.utils.booking_window import BookingWindowPolicy
from coachbook.application.utils.busy_time_cache import BOOKING_CACHE_POLICY, CachePolicy
from coachbook.application.utils.clock import Clock
from coachbook.application.utils.slot_generator import SlotGenerator
from coachbook.domain.entities.booking import Attendee, BookingConfirmation
from coachbook.domain.entities.resolution_state import ResolutionState, ResolutionStatus
from coachbook.domain.entities.schedule import EventType

RACE_LOST_MESSAGE = "That time was just booked by someone else. Please pick another time."


@dataclass(frozen=True)
class BookingResult:
    action: str  # "booked", "rescheduled", "race_lost", "slot_not_offered", "invalid", "failed"
    message: str | None
    confirmation: BookingConfirmation | None
    state: ResolutionState


class BookingUseCase:
    def __init__(
        self,
        schedules: ScheduleRepositoryPort,
        busy_times: CalendarBusyTimePort,
        submission: BookingSubmissionPort,
        cache_policy: CachePolicy = BOOKING_CACHE_POLICY,
        window_policy: BookingWindowPolicy | None = None,
        slot_generator: SlotGenerator | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._schedules = schedules
        self._busy_times = busy_times
        self._submission = submission
        self._cache_policy = cache_policy
        self._window_policy = window_policy
        self._slot_generator = slot_generator
        self._clock = clock
        self._logger = logging.getLogger(__name__)

    async def open(
        self,
        coach_ref: str,
        viewer_timezone: str = "UTC",
        event_type_id: int | None = None,
    ) -> SlotResolutionService:
        """
        Start a booking session for a coach and load its availability.
        The chosen event type fixes the duration; without one the schedule default applies.
        """
        duration = None
        if event_type_id is not None:
            event_type = await self.find_event_type(coach_ref, event_type_id)
            if event_type is not None:
                duration = event_type.duration_minutes

        service = SlotResolutionService(
            coach_ref=coach_ref,
            schedules=self._schedules,
            busy_times=self._busy_times,
            cache_policy=self._cache_policy,
            window_policy=self._window_policy,
            slot_generator=self._slot_generator,
            viewer_timezone=viewer_timezone,
            duration_minutes=duration,
            clock=self._clock,
        )
        await service.load()
        return service

    async def find_event_type(self, coach_ref: str, event_type_id: int) -> EventType | None:
        try:
            coach_id = await self._schedules.resolve_coach_id(coach_ref)
        except CoachNotFound:
            return None
        for event_type in await self._schedules.list_event_types(coach_id):
            if event_type.event_type_id == event_type_id:
                return event_type
        raise UnknownEventType(f"Unknown event type {event_type_id}")

    async def book(
        self,
        service: SlotResolutionService,
        start_utc: datetime,
        end_utc: datetime,
        attendee: Attendee,
        event_type_id: int | None = None,
    ) -> BookingResult:
        state = service.state
        if state.status != ResolutionStatus.ready or state.coach_id is None:
            return BookingResult(
                action="slot_not_offered",
                message=state.error_message or "No times are available to book.",
                confirmation=None,
                state=state,
            )

        try:
            slot = service.require_offered(start_utc, end_utc)
        except SlotNotOffered as e:
            return BookingResult(action="slot_not_offered", message=str(e), confirmation=None, state=state)

        try:
            confirmation = await self._submission.create(
                coach_id=state.coach_id,
                event_type_id=event_type_id,
                start_utc=slot.start_utc,
                end_utc=slot.end_utc,
                attendee=attendee,
            )
        except BookingRaceLost as e:
            self._logger.warning(
                "Booking race lost",
                extra={"coach_id": state.coach_id, "date": slot.start_utc.isoformat(), "error": str(e)},
            )
            service.invalidate_busy_times()
            refreshed = await service.refresh()
            return BookingResult(action="race_lost", message=RACE_LOST_MESSAGE, confirmation=None, state=refreshed)
        except BookingValidationError as e:
            self._logger.warning("Booking rejected", extra={"coach_id": state.coach_id, "error": str(e)})
            return BookingResult(action="invalid", message=str(e), confirmation=None, state=state)
        except BookingSubmissionError as e:
            self._logger.error("Error creating booking", extra={"coach_id": state.coach_id, "error": str(e)})
            return BookingResult(
                action="failed",
                message="Could not complete booking. Please try again later.",
                confirmation=None,
                state=state,
            )

        self._logger.info(
            "Booking created",
            extra={"coach_id": state.coach_id, "date": slot.start_utc.isoformat(), "status": confirmation.status},
        )
        # The booked slot and the candidates overlapping it must not be offered again.
        service.invalidate_busy_times()
        refreshed = await service.refresh()
        return BookingResult(action="booked", message=None, confirmation=confirmation, state=refreshed)
