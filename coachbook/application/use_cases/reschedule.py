from __future__ import annotations

import logging
from datetime import datetime

from coachbook.application.exceptions import BookingRaceLost, RescheduleFailed, SlotNotOffered
from coachbook.application.ports.booking_submission import RescheduleSubmissionPort, SessionLookupPort
from coachbook.application.ports.busy_times import CalendarBusyTimePort
from coachbook.application.ports.schedule_repository import ScheduleRepositoryPort
from coachbook.application.use_cases.booking import RACE_LOST_MESSAGE, BookingResult
from coachbook.application.use_cases.slot_resolution import SlotResolutionService
from coachbook.application.utils.booking_window import BookingWindowPolicy
from coachbook.application.utils.busy_time_cache import RESCHEDULE_CACHE_POLICY, CachePolicy
from coachbook.application.utils.clock import Clock
from coachbook.application.utils.slot_generator import SlotGenerator
from coachbook.domain.entities.booking import CoachingSession
from coachbook.domain.entities.resolution_state import ResolutionStatus

RESCHEDULABLE_STATUSES = ("SCHEDULED", "RESCHEDULED")
DEFAULT_REASON = "User requested reschedule"


class RescheduleUseCase:
    """
    Move an existing session to a new slot. Availability comes from the same
    pipeline as new bookings, with the duration fixed to the original session and
    the shorter reschedule cache TTL.
    """

    def __init__(
        self,
        sessions: SessionLookupPort,
        schedules: ScheduleRepositoryPort,
        busy_times: CalendarBusyTimePort,
        submission: RescheduleSubmissionPort,
        cache_policy: CachePolicy = RESCHEDULE_CACHE_POLICY,
        window_policy: BookingWindowPolicy | None = None,
        slot_generator: SlotGenerator | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._sessions = sessions
        self._schedules = schedules
        self._busy_times = busy_times
        self._submission = submission
        self._cache_policy = cache_policy
        self._window_policy = window_policy
        self._slot_generator = slot_generator
        self._clock = clock
        self._logger = logging.getLogger(__name__)

    async def load_session(self, session_id: str) -> CoachingSession:
        """Raises SessionNotFound, or RescheduleFailed when the session is cancelled or completed."""
        session = await self._sessions.get_session(session_id)
        if session.status not in RESCHEDULABLE_STATUSES:
            raise RescheduleFailed(f"Cannot reschedule a session with status: {session.status}")
        return session

    async def open(self, session_id: str, viewer_timezone: str = "UTC") -> SlotResolutionService:
        session = await self.load_session(session_id)
        service = SlotResolutionService(
            coach_ref=session.coach_id,
            schedules=self._schedules,
            busy_times=self._busy_times,
            cache_policy=self._cache_policy,
            window_policy=self._window_policy,
            slot_generator=self._slot_generator,
            viewer_timezone=viewer_timezone,
            duration_minutes=session.duration_minutes,
            clock=self._clock,
        )
        await service.load()
        return service

    async def reschedule(
        self,
        service: SlotResolutionService,
        session_id: str,
        new_start_utc: datetime,
        new_end_utc: datetime,
        reason: str | None = None,
    ) -> BookingResult:
        state = service.state
        if state.status != ResolutionStatus.ready:
            return BookingResult(
                action="slot_not_offered",
                message=state.error_message or "No times are available to book.",
                confirmation=None,
                state=state,
            )

        try:
            slot = service.require_offered(new_start_utc, new_end_utc)
        except SlotNotOffered as e:
            return BookingResult(action="slot_not_offered", message=str(e), confirmation=None, state=state)

        try:
            confirmation = await self._submission.update(
                session_id=session_id,
                new_start_utc=slot.start_utc,
                new_end_utc=slot.end_utc,
                reason=reason or DEFAULT_REASON,
            )
        except BookingRaceLost as e:
            self._logger.warning("Reschedule race lost", extra={"coach_id": state.coach_id, "error": str(e)})
            service.invalidate_busy_times()
            refreshed = await service.refresh()
            return BookingResult(action="race_lost", message=RACE_LOST_MESSAGE, confirmation=None, state=refreshed)
        except RescheduleFailed as e:
            self._logger.error("Error rescheduling session", extra={"coach_id": state.coach_id, "error": str(e)})
            return BookingResult(action="failed", message=str(e), confirmation=None, state=state)

        self._logger.info(
            "Session rescheduled",
            extra={"coach_id": state.coach_id, "date": slot.start_utc.isoformat(), "status": confirmation.status},
        )
        service.invalidate_busy_times()
        refreshed = await service.refresh()
        return BookingResult(action="rescheduled", message=None, confirmation=confirmation, state=refreshed)
