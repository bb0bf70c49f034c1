from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone

from coachbook.application.exceptions import BookingRaceLost, CalendarFetchFailed, RescheduleFailed
from coachbook.application.ports.booking_submission import (
    BookingSubmissionPort,
    RescheduleSubmissionPort,
    SessionLookupPort,
)
from coachbook.application.ports.busy_times import CalendarBusyTimePort
from coachbook.application.utils.conflict_filter import overlaps
from coachbook.domain.entities.booking import Attendee, BookingConfirmation
from coachbook.domain.entities.time_slot import BusyInterval


class MockCalendar(CalendarBusyTimePort, BookingSubmissionPort, RescheduleSubmissionPort):
    def __init__(
        self,
        busy: dict[str, list[BusyInterval]] | None = None,
        sessions: SessionLookupPort | None = None,
    ) -> None:
        self._busy: dict[str, list[BusyInterval]] = {k: list(v) for k, v in (busy or {}).items()}
        self._bookings: dict[str, tuple[str, datetime, datetime]] = {}
        self._moved: dict[str, str] = {}  # session_id -> booking_uid
        self._sessions = sessions
        self._unavailable = False
        self.fetch_calls: list[tuple[str, date, int]] = []
        self._logger = logging.getLogger(__name__)

    def add_busy(self, coach_id: str, start_utc: datetime, end_utc: datetime, source: str = "mock") -> None:
        self._busy.setdefault(coach_id, []).append(BusyInterval(start_utc=start_utc, end_utc=end_utc, source=source))

    def set_unavailable(self, unavailable: bool = True) -> None:
        self._unavailable = unavailable

    async def fetch_busy_times(self, coach_id: str, from_date: date, span_days: int = 31) -> list[BusyInterval]:
        self.fetch_calls.append((coach_id, from_date, span_days))
        if self._unavailable:
            raise CalendarFetchFailed("Mock calendar unavailable")

        range_start = datetime.combine(from_date, time.min, tzinfo=timezone.utc) - timedelta(days=1)
        range_end = range_start + timedelta(days=span_days + 2)
        intervals = [
            interval
            for interval in self._all_busy(coach_id)
            if overlaps(interval.start_utc, interval.end_utc, range_start, range_end)
        ]
        return sorted(intervals, key=lambda i: i.start_utc)

    async def create(
        self,
        coach_id: str,
        event_type_id: int | None,
        start_utc: datetime,
        end_utc: datetime,
        attendee: Attendee,
    ) -> BookingConfirmation:
        for interval in self._all_busy(coach_id):
            if overlaps(start_utc, end_utc, interval.start_utc, interval.end_utc):
                raise BookingRaceLost("Slot is no longer available")

        booking_uid = f"mock_booking_{len(self._bookings) + 1}"
        self._bookings[booking_uid] = (coach_id, start_utc, end_utc)
        self._logger.info(
            "Mock booking created",
            extra={"coach_id": coach_id, "date": start_utc.isoformat(), "reason": attendee.email},
        )
        return BookingConfirmation(booking_uid=booking_uid, start_utc=start_utc, end_utc=end_utc)

    async def update(
        self,
        session_id: str,
        new_start_utc: datetime,
        new_end_utc: datetime,
        reason: str | None = None,
    ) -> BookingConfirmation:
        if self._sessions is None:
            raise RescheduleFailed("Mock calendar has no session lookup")
        session = await self._sessions.get_session(session_id)

        previous_uid = self._moved.get(session_id) or session.booking_uid
        for uid, (coach_id, start, end) in self._bookings.items():
            if uid == previous_uid or coach_id != session.coach_id:
                continue
            if overlaps(new_start_utc, new_end_utc, start, end):
                raise BookingRaceLost("Slot is no longer available")
        for interval in self._busy.get(session.coach_id, []):
            if overlaps(new_start_utc, new_end_utc, interval.start_utc, interval.end_utc):
                raise BookingRaceLost("Slot is no longer available")

        if previous_uid:
            self._bookings.pop(previous_uid, None)
        booking_uid = f"mock_booking_{len(self._bookings) + 1}_{session_id}"
        self._bookings[booking_uid] = (session.coach_id, new_start_utc, new_end_utc)
        self._moved[session_id] = booking_uid
        self._logger.info(
            "Mock session rescheduled",
            extra={"coach_id": session.coach_id, "date": new_start_utc.isoformat(), "reason": reason},
        )
        return BookingConfirmation(booking_uid=booking_uid, start_utc=new_start_utc, end_utc=new_end_utc)

    def _all_busy(self, coach_id: str) -> list[BusyInterval]:
        booked = [
            BusyInterval(start_utc=start, end_utc=end, source="booking")
            for owner, start, end in self._bookings.values()
            if owner == coach_id
        ]
        return [*self._busy.get(coach_id, []), *booked]
