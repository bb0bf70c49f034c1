from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from coachbook.domain.entities.booking import Attendee, BookingConfirmation, CoachingSession


class BookingSubmissionPort(ABC):
    @abstractmethod
    async def create(
        self,
        coach_id: str,
        event_type_id: int | None,
        start_utc: datetime,
        end_utc: datetime,
        attendee: Attendee,
    ) -> BookingConfirmation:
        """Create a booking. Raises BookingValidationError, BookingRaceLost or BookingSubmissionError."""
        raise NotImplementedError


class RescheduleSubmissionPort(ABC):
    @abstractmethod
    async def update(
        self,
        session_id: str,
        new_start_utc: datetime,
        new_end_utc: datetime,
        reason: str | None = None,
    ) -> BookingConfirmation:
        """Move an existing session. Raises RescheduleFailed or BookingRaceLost."""
        raise NotImplementedError


class SessionLookupPort(ABC):
    @abstractmethod
    async def get_session(self, session_id: str) -> CoachingSession:
        """Get an existing session. Raises SessionNotFound."""
        raise NotImplementedError
