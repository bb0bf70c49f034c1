from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Attendee:
    name: str
    email: str
    time_zone: str = "UTC"
    notes: str | None = None


@dataclass(frozen=True)
class BookingConfirmation:
    booking_uid: str
    start_utc: datetime
    end_utc: datetime
    status: str = "accepted"


@dataclass(frozen=True)
class CoachingSession:
    session_id: str
    coach_id: str
    start_utc: datetime
    end_utc: datetime
    status: str = "SCHEDULED"  # "SCHEDULED", "RESCHEDULED", "CANCELLED", "COMPLETED"
    booking_uid: str | None = None

    @property
    def duration_minutes(self) -> int:
        return int((self.end_utc - self.start_utc).total_seconds() // 60)
