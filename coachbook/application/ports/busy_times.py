from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date

from coachbook.domain.entities.time_slot import BusyInterval


class CalendarBusyTimePort(ABC):
    @abstractmethod
    async def fetch_busy_times(self, coach_id: str, from_date: date, span_days: int = 31) -> list[BusyInterval]:
        """Fetch busy intervals starting at from_date. Raises CalendarFetchFailed."""
        raise NotImplementedError
