from __future__ import annotations

from abc import ABC, abstractmethod

from coachbook.domain.entities.schedule import CoachSchedule, EventType


class ScheduleRepositoryPort(ABC):
    @abstractmethod
    async def resolve_coach_id(self, coach_ref: str) -> str:
        """Resolve a coach id or profile slug to a coach id. Raises CoachNotFound."""
        raise NotImplementedError

    @abstractmethod
    async def fetch(self, coach_id: str) -> CoachSchedule:
        """Get the active default schedule. Raises ScheduleUnavailable."""
        raise NotImplementedError

    @abstractmethod
    async def list_event_types(self, coach_id: str) -> list[EventType]:
        """List bookable event types for a coach."""
        raise NotImplementedError
