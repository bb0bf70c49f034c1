from __future__ import annotations

from coachbook.application.exceptions import CoachNotFound, ScheduleUnavailable, SessionNotFound
from coachbook.application.ports.booking_submission import SessionLookupPort
from coachbook.application.ports.schedule_repository import ScheduleRepositoryPort
from coachbook.application.use_cases.slot_resolution import SlotResolutionService
from coachbook.domain.entities.booking import CoachingSession
from coachbook.domain.entities.schedule import CoachSchedule, EventType


class MemoryScheduleRepository(ScheduleRepositoryPort, SessionLookupPort):
    def __init__(
        self,
        schedules: list[CoachSchedule] | None = None,
        slugs: dict[str, str] | None = None,
        event_types: dict[str, list[EventType]] | None = None,
        sessions: list[CoachingSession] | None = None,
        coach_ids: set[str] | None = None,
    ) -> None:
        self._schedules: dict[str, CoachSchedule] = {s.coach_id: s for s in schedules or []}
        self._slugs: dict[str, str] = {k.lower(): v for k, v in (slugs or {}).items()}
        self._event_types: dict[str, list[EventType]] = {k: list(v) for k, v in (event_types or {}).items()}
        self._sessions: dict[str, CoachingSession] = {s.session_id: s for s in sessions or []}
        # Coaches may exist without a published schedule.
        self._coach_ids: set[str] = set(coach_ids or ()) | set(self._schedules) | set(self._slugs.values())

    def add_schedule(self, schedule: CoachSchedule) -> None:
        self._schedules[schedule.coach_id] = schedule
        self._coach_ids.add(schedule.coach_id)

    def add_coach(self, coach_id: str) -> None:
        self._coach_ids.add(coach_id)

    def add_slug(self, slug: str, coach_id: str) -> None:
        self._slugs[slug.lower()] = coach_id
        self._coach_ids.add(coach_id)

    def add_event_type(self, coach_id: str, event_type: EventType) -> None:
        self._event_types.setdefault(coach_id, []).append(event_type)

    def add_session(self, session: CoachingSession) -> None:
        self._sessions[session.session_id] = session

    async def resolve_coach_id(self, coach_ref: str) -> str:
        if coach_ref in self._coach_ids:
            return coach_ref
        coach_id = self._slugs.get(coach_ref.lower())
        if coach_id is None:
            raise CoachNotFound(f"Unknown coach: {coach_ref}")
        return coach_id

    async def fetch(self, coach_id: str) -> CoachSchedule:
        schedule = self._schedules.get(coach_id)
        if schedule is None or not schedule.windows:
            raise ScheduleUnavailable(f"No active schedule for coach {coach_id}")
        return schedule

    async def list_event_types(self, coach_id: str) -> list[EventType]:
        return list(self._event_types.get(coach_id, []))

    async def get_session(self, session_id: str) -> CoachingSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(f"Unknown session: {session_id}")
        return session


class MemoryResolverStore:
    """Keeps one SlotResolutionService per (viewer session, coach or session, flow)."""

    def __init__(self, limit: int = 500) -> None:
        self._services: dict[tuple[str, str, str], SlotResolutionService] = {}
        self._limit = limit

    def get(self, viewer_session: str, ref: str, flow: str) -> SlotResolutionService | None:
        return self._services.get((viewer_session, ref, flow))

    def set(self, viewer_session: str, ref: str, flow: str, service: SlotResolutionService) -> None:
        key = (viewer_session, ref, flow)
        self._services.pop(key, None)
        self._services[key] = service
        while len(self._services) > self._limit:
            # dicts keep insertion order; drop the oldest
            self._services.pop(next(iter(self._services)))

    def discard(self, viewer_session: str, ref: str, flow: str) -> None:
        self._services.pop((viewer_session, ref, flow), None)

    def __len__(self) -> int:
        return len(self._services)
