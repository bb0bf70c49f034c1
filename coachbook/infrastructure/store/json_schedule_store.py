from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from coachbook.application.exceptions import ScheduleUnavailable
from coachbook.application.ports.booking_submission import SessionLookupPort
from coachbook.application.ports.schedule_repository import ScheduleRepositoryPort
from coachbook.application.utils.schedule_parser import parse_utc_datetime
from coachbook.domain.entities.booking import CoachingSession
from coachbook.domain.entities.schedule import CoachSchedule, EventType, WeeklyAvailabilityWindow
from coachbook.infrastructure.store.memory_store import MemoryScheduleRepository

DEFAULT_DURATION_MINUTES = 60


class JsonScheduleRepository(ScheduleRepositoryPort, SessionLookupPort):
    """
    Coach schedules, slugs, event types and sessions read from a JSON document.

    Expected layout:

        {
          "coaches": [
            {
              "id": "coach_1",
              "slug": "jane-doe",
              "schedules": [
                {"name": "Working hours", "timeZone": "America/New_York", "isDefault": true,
                 "active": true, "defaultDuration": 60,
                 "availability": [{"days": ["Monday"], "startTime": "09:00", "endTime": "17:00"}]}
              ],
              "eventTypes": [{"id": 1, "title": "Intro call", "length": 30}]
            }
          ],
          "sessions": [
            {"id": "s1", "coachId": "coach_1", "startTime": "...", "endTime": "...",
             "status": "SCHEDULED", "calBookingUid": "..."}
          ]
        }

    snake_case keys are accepted as well, and "availability" may be stored as a JSON string.
    Only the default schedule is used, and only while it is active. A coach whose schedule
    cannot be parsed is still known but has no schedule.
    The file is read once, on first use; call reload() to pick up changes.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._repo: MemoryScheduleRepository | None = None
        self._logger = logging.getLogger(__name__)

    def reload(self) -> None:
        self._repo = self._load()

    def _repository(self) -> MemoryScheduleRepository:
        if self._repo is None:
            self._repo = self._load()
        return self._repo

    def _load(self) -> MemoryScheduleRepository:
        if not self._path.exists():
            self._logger.warning("Schedule store missing", extra={"reason": str(self._path)})
            return MemoryScheduleRepository()

        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            raise ScheduleUnavailable(f"Could not read schedule store {self._path}: {e}") from e

        repo = MemoryScheduleRepository()
        for coach in data.get("coaches") or []:
            coach_id = str(_pick(coach, "id", "coach_id", "coachId"))
            slug = _pick(coach, "slug", "profile_slug", "profileSlug")

            try:
                schedule = _default_schedule(coach_id, coach.get("schedules") or [])
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                # The coach stays resolvable but reports no schedule.
                self._logger.warning("Skipping malformed schedule", extra={"coach_id": coach_id, "error": str(e)})
                schedule = None
            if schedule is not None:
                repo.add_schedule(schedule)
            else:
                repo.add_coach(coach_id)
            if slug:
                repo.add_slug(str(slug), coach_id)
            for raw in _pick(coach, "eventTypes", "event_types") or []:
                try:
                    repo.add_event_type(coach_id, _event_type(raw))
                except (KeyError, TypeError, ValueError) as e:
                    self._logger.warning("Skipping malformed event type", extra={"coach_id": coach_id, "error": str(e)})

        for raw in data.get("sessions") or []:
            try:
                repo.add_session(_session(raw))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                self._logger.warning("Skipping malformed session", extra={"reason": str(raw), "error": str(e)})

        self._logger.info("Schedule store loaded", extra={"count": len(data.get("coaches") or [])})
        return repo

    async def resolve_coach_id(self, coach_ref: str) -> str:
        return await self._repository().resolve_coach_id(coach_ref)

    async def fetch(self, coach_id: str) -> CoachSchedule:
        return await self._repository().fetch(coach_id)

    async def list_event_types(self, coach_id: str) -> list[EventType]:
        return await self._repository().list_event_types(coach_id)

    async def get_session(self, session_id: str) -> CoachingSession:
        return await self._repository().get_session(session_id)


def _pick(raw: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


def _default_schedule(coach_id: str, schedules: list[dict[str, Any]]) -> CoachSchedule | None:
    """The schedule marked both default and active; a coach without one has no schedule."""
    chosen = next(
        (s for s in schedules if _pick(s, "isDefault", "is_default") and _pick(s, "active") is not False),
        None,
    )
    if chosen is None:
        return None

    availability = _pick(chosen, "availability", "windows") or []
    if isinstance(availability, str):
        availability = json.loads(availability)

    windows = tuple(
        WeeklyAvailabilityWindow(
            days_of_week=tuple(_pick(w, "days", "days_of_week", "daysOfWeek") or ()),
            start_time=_pick(w, "startTime", "start_time"),
            end_time=_pick(w, "endTime", "end_time"),
        )
        for w in availability
    )
    return CoachSchedule(
        coach_id=coach_id,
        timezone=str(_pick(chosen, "timeZone", "timezone", "time_zone") or "UTC"),
        windows=windows,
        default_duration_minutes=int(
            _pick(chosen, "defaultDuration", "default_duration_minutes") or DEFAULT_DURATION_MINUTES
        ),
        name=_pick(chosen, "name"),
    )


def _event_type(raw: dict[str, Any]) -> EventType:
    return EventType(
        event_type_id=int(_pick(raw, "id", "event_type_id", "eventTypeId")),
        title=str(_pick(raw, "title") or ""),
        duration_minutes=int(_pick(raw, "length", "lengthInMinutes", "duration_minutes") or DEFAULT_DURATION_MINUTES),
        is_default=bool(_pick(raw, "isDefault", "is_default")),
    )


def _session(raw: dict[str, Any]) -> CoachingSession:
    return CoachingSession(
        session_id=str(_pick(raw, "id", "session_id", "sessionId")),
        coach_id=str(_pick(raw, "coachId", "coach_id")),
        start_utc=parse_utc_datetime(_pick(raw, "startTime", "start_utc", "start")),
        end_utc=parse_utc_datetime(_pick(raw, "endTime", "end_utc", "end")),
        status=str(_pick(raw, "status") or "SCHEDULED"),
        booking_uid=_pick(raw, "calBookingUid", "booking_uid", "bookingUid"),
    )
