from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class WeeklyAvailabilityWindow:
    days_of_week: tuple[int | str, ...] = ()  # 0-6 (0 = Sunday) or day names, case-insensitive
    start_time: str | None = None  # "HH:mm", coach wall clock
    end_time: str | None = None  # "HH:mm", "24:00" allowed as end of day


@dataclass(frozen=True)
class CoachSchedule:
    coach_id: str
    timezone: str
    windows: tuple[WeeklyAvailabilityWindow, ...] = field(default_factory=tuple)
    default_duration_minutes: int = 60
    name: str | None = None


@dataclass(frozen=True)
class EventType:
    event_type_id: int
    title: str
    duration_minutes: int
    is_default: bool = False
