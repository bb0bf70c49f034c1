from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum

from coachbook.domain.entities.time_slot import SlotGroup, TimeSlot


class ResolutionStatus(str, Enum):
    idle = "idle"
    loading_schedule = "loading_schedule"
    loading_busy_times = "loading_busy_times"
    computing_slots = "computing_slots"
    ready = "ready"
    empty = "empty"
    error = "error"


@dataclass(frozen=True)
class ResolutionState:
    status: ResolutionStatus = ResolutionStatus.idle
    coach_id: str | None = None
    timezone: str | None = None
    duration_minutes: int | None = None
    bookable_dates: tuple[date, ...] = ()
    selected_date: date | None = None
    slots: tuple[TimeSlot, ...] = ()
    groups: tuple[SlotGroup, ...] = ()
    warnings: tuple[str, ...] = ()
    error_code: str | None = None  # "coach_not_found", "schedule_unavailable", "no_availability_in_window"
    error_message: str | None = None
