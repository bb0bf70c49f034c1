from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, order=True)
class TimeSlot:
    start_utc: datetime
    end_utc: datetime

    def __post_init__(self) -> None:
        if self.start_utc >= self.end_utc:
            raise ValueError("TimeSlot start must be before end")

    @property
    def duration_minutes(self) -> int:
        return int((self.end_utc - self.start_utc).total_seconds() // 60)


@dataclass(frozen=True)
class BusyInterval:
    start_utc: datetime
    end_utc: datetime
    source: str = "calendar"


@dataclass(frozen=True)
class SlotGroup:
    title: str  # "Morning", "Afternoon", "Evening"
    slots: tuple[TimeSlot, ...]
