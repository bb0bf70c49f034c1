from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from coachbook.domain.entities.time_slot import BusyInterval, TimeSlot


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open overlap: [a_start, a_end) and [b_start, b_end) share time. Touching ends do not overlap."""
    return a_start < b_end and b_start < a_end


def conflicts_with_any(slot: TimeSlot, busy: Iterable[BusyInterval]) -> bool:
    return any(overlaps(slot.start_utc, slot.end_utc, b.start_utc, b.end_utc) for b in busy)


def filter_conflicts(slots: Iterable[TimeSlot], busy: Iterable[BusyInterval]) -> list[TimeSlot]:
    """Drop slots overlapping any busy interval, keeping the original order."""
    busy_list = list(busy)
    if not busy_list:
        return list(slots)
    return [slot for slot in slots if not conflicts_with_any(slot, busy_list)]
