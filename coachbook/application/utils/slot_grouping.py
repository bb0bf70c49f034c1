from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from coachbook.domain.entities.time_slot import SlotGroup, TimeSlot

# (title, first hour past the bucket); last bucket is open-ended.
TIME_OF_DAY_BUCKETS = (
    ("Morning", 12),
    ("Afternoon", 17),
    ("Evening", 24),
)

logger = logging.getLogger(__name__)


def time_of_day(hour: int) -> str:
    for title, upper in TIME_OF_DAY_BUCKETS:
        if hour < upper:
            return title
    return TIME_OF_DAY_BUCKETS[-1][0]


def group_slots(slots: Iterable[TimeSlot], viewer_timezone: str) -> list[SlotGroup]:
    """
    Bucket slots into Morning / Afternoon / Evening by the viewer-local start hour.
    Empty buckets are omitted. Slots inside a bucket are sorted by UTC start.
    """
    tz = safe_timezone(viewer_timezone)
    buckets: dict[str, list[TimeSlot]] = {title: [] for title, _ in TIME_OF_DAY_BUCKETS}

    for slot in slots:
        local_hour = slot.start_utc.astimezone(tz).hour
        buckets[time_of_day(local_hour)].append(slot)

    return [
        SlotGroup(title=title, slots=tuple(sorted(buckets[title], key=lambda s: s.start_utc)))
        for title, _ in TIME_OF_DAY_BUCKETS
        if buckets[title]
    ]


def safe_timezone(name: str | None) -> ZoneInfo | timezone:
    if not name:
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown viewer timezone, using UTC", extra={"reason": name})
        return timezone.utc
