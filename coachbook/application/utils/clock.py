from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime, timezone

from coachbook.application.utils.slot_grouping import safe_timezone

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def local_today(clock: Clock, tz_name: str | None) -> date:
    """Calendar date of clock() in the given timezone."""
    return clock().astimezone(safe_timezone(tz_name)).date()
