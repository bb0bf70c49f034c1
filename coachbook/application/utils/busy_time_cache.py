from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum

from coachbook.application.exceptions import CalendarFetchFailed
from coachbook.application.ports.busy_times import CalendarBusyTimePort
from coachbook.application.utils.clock import Clock, utc_now
from coachbook.domain.entities.time_slot import BusyInterval

DEFAULT_SPAN_DAYS = 31

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachePolicy:
    name: str
    ttl: timedelta
    span_days: int = DEFAULT_SPAN_DAYS
    fail_open: bool = True  # calendar errors yield no known conflicts instead of failing


BOOKING_CACHE_POLICY = CachePolicy(name="booking", ttl=timedelta(minutes=30))
RESCHEDULE_CACHE_POLICY = CachePolicy(name="reschedule", ttl=timedelta(minutes=15))


@dataclass(frozen=True)
class BusyTimesCacheEntry:
    range_start: date
    range_end: date
    intervals: tuple[BusyInterval, ...]
    fetched_at: datetime

    def covers(self, day: date) -> bool:
        return self.range_start <= day <= self.range_end

    def age(self, now: datetime) -> timedelta:
        return now - self.fetched_at


class CacheState(str, Enum):
    empty = "empty"
    fetching = "fetching"
    populated = "populated"
    stale = "stale"


class BusyTimeCache:
    """
    Busy intervals for one coach, fetched in fixed spans and reused until the TTL expires.

    An entry is replaced wholesale on a miss or when stale, never merged. A failed
    fetch clears the entry; with a fail-open policy the caller gets an empty list and
    last_error records the failure.
    """

    def __init__(
        self,
        provider: CalendarBusyTimePort,
        coach_id: str,
        policy: CachePolicy = BOOKING_CACHE_POLICY,
        clock: Clock | None = None,
    ) -> None:
        self._provider = provider
        self._coach_id = coach_id
        self._policy = policy
        self._clock = clock or utc_now
        self._entry: BusyTimesCacheEntry | None = None
        self._inflight: tuple[date, date, asyncio.Task[list[BusyInterval]]] | None = None
        self._epoch = 0
        self._last_error: str | None = None
        self._fetch_count = 0
        self._logger = logging.getLogger(__name__)

    @property
    def policy(self) -> CachePolicy:
        return self._policy

    @property
    def entry(self) -> BusyTimesCacheEntry | None:
        return self._entry

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def fetch_count(self) -> int:
        return self._fetch_count

    @property
    def state(self) -> CacheState:
        if self._inflight is not None:
            return CacheState.fetching
        if self._entry is None:
            return CacheState.empty
        if self._entry.age(self._clock()) > self._policy.ttl:
            return CacheState.stale
        return CacheState.populated

    def is_fresh(self, day: date) -> bool:
        entry = self._entry
        if entry is None or not entry.covers(day):
            return False
        return entry.age(self._clock()) <= self._policy.ttl

    def invalidate(self) -> None:
        """Drop the entry; a fetch already in flight will not repopulate it."""
        self._entry = None
        self._epoch += 1

    async def get(self, day: date) -> list[BusyInterval]:
        if self.is_fresh(day):
            return list(self._entry.intervals)

        inflight = self._inflight
        if inflight is not None and inflight[0] <= day <= inflight[1]:
            task = inflight[2]
        else:
            range_end = day + timedelta(days=self._policy.span_days - 1)
            task = asyncio.ensure_future(self._fetch(day, range_end, self._epoch))
            self._inflight = (day, range_end, task)

        try:
            return list(await asyncio.shield(task))
        except CalendarFetchFailed:
            if self._policy.fail_open:
                return []
            raise

    async def _fetch(self, range_start: date, range_end: date, epoch: int) -> list[BusyInterval]:
        self._fetch_count += 1
        try:
            intervals = await self._provider.fetch_busy_times(
                self._coach_id, range_start, self._policy.span_days
            )
        except Exception as e:
            self._entry = None
            self._last_error = str(e) or e.__class__.__name__
            self._logger.warning(
                "Busy time fetch failed",
                extra={
                    "coach_id": self._coach_id,
                    "date": range_start.isoformat(),
                    "reason": self._policy.name,
                    "error": self._last_error,
                },
            )
            if isinstance(e, CalendarFetchFailed):
                raise
            raise CalendarFetchFailed(self._last_error) from e
        finally:
            if self._inflight is not None and self._inflight[2] is asyncio.current_task():
                self._inflight = None

        if epoch == self._epoch:
            self._entry = BusyTimesCacheEntry(
                range_start=range_start,
                range_end=range_end,
                intervals=tuple(intervals),
                fetched_at=self._clock(),
            )
        self._last_error = None
        self._logger.info(
            "Busy times cached",
            extra={
                "coach_id": self._coach_id,
                "date": range_start.isoformat(),
                "count": len(intervals),
                "reason": self._policy.name,
            },
        )
        return list(intervals)
