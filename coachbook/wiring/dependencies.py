from datetime import timedelta
from functools import lru_cache
import logging

from coachbook.core.config import settings
from coachbook.application.ports.booking_submission import (
    BookingSubmissionPort,
    RescheduleSubmissionPort,
    SessionLookupPort,
)
from coachbook.application.ports.busy_times import CalendarBusyTimePort
from coachbook.application.use_cases.booking import BookingUseCase
from coachbook.application.use_cases.reschedule import RescheduleUseCase
from coachbook.application.utils.booking_window import BookingWindowPolicy
from coachbook.application.utils.busy_time_cache import CachePolicy
from coachbook.application.utils.slot_generator import SlotGenerator
from coachbook.infrastructure.calendar.cal_com_client import CalComCalendar
from coachbook.infrastructure.calendar.mock_calendar import MockCalendar
from coachbook.infrastructure.store.json_schedule_store import JsonScheduleRepository
from coachbook.infrastructure.store.memory_store import MemoryResolverStore


def _is_local() -> bool:
    return settings.ENV.lower() in {"dev", "local", "test"}


@lru_cache
def get_schedule_repository() -> JsonScheduleRepository:
    return JsonScheduleRepository(settings.SCHEDULE_STORE_PATH)


def get_session_lookup() -> SessionLookupPort:
    return get_schedule_repository()


@lru_cache
def get_calendar() -> CalComCalendar | MockCalendar:
    logger = logging.getLogger(__name__)
    if not settings.CAL_COM_API_KEY or _is_local():
        logger.info("Using MockCalendar", extra={"reason": f"ENV={settings.ENV}"})
        return MockCalendar(sessions=get_session_lookup())
    logger.info("Using Cal.com calendar")
    return CalComCalendar(sessions=get_session_lookup())


def get_busy_times() -> CalendarBusyTimePort:
    return get_calendar()


def get_booking_submission() -> BookingSubmissionPort:
    return get_calendar()


def get_reschedule_submission() -> RescheduleSubmissionPort:
    return get_calendar()


def get_window_policy() -> BookingWindowPolicy:
    return BookingWindowPolicy(days=settings.BOOKING_WINDOW_DAYS)


def get_slot_generator() -> SlotGenerator:
    return SlotGenerator(step_minutes=settings.SLOT_STEP_MINUTES)


def get_booking_cache_policy() -> CachePolicy:
    return CachePolicy(
        name="booking",
        ttl=timedelta(minutes=settings.BOOKING_CACHE_TTL_MINUTES),
        span_days=settings.BUSY_TIMES_SPAN_DAYS,
        fail_open=settings.CALENDAR_FAIL_OPEN,
    )


def get_reschedule_cache_policy() -> CachePolicy:
    return CachePolicy(
        name="reschedule",
        ttl=timedelta(minutes=settings.RESCHEDULE_CACHE_TTL_MINUTES),
        span_days=settings.BUSY_TIMES_SPAN_DAYS,
        fail_open=settings.CALENDAR_FAIL_OPEN,
    )


@lru_cache
def get_resolver_store() -> MemoryResolverStore:
    return MemoryResolverStore()


def get_booking_use_case() -> BookingUseCase:
    return BookingUseCase(
        schedules=get_schedule_repository(),
        busy_times=get_busy_times(),
        submission=get_booking_submission(),
        cache_policy=get_booking_cache_policy(),
        window_policy=get_window_policy(),
        slot_generator=get_slot_generator(),
    )


def get_reschedule_use_case() -> RescheduleUseCase:
    return RescheduleUseCase(
        sessions=get_session_lookup(),
        schedules=get_schedule_repository(),
        busy_times=get_busy_times(),
        submission=get_reschedule_submission(),
        cache_policy=get_reschedule_cache_policy(),
        window_policy=get_window_policy(),
        slot_generator=get_slot_generator(),
    )
