from __future__ import annotations

import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from coachbook.api.v1.schemas import (
    AvailabilityResponseSchema,
    BookingRequestSchema,
    ConfirmationSchema,
    RescheduleRequestSchema,
)
from coachbook.application.exceptions import RescheduleFailed, SessionNotFound, UnknownEventType
from coachbook.application.use_cases.booking import BookingResult, BookingUseCase
from coachbook.application.use_cases.reschedule import RescheduleUseCase
from coachbook.application.use_cases.slot_resolution import SlotResolutionService
from coachbook.application.utils.schedule_parser import parse_utc_datetime
from coachbook.application.utils.slot_grouping import safe_timezone
from coachbook.core.config import settings
from coachbook.domain.entities.booking import Attendee
from coachbook.domain.entities.resolution_state import ResolutionStatus
from coachbook.infrastructure.store.memory_store import MemoryResolverStore
from coachbook.wiring.dependencies import (
    get_booking_use_case,
    get_reschedule_use_case,
    get_resolver_store,
)

router = APIRouter()
logger = logging.getLogger(__name__)

BOOKING_FLOW = "booking"
RESCHEDULE_FLOW = "reschedule"

# Result actions that map to an error response.
RESULT_STATUS_CODES = {
    "race_lost": 409,
    "slot_not_offered": 400,
    "invalid": 422,
    "failed": 502,
}
RESULT_ERROR_CODES = {
    "race_lost": "booking_race_lost",
    "slot_not_offered": "slot_not_offered",
    "invalid": "booking_invalid",
    "failed": "booking_failed",
}


def _booking_flow(event_type_id: int | None) -> str:
    return BOOKING_FLOW if event_type_id is None else f"{BOOKING_FLOW}:{event_type_id}"


def _raise_for_state(service: SlotResolutionService) -> None:
    state = service.state
    if state.status == ResolutionStatus.error and state.error_code == "coach_not_found":
        raise HTTPException(status_code=404, detail={"code": state.error_code, "message": state.error_message})


async def _select(service: SlotResolutionService, day: date | None) -> None:
    if day is None or day == service.state.selected_date:
        return
    try:
        await service.select_date(day)
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"code": "date_outside_window", "message": str(e)})


def _raise_for_result(result: BookingResult) -> None:
    status_code = RESULT_STATUS_CODES.get(result.action)
    if status_code is not None:
        raise HTTPException(
            status_code=status_code,
            detail={"code": RESULT_ERROR_CODES[result.action], "message": result.message},
        )


def _coach_local_date(service: SlotResolutionService, start_utc: datetime) -> date | None:
    if service.schedule is None:
        return None
    return start_utc.astimezone(safe_timezone(service.schedule.timezone)).date()


async def _booking_service(
    store: MemoryResolverStore,
    uc: BookingUseCase,
    viewer: str | None,
    coach_ref: str,
    viewer_timezone: str,
    event_type_id: int | None,
) -> SlotResolutionService:
    flow = _booking_flow(event_type_id)
    # Without a viewer session there is nothing to resume; the service lives for this request only.
    service = store.get(viewer, coach_ref, flow) if viewer else None
    if service is not None and service.state.status != ResolutionStatus.error:
        if service.viewer_timezone != viewer_timezone:
            service.set_viewer_timezone(viewer_timezone)
        await service.refresh()
        return service

    try:
        service = await uc.open(coach_ref, viewer_timezone=viewer_timezone, event_type_id=event_type_id)
    except UnknownEventType as e:
        raise HTTPException(status_code=400, detail={"code": "unknown_event_type", "message": str(e)})
    _raise_for_state(service)
    if viewer and service.state.status != ResolutionStatus.error:
        store.set(viewer, coach_ref, flow, service)
    return service


async def _reschedule_service(
    store: MemoryResolverStore,
    uc: RescheduleUseCase,
    viewer: str | None,
    session_id: str,
    viewer_timezone: str,
) -> SlotResolutionService:
    service = store.get(viewer, session_id, RESCHEDULE_FLOW) if viewer else None
    if service is not None and service.state.status != ResolutionStatus.error:
        if service.viewer_timezone != viewer_timezone:
            service.set_viewer_timezone(viewer_timezone)
        await service.refresh()
        return service

    try:
        service = await uc.open(session_id, viewer_timezone=viewer_timezone)
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail={"code": "session_not_found", "message": str(e)})
    except RescheduleFailed as e:
        raise HTTPException(status_code=409, detail={"code": "session_not_reschedulable", "message": str(e)})
    _raise_for_state(service)
    if viewer and service.state.status != ResolutionStatus.error:
        store.set(viewer, session_id, RESCHEDULE_FLOW, service)
    return service


@router.get("/coaches/{coach_ref}/availability", response_model=AvailabilityResponseSchema)
async def coach_availability(
    coach_ref: str,
    viewer_timezone: str | None = Query(None),
    day: date | None = Query(None, alias="date"),
    event_type_id: int | None = Query(None),
    viewer_session: str | None = Header(None, alias="X-Viewer-Session"),
    store: MemoryResolverStore = Depends(get_resolver_store),
    uc: BookingUseCase = Depends(get_booking_use_case),
):
    tz = viewer_timezone or settings.DEFAULT_VIEWER_TIMEZONE
    service = await _booking_service(store, uc, viewer_session, coach_ref, tz, event_type_id)
    if service.state.status != ResolutionStatus.error:
        await _select(service, day)
    return AvailabilityResponseSchema.from_state(service.state, service.viewer_timezone)


@router.post("/coaches/{coach_ref}/bookings", response_model=ConfirmationSchema, status_code=201)
async def create_booking(
    coach_ref: str,
    req: BookingRequestSchema,
    viewer_session: str | None = Header(None, alias="X-Viewer-Session"),
    store: MemoryResolverStore = Depends(get_resolver_store),
    uc: BookingUseCase = Depends(get_booking_use_case),
):
    tz = req.viewer_timezone or req.attendee.time_zone or settings.DEFAULT_VIEWER_TIMEZONE
    service = await _booking_service(store, uc, viewer_session, coach_ref, tz, req.event_type_id)
    if service.state.status == ResolutionStatus.error:
        raise HTTPException(status_code=400, detail={"code": service.state.error_code, "message": service.state.error_message})
    start_utc, end_utc = parse_utc_datetime(req.start_utc), parse_utc_datetime(req.end_utc)
    await _select(service, _coach_local_date(service, start_utc))

    attendee = Attendee(
        name=req.attendee.name,
        email=req.attendee.email,
        time_zone=req.attendee.time_zone,
        notes=req.attendee.notes,
    )
    result = await uc.book(service, start_utc, end_utc, attendee, event_type_id=req.event_type_id)
    logger.info("Booking request handled", extra={"coach_id": service.state.coach_id, "status": result.action})
    _raise_for_result(result)
    return ConfirmationSchema.from_confirmation(result.confirmation)


@router.get("/sessions/{session_id}/reschedule/availability", response_model=AvailabilityResponseSchema)
async def reschedule_availability(
    session_id: str,
    viewer_timezone: str | None = Query(None),
    day: date | None = Query(None, alias="date"),
    viewer_session: str | None = Header(None, alias="X-Viewer-Session"),
    store: MemoryResolverStore = Depends(get_resolver_store),
    uc: RescheduleUseCase = Depends(get_reschedule_use_case),
):
    tz = viewer_timezone or settings.DEFAULT_VIEWER_TIMEZONE
    service = await _reschedule_service(store, uc, viewer_session, session_id, tz)
    if service.state.status != ResolutionStatus.error:
        await _select(service, day)
    return AvailabilityResponseSchema.from_state(service.state, service.viewer_timezone)


@router.post("/sessions/{session_id}/reschedule", response_model=ConfirmationSchema)
async def reschedule_session(
    session_id: str,
    req: RescheduleRequestSchema,
    viewer_session: str | None = Header(None, alias="X-Viewer-Session"),
    store: MemoryResolverStore = Depends(get_resolver_store),
    uc: RescheduleUseCase = Depends(get_reschedule_use_case),
):
    tz = req.viewer_timezone or settings.DEFAULT_VIEWER_TIMEZONE
    service = await _reschedule_service(store, uc, viewer_session, session_id, tz)
    if service.state.status == ResolutionStatus.error:
        raise HTTPException(status_code=400, detail={"code": service.state.error_code, "message": service.state.error_message})
    start_utc, end_utc = parse_utc_datetime(req.new_start_utc), parse_utc_datetime(req.new_end_utc)
    await _select(service, _coach_local_date(service, start_utc))

    result = await uc.reschedule(service, session_id, start_utc, end_utc, reason=req.reason)
    logger.info("Reschedule request handled", extra={"coach_id": service.state.coach_id, "status": result.action})
    _raise_for_result(result)
    return ConfirmationSchema.from_confirmation(result.confirmation)
