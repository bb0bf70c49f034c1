from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

import httpx

from coachbook.application.exceptions import (
    BookingRaceLost,
    BookingSubmissionError,
    BookingValidationError,
    CalendarFetchFailed,
    RescheduleFailed,
)
from coachbook.application.ports.booking_submission import (
    BookingSubmissionPort,
    RescheduleSubmissionPort,
    SessionLookupPort,
)
from coachbook.application.ports.busy_times import CalendarBusyTimePort
from coachbook.application.utils.schedule_parser import parse_utc_datetime
from coachbook.core.config import settings
from coachbook.domain.entities.booking import Attendee, BookingConfirmation
from coachbook.domain.entities.time_slot import BusyInterval


class CalComCalendar(CalendarBusyTimePort, BookingSubmissionPort, RescheduleSubmissionPort):
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        api_version: str | None = None,
        sessions: SessionLookupPort | None = None,
        credential_id: str | None = None,
        external_id: str = "primary",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key or settings.CAL_COM_API_KEY
        self._base_url = (base_url or settings.CAL_COM_BASE_URL).rstrip("/")
        self._api_version = api_version or settings.CAL_COM_API_VERSION
        self._sessions = sessions
        self._credential_id = credential_id
        self._external_id = external_id
        self._client = client or httpx.AsyncClient(timeout=settings.CAL_COM_TIMEOUT_SECONDS)
        self._logger = logging.getLogger(__name__)

        if not self._api_key:
            raise ValueError("CAL_COM_API_KEY is required for Cal.com calendar")

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "cal-api-version": self._api_version,
        }

    async def fetch_busy_times(self, coach_id: str, from_date: date, span_days: int = 31) -> list[BusyInterval]:
        date_from = datetime.combine(from_date, time.min, tzinfo=timezone.utc)
        date_to = date_from + timedelta(days=span_days)
        params: dict[str, Any] = {
            "dateFrom": date_from.isoformat(),
            "dateTo": date_to.isoformat(),
            "loggedInUsersTz": "UTC",
            "coachId": coach_id,
        }
        if self._credential_id:
            params["calendarsToLoad[0][credentialId]"] = self._credential_id
            params["calendarsToLoad[0][externalId]"] = self._external_id

        try:
            response = await self._client.get(
                f"{self._base_url}/calendars/busy-times", params=params, headers=self._headers()
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            self._logger.error("Error fetching busy times", extra={"coach_id": coach_id, "error": str(e)})
            raise CalendarFetchFailed(f"Failed to get busy times: {e}") from e

        if data.get("status") not in (None, "success"):
            raise CalendarFetchFailed(f"Busy times request failed: {data.get('error') or data.get('status')}")

        intervals: list[BusyInterval] = []
        for item in data.get("data") or []:
            try:
                intervals.append(
                    BusyInterval(
                        start_utc=parse_utc_datetime(item["start"]),
                        end_utc=parse_utc_datetime(item["end"]),
                        source=str(item.get("source") or "cal.com"),
                    )
                )
            except (KeyError, TypeError, ValueError, AttributeError):
                self._logger.warning("Skipping malformed busy interval", extra={"coach_id": coach_id, "reason": str(item)})
                continue

        self._logger.info("Busy times fetched", extra={"coach_id": coach_id, "count": len(intervals)})
        return intervals

    async def create(
        self,
        coach_id: str,
        event_type_id: int | None,
        start_utc: datetime,
        end_utc: datetime,
        attendee: Attendee,
    ) -> BookingConfirmation:
        payload: dict[str, Any] = {
            "start": start_utc.astimezone(timezone.utc).isoformat(),
            "lengthInMinutes": int((end_utc - start_utc).total_seconds() // 60),
            "attendee": {
                "name": attendee.name,
                "email": attendee.email,
                "timeZone": attendee.time_zone,
            },
            "metadata": {"coachId": coach_id},
        }
        if event_type_id is not None:
            payload["eventTypeId"] = event_type_id
        if attendee.notes:
            payload["bookingFieldsResponses"] = {"notes": attendee.notes}

        try:
            response = await self._client.post(f"{self._base_url}/bookings", json=payload, headers=self._headers())
        except httpx.HTTPError as e:
            self._logger.error("Error creating booking", extra={"coach_id": coach_id, "error": str(e)})
            raise BookingSubmissionError(str(e)) from e

        if response.status_code == 409:
            raise BookingRaceLost(_error_message(response, "Slot is no longer available"))
        if response.status_code in (400, 422):
            raise BookingValidationError(_error_message(response, "Invalid booking data"))
        if response.is_error:
            raise BookingSubmissionError(_error_message(response, f"Failed to create booking: {response.status_code}"))

        confirmation = _confirmation_from(response, start_utc, end_utc)
        self._logger.info("Calendar booking created", extra={"coach_id": coach_id, "status": confirmation.status})
        return confirmation

    async def update(
        self,
        session_id: str,
        new_start_utc: datetime,
        new_end_utc: datetime,
        reason: str | None = None,
    ) -> BookingConfirmation:
        booking_uid = session_id
        if self._sessions is not None:
            session = await self._sessions.get_session(session_id)
            if not session.booking_uid:
                raise RescheduleFailed("Could not find calendar booking identifier for session")
            booking_uid = session.booking_uid

        payload = {
            "start": new_start_utc.astimezone(timezone.utc).isoformat(),
            "reschedulingReason": reason or "User requested reschedule",
        }
        try:
            response = await self._client.post(
                f"{self._base_url}/bookings/{booking_uid}/reschedule", json=payload, headers=self._headers()
            )
        except httpx.HTTPError as e:
            self._logger.error("Error rescheduling booking", extra={"error": str(e)})
            raise RescheduleFailed(str(e)) from e

        if response.status_code == 409:
            raise BookingRaceLost(_error_message(response, "Slot is no longer available"))
        if response.is_error:
            raise RescheduleFailed(_error_message(response, f"Failed to reschedule booking: {response.status_code}"))

        return _confirmation_from(response, new_start_utc, new_end_utc, RescheduleFailed)

    async def aclose(self) -> None:
        await self._client.aclose()


def _error_message(response: httpx.Response, default: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return default
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return str(error.get("message") or default)
    return str(error or (body.get("message") if isinstance(body, dict) else None) or default)


def _confirmation_from(
    response: httpx.Response,
    start_utc: datetime,
    end_utc: datetime,
    error_cls: type[Exception] = BookingSubmissionError,
) -> BookingConfirmation:
    body = response.json()
    data = body.get("data") or {}
    booking_uid = data.get("uid") or data.get("id")
    if not booking_uid:
        raise error_cls("No booking UID returned from Cal.com API")
    return BookingConfirmation(
        booking_uid=str(booking_uid),
        start_utc=parse_utc_datetime(data["start"]) if data.get("start") else start_utc,
        end_utc=parse_utc_datetime(data["end"]) if data.get("end") else end_utc,
        status=str(data.get("status") or "accepted"),
    )
