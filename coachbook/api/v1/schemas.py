from datetime import date, datetime
from pydantic import BaseModel, Field

from coachbook.application.utils.slot_grouping import safe_timezone
from coachbook.domain.entities.booking import BookingConfirmation
from coachbook.domain.entities.resolution_state import ResolutionState, ResolutionStatus
from coachbook.domain.entities.time_slot import TimeSlot


class SlotSchema(BaseModel):
    start_utc: datetime
    end_utc: datetime
    local_start: datetime
    local_end: datetime
    label: str

    @classmethod
    def from_slot(cls, slot: TimeSlot, viewer_timezone: str) -> "SlotSchema":
        tz = safe_timezone(viewer_timezone)
        local_start = slot.start_utc.astimezone(tz)
        return cls(
            start_utc=slot.start_utc,
            end_utc=slot.end_utc,
            local_start=local_start,
            local_end=slot.end_utc.astimezone(tz),
            label=local_start.strftime("%I:%M %p").lstrip("0"),
        )


class SlotGroupSchema(BaseModel):
    title: str
    slots: list[SlotSchema]


class ErrorSchema(BaseModel):
    code: str
    message: str | None = None


class AvailabilityResponseSchema(BaseModel):
    status: ResolutionStatus
    coach_id: str | None = None
    timezone: str | None = None
    viewer_timezone: str
    duration_minutes: int | None = None
    bookable_dates: list[date] = Field(default_factory=list)
    selected_date: date | None = None
    groups: list[SlotGroupSchema] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    error: ErrorSchema | None = None

    @classmethod
    def from_state(cls, state: ResolutionState, viewer_timezone: str) -> "AvailabilityResponseSchema":
        return cls(
            status=state.status,
            coach_id=state.coach_id,
            timezone=state.timezone,
            viewer_timezone=viewer_timezone,
            duration_minutes=state.duration_minutes,
            bookable_dates=list(state.bookable_dates),
            selected_date=state.selected_date,
            groups=[
                SlotGroupSchema(
                    title=group.title,
                    slots=[SlotSchema.from_slot(slot, viewer_timezone) for slot in group.slots],
                )
                for group in state.groups
            ],
            warnings=list(state.warnings),
            error=ErrorSchema(code=state.error_code, message=state.error_message) if state.error_code else None,
        )


class AttendeeSchema(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    time_zone: str = "UTC"
    notes: str | None = None


class BookingRequestSchema(BaseModel):
    start_utc: datetime
    end_utc: datetime
    attendee: AttendeeSchema
    event_type_id: int | None = None
    viewer_timezone: str | None = None


class RescheduleRequestSchema(BaseModel):
    new_start_utc: datetime
    new_end_utc: datetime
    reason: str | None = None
    viewer_timezone: str | None = None


class ConfirmationSchema(BaseModel):
    booking_uid: str
    start_utc: datetime
    end_utc: datetime
    status: str

    @classmethod
    def from_confirmation(cls, confirmation: BookingConfirmation) -> "ConfirmationSchema":
        return cls(
            booking_uid=confirmation.booking_uid,
            start_utc=confirmation.start_utc,
            end_utc=confirmation.end_utc,
            status=confirmation.status,
        )
