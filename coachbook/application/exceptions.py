class CoachNotFound(LookupError):
    """Raised when a coach id or profile slug cannot be resolved."""
    pass


class ScheduleUnavailable(RuntimeError):
    """Raised when a coach has no active default availability schedule."""
    pass


class CalendarFetchFailed(RuntimeError):
    """Raised when the busy time provider fails (network errors, auth, bad payload)."""
    pass


class TimezoneConversionError(ValueError):
    """Raised when a weekly window cannot be placed on a date in the coach timezone."""
    pass


class NoAvailabilityInWindow(RuntimeError):
    """Raised when a schedule exists but no date in the booking window has a free slot."""
    pass


class UnknownEventType(LookupError):
    """Raised when a booking asks for an event type the coach does not offer."""
    pass


class SlotNotOffered(ValueError):
    """Raised when a submitted slot is not among the slots currently offered."""
    pass


class BookingSubmissionError(RuntimeError):
    """Raised when the booking provider fails for reasons other than validation or a race."""
    pass


class BookingValidationError(BookingSubmissionError):
    """Raised when the booking provider rejects the request payload."""
    pass


class BookingRaceLost(BookingSubmissionError):
    """Raised when the slot was taken between selection and submission."""
    pass


class SessionNotFound(LookupError):
    """Raised when the session to reschedule does not exist."""
    pass


class RescheduleFailed(RuntimeError):
    """Raised when a session cannot be rescheduled or the provider rejects the update."""
    pass
