from __future__ import annotations

from collections.abc import Iterator
from datetime import date, timedelta

from coachbook.domain.entities.booking_window import BookingWindow

DEFAULT_WINDOW_DAYS = 15


class BookingWindowPolicy:
    """
    Rolling window of bookable calendar dates: tomorrow through tomorrow + (days - 1).
    Same-day bookings are never offered. Works on calendar dates only, so DST
    transitions inside the window do not change the day count.
    """

    def __init__(self, days: int = DEFAULT_WINDOW_DAYS) -> None:
        if days < 1:
            raise ValueError("Booking window must span at least one day")
        self._days = days

    @property
    def days(self) -> int:
        return self._days

    def compute_window(self, today: date) -> BookingWindow:
        earliest = today + timedelta(days=1)
        return BookingWindow(earliest=earliest, latest=earliest + timedelta(days=self._days - 1))

    def is_within_window(self, day: date, today: date) -> bool:
        return self.compute_window(today).contains(day)

    def dates(self, today: date) -> Iterator[date]:
        window = self.compute_window(today)
        for offset in range(self._days):
            yield window.earliest + timedelta(days=offset)
