from dataclasses import dataclass
from datetime import time
from typing import Optional

from ..utils.time import minutes_since_midnight
from .errors import (
    CapacityExceededError,
    DateAlreadyHasBookingsError,
    DateBlockedError,
    DuplicateBookingError,
    InvalidTimeWindowError,
)

DAILY_CAPACITY = 8
WINDOW_START_MINUTES = 18 * 60 + 40
WINDOW_END_MINUTES = 22 * 60


@dataclass(frozen=True)
class DateSnapshot:
    """State of one date as read inside the booking transaction."""

    occupied: int
    blocked_reason: Optional[str]
    is_instructor: bool
    email_bookings_on_date: int


@dataclass(frozen=True)
class Admission:
    as_instructor: bool


def is_within_time_window(value: time) -> bool:
    return WINDOW_START_MINUTES <= minutes_since_midnight(value) <= WINDOW_END_MINUTES


def ensure_time_window(value: time) -> None:
    if not is_within_time_window(value):
        raise InvalidTimeWindowError("time must be between 18:40 and 22:00")


def evaluate(snapshot: DateSnapshot, *, at: time, enforce_blocked: bool = True) -> Admission:
    """
    Pure admission decision. Checks run in a fixed order and the first failure wins:
    time window, blocked date, then the instructor or regular branch.
    Returns the admission on success. Raises domain errors otherwise.
    """
    ensure_time_window(at)
    if enforce_blocked and snapshot.blocked_reason is not None:
        raise DateBlockedError(snapshot.blocked_reason)

    if snapshot.is_instructor:
        # an instructor can only claim a date nobody has booked yet
        if snapshot.occupied > 0:
            raise DateAlreadyHasBookingsError("date already has bookings")
        return Admission(as_instructor=True)

    if snapshot.email_bookings_on_date > 0:
        raise DuplicateBookingError("email already has a booking for this date")
    if snapshot.occupied >= DAILY_CAPACITY:
        raise CapacityExceededError("no slots left for this date")
    return Admission(as_instructor=False)
