from datetime import date, datetime, time
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from .domain.services import DAILY_CAPACITY
from .models import BlockedDate, Booking, Instructor, Notification, NotificationKind
from .usecases.availability import AvailableDate
from .usecases.bookings import BookingResult, DayBookings

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class _Strict(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


def _hhmm(value: time) -> str:
    return value.strftime("%H:%M")


class BookingCreate(_Strict):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    year_label: str = Field(min_length=1, max_length=50)
    date: date
    time: time

    @field_validator("time")
    @classmethod
    def _drop_tz(cls, value: time) -> time:
        return value.replace(tzinfo=None)


class BookingCreated(BaseModel):
    code: str
    as_instructor: bool
    slots: int
    date: date
    time: time

    @field_serializer("time")
    def _ser_time(self, value: time) -> str:
        return _hhmm(value)

    @classmethod
    def from_result(cls, result: BookingResult) -> "BookingCreated":
        primary = result.primary
        return cls(
            code=result.code,
            as_instructor=result.as_instructor,
            slots=len(result.bookings),
            date=primary.booking_date,
            time=primary.time_of_day,
        )


class CancellationRead(BaseModel):
    deleted: int
    as_instructor: bool


class AvailableDateRead(BaseModel):
    date: date
    occupied: int
    capacity: int = DAILY_CAPACITY

    @classmethod
    def from_domain(cls, item: AvailableDate) -> "AvailableDateRead":
        return cls(date=item.booking_date, occupied=item.occupied)


class BookingRead(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    year_label: str
    date: date
    time: time
    code: str
    created_at: datetime

    @field_serializer("time")
    def _ser_time(self, value: time) -> str:
        return _hhmm(value)

    @classmethod
    def from_db(cls, *, booking: Booking) -> "BookingRead":
        return cls(
            id=booking.id,
            first_name=booking.first_name,
            last_name=booking.last_name,
            email=booking.email,
            year_label=booking.year_label,
            date=booking.booking_date,
            time=booking.time_of_day,
            code=booking.code,
            created_at=booking.created_at,
        )


class DayBookingsRead(BaseModel):
    date: date
    bookings: List[BookingRead]
    occupied: int
    capacity: int

    @classmethod
    def from_domain(cls, day: DayBookings) -> "DayBookingsRead":
        return cls(
            date=day.booking_date,
            bookings=[BookingRead.from_db(booking=b) for b in day.bookings],
            occupied=day.occupied,
            capacity=day.capacity,
        )


class AdminLogin(_Strict):
    code: str = Field(min_length=1, max_length=255)


class TokenRead(BaseModel):
    access_token: str
    token_type: str = "bearer"


class InstructorCheck(BaseModel):
    email: str
    is_instructor: bool


class InstructorCreate(_Strict):
    name: str = Field(min_length=1, max_length=200)
    email: str = Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)


class InstructorRead(BaseModel):
    id: int
    name: str
    email: str

    @classmethod
    def from_db(cls, *, instructor: Instructor) -> "InstructorRead":
        return cls(id=instructor.id, name=instructor.name, email=instructor.email)


class BlockedDateCreate(_Strict):
    date: date
    reason: Optional[str] = Field(default=None, max_length=500)


class BlockedDateRead(BaseModel):
    id: int
    date: date
    reason: str

    @classmethod
    def from_db(cls, *, blocked: BlockedDate) -> "BlockedDateRead":
        return cls(id=blocked.id, date=blocked.blocked_on, reason=blocked.reason)


class NotificationRead(BaseModel):
    id: int
    kind: NotificationKind
    first_name: str
    last_name: str
    email: str
    date: date
    time: time
    is_instructor: bool
    is_read: bool
    created_at: datetime

    @field_serializer("time")
    def _ser_time(self, value: time) -> str:
        return _hhmm(value)

    @classmethod
    def from_db(cls, *, notification: Notification) -> "NotificationRead":
        return cls(
            id=notification.id,
            kind=notification.kind,
            first_name=notification.first_name,
            last_name=notification.last_name,
            email=notification.email,
            date=notification.booking_date,
            time=notification.time_of_day,
            is_instructor=notification.is_instructor,
            is_read=notification.is_read,
            created_at=notification.created_at,
        )


class MarkAllReadResult(BaseModel):
    updated: int
