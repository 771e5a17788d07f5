import logging
from dataclasses import dataclass
from datetime import date, time
from typing import Callable

from ..domain.codes import generate_code, is_valid_code, normalize_code
from ..domain.errors import (
    BookingNotFoundError,
    CodeCollisionError,
    CodeGenerationError,
    InvalidCodeError,
    NotificationRecordError,
)
from ..domain.repositories import (
    BlockedDateRepository,
    BookingRepository,
    InstructorRepository,
    NotificationRepository,
)
from ..domain.services import DAILY_CAPACITY, DateSnapshot, ensure_time_window, evaluate
from ..models import Booking, NotificationKind

logger = logging.getLogger(__name__)

DEFAULT_CODE_ATTEMPTS = 5


@dataclass(frozen=True)
class BookingResult:
    code: str
    as_instructor: bool
    bookings: list[Booking]

    @property
    def primary(self) -> Booking:
        return self.bookings[0]


@dataclass(frozen=True)
class CancellationResult:
    deleted: int
    as_instructor: bool
    email: str
    booking_date: date


@dataclass(frozen=True)
class DayBookings:
    booking_date: date
    bookings: list[Booking]
    capacity: int = DAILY_CAPACITY

    @property
    def occupied(self) -> int:
        return len(self.bookings)


async def create_booking(
    booking_repo: BookingRepository,
    instructor_repo: InstructorRepository,
    blocked_repo: BlockedDateRepository,
    notification_repo: NotificationRepository,
    *,
    first_name: str,
    last_name: str,
    email: str,
    year_label: str,
    booking_date: date,
    time_of_day: time,
    enforce_blocked: bool = True,
    code_factory: Callable[[], str] = generate_code,
    max_code_attempts: int = DEFAULT_CODE_ATTEMPTS,
) -> BookingResult:
    # rejected before touching the store
    ensure_time_window(time_of_day)

    blocked = await blocked_repo.get(booking_date) if enforce_blocked else None
    instructor = await instructor_repo.get_by_email(email)
    occupied = await booking_repo.count_for_date(booking_date)
    email_bookings = 0 if instructor is not None else await booking_repo.count_for_email_on_date(email, booking_date)

    snapshot = DateSnapshot(
        occupied=occupied,
        blocked_reason=blocked.reason if blocked is not None else None,
        is_instructor=instructor is not None,
        email_bookings_on_date=email_bookings,
    )
    admission = evaluate(snapshot, at=time_of_day, enforce_blocked=enforce_blocked)

    display_name = instructor.name if instructor is not None else first_name
    slots = DAILY_CAPACITY if admission.as_instructor else 1
    bookings: list[Booking] = []
    for _ in range(slots):
        booking = await _insert_with_fresh_code(
            booking_repo,
            code_factory=code_factory,
            max_attempts=max_code_attempts,
            first_name=display_name,
            last_name=last_name,
            email=email,
            year_label=year_label,
            booking_date=booking_date,
            time_of_day=time_of_day,
        )
        bookings.append(booking)

    await record_notification(
        notification_repo,
        kind=NotificationKind.NEW,
        first_name=display_name,
        last_name=last_name,
        email=email,
        booking_date=booking_date,
        time_of_day=time_of_day,
        is_instructor=admission.as_instructor,
    )
    return BookingResult(code=bookings[0].code, as_instructor=admission.as_instructor, bookings=bookings)


async def cancel_by_code(
    booking_repo: BookingRepository,
    instructor_repo: InstructorRepository,
    notification_repo: NotificationRepository,
    *,
    code: str,
) -> CancellationResult:
    normalized = normalize_code(code)
    if not is_valid_code(normalized):
        raise InvalidCodeError("invalid booking code")
    booking = await booking_repo.get_by_code(normalized)
    if booking is None:
        raise InvalidCodeError("invalid booking code")

    details = _snapshot(booking)
    instructor = await instructor_repo.get_by_email(booking.email)
    if instructor is not None:
        # any of the instructor's codes releases the whole day
        deleted = await booking_repo.delete_for_email_on_date(details.email, details.booking_date)
    else:
        deleted = await booking_repo.delete_by_code(normalized)

    await record_notification(
        notification_repo,
        kind=NotificationKind.CANCELLATION,
        is_instructor=instructor is not None,
        **details.fields(),
    )
    return CancellationResult(
        deleted=deleted,
        as_instructor=instructor is not None,
        email=details.email,
        booking_date=details.booking_date,
    )


async def cancel_by_id(
    booking_repo: BookingRepository,
    instructor_repo: InstructorRepository,
    notification_repo: NotificationRepository,
    *,
    booking_id: int,
) -> CancellationResult:
    booking = await booking_repo.get_by_id(booking_id)
    if booking is None:
        raise BookingNotFoundError("booking not found")
    details = _snapshot(booking)
    instructor = await instructor_repo.get_by_email(booking.email)
    deleted = await booking_repo.delete_by_id(booking_id)

    await record_notification(
        notification_repo,
        kind=NotificationKind.CANCELLATION,
        is_instructor=instructor is not None,
        **details.fields(),
    )
    return CancellationResult(
        deleted=deleted,
        as_instructor=instructor is not None,
        email=details.email,
        booking_date=details.booking_date,
    )


async def cancel_instructor_day(
    booking_repo: BookingRepository,
    instructor_repo: InstructorRepository,
    notification_repo: NotificationRepository,
    *,
    email: str,
    booking_date: date,
) -> CancellationResult:
    rows = await booking_repo.list_for_email_on_date(email, booking_date)
    if not rows:
        raise BookingNotFoundError("no bookings for this email and date")
    details = _snapshot(rows[0])
    instructor = await instructor_repo.get_by_email(email)
    deleted = await booking_repo.delete_for_email_on_date(email, booking_date)

    await record_notification(
        notification_repo,
        kind=NotificationKind.CANCELLATION,
        is_instructor=instructor is not None,
        **details.fields(),
    )
    return CancellationResult(
        deleted=deleted,
        as_instructor=instructor is not None,
        email=details.email,
        booking_date=booking_date,
    )


async def list_day(booking_repo: BookingRepository, *, booking_date: date) -> DayBookings:
    bookings = await booking_repo.list_for_date(booking_date)
    return DayBookings(booking_date=booking_date, bookings=bookings)


async def is_instructor(instructor_repo: InstructorRepository, *, email: str) -> bool:
    return await instructor_repo.get_by_email(email) is not None


async def record_notification(
    notification_repo: NotificationRepository,
    *,
    kind: NotificationKind,
    first_name: str,
    last_name: str,
    email: str,
    booking_date: date,
    time_of_day: time,
    is_instructor: bool,
) -> None:
    """Best-effort: a failed insert is logged and never fails the booking or cancellation."""
    try:
        await notification_repo.create(
            kind=kind,
            first_name=first_name,
            last_name=last_name,
            email=email,
            booking_date=booking_date,
            time_of_day=time_of_day,
            is_instructor=is_instructor,
        )
    except NotificationRecordError:
        logger.exception("could not record %s notification for %s on %s", kind, email, booking_date)


@dataclass(frozen=True)
class _BookingDetails:
    first_name: str
    last_name: str
    email: str
    booking_date: date
    time_of_day: time

    def fields(self) -> dict:
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "booking_date": self.booking_date,
            "time_of_day": self.time_of_day,
        }


def _snapshot(booking: Booking) -> _BookingDetails:
    # copied out before the row is deleted
    return _BookingDetails(
        first_name=booking.first_name,
        last_name=booking.last_name,
        email=booking.email,
        booking_date=booking.booking_date,
        time_of_day=booking.time_of_day,
    )


async def _insert_with_fresh_code(
    booking_repo: BookingRepository,
    *,
    code_factory: Callable[[], str],
    max_attempts: int,
    first_name: str,
    last_name: str,
    email: str,
    year_label: str,
    booking_date: date,
    time_of_day: time,
) -> Booking:
    for attempt in range(1, max_attempts + 1):
        code = code_factory()
        try:
            return await booking_repo.create(
                code=code,
                first_name=first_name,
                last_name=last_name,
                email=email,
                year_label=year_label,
                booking_date=booking_date,
                time_of_day=time_of_day,
            )
        except CodeCollisionError:
            logger.warning("booking code collision (attempt %d/%d)", attempt, max_attempts)
    raise CodeGenerationError("could not allocate a unique booking code")
