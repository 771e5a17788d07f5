import logging
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, Path, status
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings, get_settings
from ..deps import get_mailer, get_session
from ..domain.errors import BookingError
from ..infrastructure.mailer import Confirmation, SmtpMailer
from ..infrastructure.repositories import (
    SqlAlchemyBlockedDateRepository,
    SqlAlchemyBookingRepository,
    SqlAlchemyInstructorRepository,
    SqlAlchemyNotificationRepository,
)
from ..schemas import AvailableDateRead, BookingCreate, BookingCreated, CancellationRead
from ..usecases import availability as availability_usecase
from ..usecases import bookings as booking_usecase
from ..usecases.bookings import BookingResult
from ..utils.audit_log import audit_after_commit
from ..utils.time import today
from .errors import storage_failure, to_http

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"])


async def commit_booking(
    session: AsyncSession,
    payload: BookingCreate,
    *,
    settings: Settings,
    enforce_blocked: bool,
) -> BookingResult:
    """Run one booking in its own transaction and map failures to HTTP errors."""
    try:
        async with session.begin():
            try:
                return await booking_usecase.create_booking(
                    SqlAlchemyBookingRepository(session),
                    SqlAlchemyInstructorRepository(session),
                    SqlAlchemyBlockedDateRepository(session),
                    SqlAlchemyNotificationRepository(session),
                    first_name=payload.first_name,
                    last_name=payload.last_name,
                    email=payload.email,
                    year_label=payload.year_label,
                    booking_date=payload.date,
                    time_of_day=payload.time,
                    enforce_blocked=enforce_blocked,
                    max_code_attempts=settings.code_max_attempts,
                )
            except BookingError as exc:
                raise to_http(exc) from exc
    except DBAPIError as exc:
        # serialization failures and deadlocks land here; nothing was committed
        logger.exception("booking transaction failed for %s on %s", payload.email, payload.date)
        raise storage_failure() from exc


def schedule_confirmation(
    background_tasks: BackgroundTasks,
    mailer: SmtpMailer,
    payload: BookingCreate,
    result: BookingResult,
) -> None:
    primary = result.primary
    background_tasks.add_task(
        mailer.send_confirmation,
        Confirmation(
            code=result.code,
            first_name=primary.first_name,
            last_name=payload.last_name,
            email=payload.email,
            year_label=payload.year_label,
            booking_date=payload.date,
            time_of_day=payload.time,
            as_instructor=result.as_instructor,
        ),
    )


@router.get("/available-dates", response_model=List[AvailableDateRead])
async def list_available_dates(
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> list[AvailableDateRead]:
    booking_repo = SqlAlchemyBookingRepository(session)
    blocked_repo = SqlAlchemyBlockedDateRepository(session)
    try:
        dates = await availability_usecase.list_available_dates(
            booking_repo,
            blocked_repo,
            today=today(),
            horizon_days=settings.availability_horizon_days,
        )
    except DBAPIError as exc:
        logger.exception("could not load available dates")
        raise storage_failure() from exc
    return [AvailableDateRead.from_domain(item) for item in dates]


@router.post("", response_model=BookingCreated, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    mailer: SmtpMailer = Depends(get_mailer),
) -> BookingCreated:
    result = await commit_booking(session, payload, settings=settings, enforce_blocked=True)

    audit_after_commit(
        action="booking.created",
        initiator="public",
        email=payload.email,
        booking_date=payload.date,
        code=result.code,
        count=len(result.bookings),
        as_instructor=result.as_instructor,
    )
    schedule_confirmation(background_tasks, mailer, payload, result)
    return BookingCreated.from_result(result)


@router.delete("/{code}", response_model=CancellationRead)
async def cancel_booking(
    code: str = Path(..., min_length=1, max_length=16),
    session: AsyncSession = Depends(get_session),
) -> CancellationRead:
    booking_repo = SqlAlchemyBookingRepository(session)
    instructor_repo = SqlAlchemyInstructorRepository(session)
    notification_repo = SqlAlchemyNotificationRepository(session)
    try:
        async with session.begin():
            try:
                result = await booking_usecase.cancel_by_code(
                    booking_repo,
                    instructor_repo,
                    notification_repo,
                    code=code,
                )
            except BookingError as exc:
                raise to_http(exc) from exc
    except DBAPIError as exc:
        logger.exception("cancellation transaction failed")
        raise storage_failure() from exc

    audit_after_commit(
        action="booking.cancelled",
        initiator="public",
        email=result.email,
        booking_date=result.booking_date,
        code=code.strip().upper(),
        count=result.deleted,
        as_instructor=result.as_instructor,
    )
    return CancellationRead(deleted=result.deleted, as_instructor=result.as_instructor)
