import logging
from datetime import date, timedelta
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Path, Query, Response, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings, get_settings
from ..deps import get_mailer, get_session, require_admin
from ..domain.errors import BookingError
from ..infrastructure.mailer import SmtpMailer
from ..infrastructure.reports import build_day_report, report_filename
from ..infrastructure.repositories import (
    SqlAlchemyAccessCodeRepository,
    SqlAlchemyBlockedDateRepository,
    SqlAlchemyBookingRepository,
    SqlAlchemyInstructorRepository,
    SqlAlchemyNotificationRepository,
)
from ..schemas import (
    AdminLogin,
    BlockedDateCreate,
    BlockedDateRead,
    BookingCreate,
    BookingCreated,
    CancellationRead,
    DayBookingsRead,
    InstructorCheck,
    InstructorCreate,
    InstructorRead,
    MarkAllReadResult,
    NotificationRead,
    TokenRead,
)
from ..usecases import admin as admin_usecase
from ..usecases import bookings as booking_usecase
from ..utils.audit_log import audit_after_commit
from .bookings import commit_booking, schedule_confirmation
from .errors import storage_errors, storage_failure, to_http

logger = logging.getLogger(__name__)

login_router = APIRouter(prefix="/admin", tags=["admin"])
router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@login_router.post("/login", response_model=TokenRead)
async def login(
    payload: AdminLogin,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> TokenRead:
    access_repo = SqlAlchemyAccessCodeRepository(session)
    try:
        async with storage_errors("admin login"):
            token = await admin_usecase.authenticate_admin(
                access_repo,
                code=payload.code,
                secret=settings.auth_secret,
                algorithm=settings.auth_algorithm,
                ttl=timedelta(minutes=settings.admin_token_ttl_minutes),
            )
    except BookingError as exc:
        audit_after_commit(action="admin.login_denied", initiator="admin")
        raise to_http(exc) from exc
    audit_after_commit(action="admin.login", initiator="admin")
    return TokenRead(access_token=token)


# --- bookings -----------------------------------------------------------------


@router.get("/bookings", response_model=DayBookingsRead)
async def list_bookings_for_date(
    booking_date: date = Query(..., alias="date"),
    session: AsyncSession = Depends(get_session),
) -> DayBookingsRead:
    async with storage_errors("listing bookings"):
        day = await booking_usecase.list_day(SqlAlchemyBookingRepository(session), booking_date=booking_date)
    return DayBookingsRead.from_domain(day)


@router.post("/bookings", response_model=BookingCreated, status_code=status.HTTP_201_CREATED)
async def admin_create_booking(
    payload: BookingCreate,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
    mailer: SmtpMailer = Depends(get_mailer),
) -> BookingCreated:
    result = await commit_booking(session, payload, settings=settings, enforce_blocked=False)

    audit_after_commit(
        action="booking.admin_created",
        initiator="admin",
        email=payload.email,
        booking_date=payload.date,
        code=result.code,
        count=len(result.bookings),
        as_instructor=result.as_instructor,
    )
    schedule_confirmation(background_tasks, mailer, payload, result)
    return BookingCreated.from_result(result)


@router.delete("/bookings/instructor", response_model=CancellationRead)
async def admin_delete_instructor_bookings(
    email: str = Query(..., min_length=3, max_length=255),
    booking_date: date = Query(..., alias="date"),
    session: AsyncSession = Depends(get_session),
) -> CancellationRead:
    try:
        async with session.begin():
            try:
                result = await booking_usecase.cancel_instructor_day(
                    SqlAlchemyBookingRepository(session),
                    SqlAlchemyInstructorRepository(session),
                    SqlAlchemyNotificationRepository(session),
                    email=email,
                    booking_date=booking_date,
                )
            except BookingError as exc:
                raise to_http(exc) from exc
    except DBAPIError as exc:
        logger.exception("instructor day cancellation failed for %s on %s", email, booking_date)
        raise storage_failure() from exc

    audit_after_commit(
        action="booking.admin_cancelled",
        initiator="admin",
        email=result.email,
        booking_date=result.booking_date,
        count=result.deleted,
        as_instructor=result.as_instructor,
    )
    return CancellationRead(deleted=result.deleted, as_instructor=result.as_instructor)


@router.delete("/bookings/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
async def admin_delete_booking(
    booking_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> Response:
    try:
        async with session.begin():
            try:
                result = await booking_usecase.cancel_by_id(
                    SqlAlchemyBookingRepository(session),
                    SqlAlchemyInstructorRepository(session),
                    SqlAlchemyNotificationRepository(session),
                    booking_id=booking_id,
                )
            except BookingError as exc:
                raise to_http(exc) from exc
    except DBAPIError as exc:
        logger.exception("booking %s deletion failed", booking_id)
        raise storage_failure() from exc

    audit_after_commit(
        action="booking.admin_cancelled",
        initiator="admin",
        email=result.email,
        booking_date=result.booking_date,
        count=result.deleted,
        as_instructor=result.as_instructor,
        extra={"booking_id": booking_id},
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- instructors --------------------------------------------------------------


@router.get("/instructors", response_model=List[InstructorRead])
async def list_instructors(session: AsyncSession = Depends(get_session)) -> list[InstructorRead]:
    async with storage_errors("listing instructors"):
        rows = await admin_usecase.list_instructors(SqlAlchemyInstructorRepository(session))
    return [InstructorRead.from_db(instructor=row) for row in rows]


@router.get("/instructors/check", response_model=InstructorCheck)
async def check_instructor(
    email: str = Query(..., min_length=1, max_length=255),
    session: AsyncSession = Depends(get_session),
) -> InstructorCheck:
    async with storage_errors("instructor check"):
        found = await booking_usecase.is_instructor(SqlAlchemyInstructorRepository(session), email=email)
    return InstructorCheck(email=email, is_instructor=found)


@router.post("/instructors", response_model=InstructorRead, status_code=status.HTTP_201_CREATED)
async def add_instructor(
    payload: InstructorCreate,
    session: AsyncSession = Depends(get_session),
) -> InstructorRead:
    async with storage_errors("adding instructor"), session.begin():
        try:
            instructor = await admin_usecase.add_instructor(
                SqlAlchemyInstructorRepository(session),
                name=payload.name,
                email=payload.email,
            )
        except BookingError as exc:
            raise to_http(exc) from exc

    audit_after_commit(action="instructor.added", initiator="admin", email=instructor.email)
    return InstructorRead.from_db(instructor=instructor)


@router.delete("/instructors/{instructor_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_instructor(
    instructor_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> Response:
    async with storage_errors("removing instructor"), session.begin():
        removed = await admin_usecase.remove_instructor(
            SqlAlchemyInstructorRepository(session),
            instructor_id=instructor_id,
        )
    if removed:
        audit_after_commit(action="instructor.removed", initiator="admin", extra={"instructor_id": instructor_id})
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- blocked dates ------------------------------------------------------------


@router.get("/blocked-dates", response_model=List[BlockedDateRead])
async def list_blocked_dates(session: AsyncSession = Depends(get_session)) -> list[BlockedDateRead]:
    async with storage_errors("listing blocked dates"):
        rows = await admin_usecase.list_blocked_dates(SqlAlchemyBlockedDateRepository(session))
    return [BlockedDateRead.from_db(blocked=row) for row in rows]


@router.post("/blocked-dates", response_model=BlockedDateRead, status_code=status.HTTP_201_CREATED)
async def block_date(
    payload: BlockedDateCreate,
    session: AsyncSession = Depends(get_session),
) -> BlockedDateRead:
    async with storage_errors("blocking date"), session.begin():
        try:
            blocked = await admin_usecase.block_date(
                SqlAlchemyBlockedDateRepository(session),
                blocked_on=payload.date,
                reason=payload.reason,
            )
        except BookingError as exc:
            raise to_http(exc) from exc

    audit_after_commit(action="date.blocked", initiator="admin", booking_date=blocked.blocked_on, message=blocked.reason)
    return BlockedDateRead.from_db(blocked=blocked)


@router.delete("/blocked-dates/{blocked_on}", status_code=status.HTTP_204_NO_CONTENT)
async def unblock_date(
    blocked_on: date,
    session: AsyncSession = Depends(get_session),
) -> Response:
    async with storage_errors("unblocking date"), session.begin():
        removed = await admin_usecase.unblock_date(SqlAlchemyBlockedDateRepository(session), blocked_on=blocked_on)
    if removed:
        audit_after_commit(action="date.unblocked", initiator="admin", booking_date=blocked_on)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- notifications ------------------------------------------------------------


@router.get("/notifications", response_model=List[NotificationRead])
async def list_notifications(
    limit: int = Query(default=admin_usecase.DEFAULT_NOTIFICATION_LIMIT, ge=1, le=500),
    session: AsyncSession = Depends(get_session),
) -> list[NotificationRead]:
    async with storage_errors("listing notifications"):
        rows = await admin_usecase.list_notifications(SqlAlchemyNotificationRepository(session), limit=limit)
    return [NotificationRead.from_db(notification=row) for row in rows]


@router.patch("/notifications/read-all", response_model=MarkAllReadResult)
async def mark_all_notifications_read(session: AsyncSession = Depends(get_session)) -> MarkAllReadResult:
    async with storage_errors("marking notifications read"), session.begin():
        updated = await admin_usecase.mark_all_notifications_read(SqlAlchemyNotificationRepository(session))
    return MarkAllReadResult(updated=updated)


@router.patch("/notifications/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def mark_notification_read(
    notification_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> Response:
    async with storage_errors("marking notification read"), session.begin():
        await admin_usecase.mark_notification_read(
            SqlAlchemyNotificationRepository(session),
            notification_id=notification_id,
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- reports ------------------------------------------------------------------


@router.get("/reports/{report_date}", response_class=Response)
async def generate_report(
    report_date: date,
    session: AsyncSession = Depends(get_session),
) -> Response:
    async with storage_errors("loading report bookings"):
        day = await booking_usecase.list_day(SqlAlchemyBookingRepository(session), booking_date=report_date)
    try:
        pdf = await run_in_threadpool(build_day_report, report_date, day.bookings)
    except Exception as exc:
        logger.exception("report rendering failed for %s", report_date)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="could not render report") from exc
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{report_filename(report_date)}"'},
    )
