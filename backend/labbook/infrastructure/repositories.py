from __future__ import annotations

from datetime import date, time
from typing import Any, List, Optional, Tuple

from sqlalchemy import Select, delete, func, select, update
from sqlalchemy.exc import DataError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import (
    CodeCollisionError,
    DuplicateBlockedDateError,
    DuplicateInstructorError,
    NotificationRecordError,
)
from ..domain.repositories import (
    AccessCodeRepository,
    BlockedDateRepository,
    BookingRepository,
    InstructorRepository,
    NotificationRepository,
)
from ..models import AdminAccessConfig, BlockedDate, Booking, Instructor, Notification, NotificationKind
from ..utils.time import utc_now_naive

ACCESS_CONFIG_ID = 1


def _same_email(column: Any, email: str) -> Any:
    return func.lower(column) == email.strip().lower()


def _is_code_collision(exc: IntegrityError) -> bool:
    # MySQL names the constraint, sqlite names the column
    message = str(exc.orig)
    return "uq_bookings_code" in message or "bookings.code" in message


class SqlAlchemyBookingRepository(BookingRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def count_for_date(self, booking_date: date) -> int:
        stmt = select(func.count(Booking.id)).where(Booking.booking_date == booking_date)
        return int(await self.session.scalar(stmt) or 0)

    async def count_for_email_on_date(self, email: str, booking_date: date) -> int:
        stmt = select(func.count(Booking.id)).where(
            _same_email(Booking.email, email),
            Booking.booking_date == booking_date,
        )
        return int(await self.session.scalar(stmt) or 0)

    async def counts_from(self, start: date) -> dict[date, int]:
        stmt: Select[Tuple[date, Any]] = (
            select(Booking.booking_date, func.count(Booking.id))
            .where(Booking.booking_date >= start)
            .group_by(Booking.booking_date)
        )
        rows = await self.session.execute(stmt)
        return {booking_date: int(total) for booking_date, total in rows.all()}

    async def create(
        self,
        *,
        code: str,
        first_name: str,
        last_name: str,
        email: str,
        year_label: str,
        booking_date: date,
        time_of_day: time,
    ) -> Booking:
        booking = Booking(
            code=code,
            first_name=first_name,
            last_name=last_name,
            email=email,
            year_label=year_label,
            booking_date=booking_date,
            time_of_day=time_of_day,
            created_at=utc_now_naive(),
        )
        # savepoint so a code collision leaves the surrounding transaction usable
        try:
            async with self.session.begin_nested():
                self.session.add(booking)
                await self.session.flush()
        except IntegrityError as exc:
            if not _is_code_collision(exc):
                raise
            raise CodeCollisionError(code) from exc
        return booking

    async def get_by_code(self, code: str) -> Booking | None:
        result = await self.session.scalar(select(Booking).where(Booking.code == code).with_for_update())
        return result if isinstance(result, Booking) else None

    async def get_by_id(self, booking_id: int) -> Booking | None:
        result = await self.session.scalar(select(Booking).where(Booking.id == booking_id).with_for_update())
        return result if isinstance(result, Booking) else None

    async def list_for_date(self, booking_date: date) -> List[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.booking_date == booking_date)
            .order_by(Booking.time_of_day.asc(), Booking.id.asc())
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_for_email_on_date(self, email: str, booking_date: date) -> List[Booking]:
        stmt = (
            select(Booking)
            .where(_same_email(Booking.email, email), Booking.booking_date == booking_date)
            .order_by(Booking.id.asc())
            .with_for_update()
        )
        return list((await self.session.scalars(stmt)).all())

    async def delete_by_code(self, code: str) -> int:
        result = await self.session.execute(delete(Booking).where(Booking.code == code))
        return int(result.rowcount or 0)

    async def delete_by_id(self, booking_id: int) -> int:
        result = await self.session.execute(delete(Booking).where(Booking.id == booking_id))
        return int(result.rowcount or 0)

    async def delete_for_email_on_date(self, email: str, booking_date: date) -> int:
        result = await self.session.execute(
            delete(Booking)
            .where(_same_email(Booking.email, email), Booking.booking_date == booking_date)
            .execution_options(synchronize_session="fetch")
        )
        return int(result.rowcount or 0)


class SqlAlchemyInstructorRepository(InstructorRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_email(self, email: str) -> Instructor | None:
        result = await self.session.scalar(select(Instructor).where(_same_email(Instructor.email, email)))
        return result if isinstance(result, Instructor) else None

    async def list_all(self) -> List[Instructor]:
        stmt = select(Instructor).order_by(Instructor.name.asc(), Instructor.id.asc())
        return list((await self.session.scalars(stmt)).all())

    async def create(self, *, name: str, email: str) -> Instructor:
        normalized = email.strip().lower()
        if await self.get_by_email(normalized) is not None:
            raise DuplicateInstructorError("instructor email already registered")
        instructor = Instructor(name=name, email=normalized, created_at=utc_now_naive())
        try:
            async with self.session.begin_nested():
                self.session.add(instructor)
                await self.session.flush()
        except IntegrityError as exc:
            raise DuplicateInstructorError("instructor email already registered") from exc
        return instructor

    async def delete(self, instructor_id: int) -> bool:
        result = await self.session.execute(delete(Instructor).where(Instructor.id == instructor_id))
        return bool(result.rowcount)


class SqlAlchemyBlockedDateRepository(BlockedDateRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, blocked_on: date) -> BlockedDate | None:
        result = await self.session.scalar(select(BlockedDate).where(BlockedDate.blocked_on == blocked_on))
        return result if isinstance(result, BlockedDate) else None

    async def list_all(self) -> List[BlockedDate]:
        stmt = select(BlockedDate).order_by(BlockedDate.blocked_on.asc())
        return list((await self.session.scalars(stmt)).all())

    async def dates_from(self, start: date) -> set[date]:
        stmt = select(BlockedDate.blocked_on).where(BlockedDate.blocked_on >= start)
        return set((await self.session.scalars(stmt)).all())

    async def create(self, *, blocked_on: date, reason: str) -> BlockedDate:
        blocked = BlockedDate(blocked_on=blocked_on, reason=reason, created_at=utc_now_naive())
        try:
            async with self.session.begin_nested():
                self.session.add(blocked)
                await self.session.flush()
        except IntegrityError as exc:
            raise DuplicateBlockedDateError("date is already blocked") from exc
        return blocked

    async def delete(self, blocked_on: date) -> bool:
        result = await self.session.execute(delete(BlockedDate).where(BlockedDate.blocked_on == blocked_on))
        return bool(result.rowcount)


class SqlAlchemyNotificationRepository(NotificationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(
        self,
        *,
        kind: NotificationKind,
        first_name: str,
        last_name: str,
        email: str,
        booking_date: date,
        time_of_day: time,
        is_instructor: bool,
    ) -> Notification:
        notification = Notification(
            kind=kind,
            first_name=first_name,
            last_name=last_name,
            email=email,
            booking_date=booking_date,
            time_of_day=time_of_day,
            is_instructor=is_instructor,
            is_read=False,
            created_at=utc_now_naive(),
        )
        try:
            async with self.session.begin_nested():
                self.session.add(notification)
                await self.session.flush()
        except (IntegrityError, DataError) as exc:
            raise NotificationRecordError("failed to record notification") from exc
        return notification

    async def list_recent(self, limit: int = 100) -> List[Notification]:
        stmt = select(Notification).order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
        return list((await self.session.scalars(stmt)).all())

    async def mark_read(self, notification_id: int) -> bool:
        result = await self.session.execute(
            update(Notification).where(Notification.id == notification_id).values(is_read=True)
        )
        return bool(result.rowcount)

    async def mark_all_read(self) -> int:
        result = await self.session.execute(
            update(Notification).where(Notification.is_read.is_(False)).values(is_read=True)
        )
        return int(result.rowcount or 0)


class SqlAlchemyAccessCodeRepository(AccessCodeRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_code(self) -> Optional[str]:
        stmt = select(AdminAccessConfig.access_code).where(AdminAccessConfig.id == ACCESS_CONFIG_ID)
        return await self.session.scalar(stmt)

    async def store(self, code: str) -> None:
        config = await self.session.get(AdminAccessConfig, ACCESS_CONFIG_ID)
        if config is None:
            config = AdminAccessConfig(id=ACCESS_CONFIG_ID, access_code=code, updated_at=utc_now_naive())
            self.session.add(config)
        else:
            config.access_code = code
            config.updated_at = utc_now_naive()
        await self.session.flush()
