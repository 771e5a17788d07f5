from __future__ import annotations

from datetime import date, time
from typing import Protocol

from ..models import BlockedDate, Booking, Instructor, Notification, NotificationKind


class BookingRepository(Protocol):
    async def count_for_date(self, booking_date: date) -> int: ...

    async def count_for_email_on_date(self, email: str, booking_date: date) -> int: ...

    async def counts_from(self, start: date) -> dict[date, int]: ...

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
    ) -> Booking: ...

    async def get_by_code(self, code: str) -> Booking | None: ...

    async def get_by_id(self, booking_id: int) -> Booking | None: ...

    async def list_for_date(self, booking_date: date) -> list[Booking]: ...

    async def list_for_email_on_date(self, email: str, booking_date: date) -> list[Booking]: ...

    async def delete_by_code(self, code: str) -> int: ...

    async def delete_by_id(self, booking_id: int) -> int: ...

    async def delete_for_email_on_date(self, email: str, booking_date: date) -> int: ...


class InstructorRepository(Protocol):
    async def get_by_email(self, email: str) -> Instructor | None: ...

    async def list_all(self) -> list[Instructor]: ...

    async def create(self, *, name: str, email: str) -> Instructor: ...

    async def delete(self, instructor_id: int) -> bool: ...


class BlockedDateRepository(Protocol):
    async def get(self, blocked_on: date) -> BlockedDate | None: ...

    async def list_all(self) -> list[BlockedDate]: ...

    async def dates_from(self, start: date) -> set[date]: ...

    async def create(self, *, blocked_on: date, reason: str) -> BlockedDate: ...

    async def delete(self, blocked_on: date) -> bool: ...


class NotificationRepository(Protocol):
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
    ) -> Notification: ...

    async def list_recent(self, limit: int = 100) -> list[Notification]: ...

    async def mark_read(self, notification_id: int) -> bool: ...

    async def mark_all_read(self) -> int: ...


class AccessCodeRepository(Protocol):
    async def get_code(self) -> str | None: ...

    async def store(self, code: str) -> None: ...
