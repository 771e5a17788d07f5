from datetime import date, datetime, time
from itertools import count
from typing import List, Optional

import pytest
from labbook.domain.errors import (
    CodeCollisionError,
    DuplicateBlockedDateError,
    DuplicateInstructorError,
    NotificationRecordError,
)
from labbook.models import BlockedDate, Booking, Instructor, Notification, NotificationKind


def _now() -> datetime:
    return datetime(2025, 5, 1, 12, 0, 0)


class InMemoryStore:
    """Shared state behind the fake repositories, one instance per test."""

    def __init__(self) -> None:
        self.ids = count(1)
        self.bookings: List[Booking] = []
        self.instructors: List[Instructor] = []
        self.blocked: List[BlockedDate] = []
        self.notifications: List[Notification] = []
        self.access_code: Optional[str] = None

    def occupied(self, booking_date: date) -> int:
        return sum(1 for b in self.bookings if b.booking_date == booking_date)


class FakeBookingRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    def _email_on_date(self, email: str, booking_date: date) -> List[Booking]:
        return [
            b
            for b in self.store.bookings
            if b.email.lower() == email.strip().lower() and b.booking_date == booking_date
        ]

    async def count_for_date(self, booking_date: date) -> int:
        return self.store.occupied(booking_date)

    async def count_for_email_on_date(self, email: str, booking_date: date) -> int:
        return len(self._email_on_date(email, booking_date))

    async def counts_from(self, start: date) -> dict[date, int]:
        counts: dict[date, int] = {}
        for b in self.store.bookings:
            if b.booking_date >= start:
                counts[b.booking_date] = counts.get(b.booking_date, 0) + 1
        return counts

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
        if any(b.code == code for b in self.store.bookings):
            raise CodeCollisionError(code)
        booking = Booking(
            id=next(self.store.ids),
            code=code,
            first_name=first_name,
            last_name=last_name,
            email=email,
            year_label=year_label,
            booking_date=booking_date,
            time_of_day=time_of_day,
            created_at=_now(),
        )
        self.store.bookings.append(booking)
        return booking

    async def get_by_code(self, code: str) -> Optional[Booking]:
        return next((b for b in self.store.bookings if b.code == code), None)

    async def get_by_id(self, booking_id: int) -> Optional[Booking]:
        return next((b for b in self.store.bookings if b.id == booking_id), None)

    async def list_for_date(self, booking_date: date) -> List[Booking]:
        rows = [b for b in self.store.bookings if b.booking_date == booking_date]
        return sorted(rows, key=lambda b: (b.time_of_day, b.id))

    async def list_for_email_on_date(self, email: str, booking_date: date) -> List[Booking]:
        return self._email_on_date(email, booking_date)

    async def delete_by_code(self, code: str) -> int:
        return self._remove([b for b in self.store.bookings if b.code == code])

    async def delete_by_id(self, booking_id: int) -> int:
        return self._remove([b for b in self.store.bookings if b.id == booking_id])

    async def delete_for_email_on_date(self, email: str, booking_date: date) -> int:
        return self._remove(self._email_on_date(email, booking_date))

    def _remove(self, rows: List[Booking]) -> int:
        for row in rows:
            self.store.bookings.remove(row)
        return len(rows)


class FakeInstructorRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def get_by_email(self, email: str) -> Optional[Instructor]:
        wanted = email.strip().lower()
        return next((i for i in self.store.instructors if i.email.lower() == wanted), None)

    async def list_all(self) -> List[Instructor]:
        return sorted(self.store.instructors, key=lambda i: (i.name, i.id))

    async def create(self, *, name: str, email: str) -> Instructor:
        if await self.get_by_email(email) is not None:
            raise DuplicateInstructorError("instructor email already registered")
        instructor = Instructor(id=next(self.store.ids), name=name, email=email.strip().lower(), created_at=_now())
        self.store.instructors.append(instructor)
        return instructor

    async def delete(self, instructor_id: int) -> bool:
        before = len(self.store.instructors)
        self.store.instructors = [i for i in self.store.instructors if i.id != instructor_id]
        return len(self.store.instructors) < before


class FakeBlockedDateRepo:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store

    async def get(self, blocked_on: date) -> Optional[BlockedDate]:
        return next((b for b in self.store.blocked if b.blocked_on == blocked_on), None)

    async def list_all(self) -> List[BlockedDate]:
        return sorted(self.store.blocked, key=lambda b: b.blocked_on)

    async def dates_from(self, start: date) -> set[date]:
        return {b.blocked_on for b in self.store.blocked if b.blocked_on >= start}

    async def create(self, *, blocked_on: date, reason: str) -> BlockedDate:
        if await self.get(blocked_on) is not None:
            raise DuplicateBlockedDateError("date is already blocked")
        blocked = BlockedDate(id=next(self.store.ids), blocked_on=blocked_on, reason=reason, created_at=_now())
        self.store.blocked.append(blocked)
        return blocked

    async def delete(self, blocked_on: date) -> bool:
        before = len(self.store.blocked)
        self.store.blocked = [b for b in self.store.blocked if b.blocked_on != blocked_on]
        return len(self.store.blocked) < before


class FakeNotificationRepo:
    def __init__(self, store: InMemoryStore, *, fail: bool = False) -> None:
        self.store = store
        self.fail = fail

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
        if self.fail:
            raise NotificationRecordError("notifications table unavailable")
        notification = Notification(
            id=next(self.store.ids),
            kind=kind,
            first_name=first_name,
            last_name=last_name,
            email=email,
            booking_date=booking_date,
            time_of_day=time_of_day,
            is_instructor=is_instructor,
            is_read=False,
            created_at=_now(),
        )
        self.store.notifications.append(notification)
        return notification

    async def list_recent(self, limit: int = 100) -> List[Notification]:
        return sorted(self.store.notifications, key=lambda n: (n.created_at, n.id), reverse=True)[:limit]

    async def mark_read(self, notification_id: int) -> bool:
        for n in self.store.notifications:
            if n.id == notification_id:
                n.is_read = True
                return True
        return False

    async def mark_all_read(self) -> int:
        unread = [n for n in self.store.notifications if not n.is_read]
        for n in unread:
            n.is_read = True
        return len(unread)


class FakeAccessCodeRepo:
    def __init__(self, state: InMemoryStore) -> None:
        self.state = state

    async def get_code(self) -> Optional[str]:
        return self.state.access_code

    async def store(self, code: str) -> None:
        self.state.access_code = code


class Repos:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store
        self.bookings = FakeBookingRepo(store)
        self.instructors = FakeInstructorRepo(store)
        self.blocked = FakeBlockedDateRepo(store)
        self.notifications = FakeNotificationRepo(store)
        self.access = FakeAccessCodeRepo(store)


@pytest.fixture
def repos() -> Repos:
    return Repos(InMemoryStore())
