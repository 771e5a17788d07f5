from datetime import date, time
from typing import Callable, Iterable, Optional

import pytest
from labbook.domain.codes import is_valid_code
from labbook.domain.errors import (
    BookingNotFoundError,
    CapacityExceededError,
    CodeGenerationError,
    DateAlreadyHasBookingsError,
    DateBlockedError,
    DuplicateBookingError,
    InvalidCodeError,
    InvalidTimeWindowError,
)
from labbook.domain.services import DAILY_CAPACITY
from labbook.models import NotificationKind
from labbook.usecases import bookings as uc
from labbook.usecases.bookings import BookingResult

DAY = date(2025, 5, 10)
INSTRUCTOR_EMAIL = "ruiz@lab.edu"


def _codes(values: Iterable[str]) -> Callable[[], str]:
    it = iter(values)
    return lambda: next(it)


async def _book(
    repos,
    *,
    first_name: str = "Ana",
    last_name: str = "Gomez",
    email: str = "ana@x.com",
    year_label: str = "2º año",
    booking_date: date = DAY,
    time_of_day: time = time(19, 0),
    enforce_blocked: bool = True,
    code_factory: Optional[Callable[[], str]] = None,
    notification_repo=None,
) -> BookingResult:
    kwargs = {}
    if code_factory is not None:
        kwargs["code_factory"] = code_factory
    return await uc.create_booking(
        repos.bookings,
        repos.instructors,
        repos.blocked,
        notification_repo or repos.notifications,
        first_name=first_name,
        last_name=last_name,
        email=email,
        year_label=year_label,
        booking_date=booking_date,
        time_of_day=time_of_day,
        enforce_blocked=enforce_blocked,
        **kwargs,
    )


async def _cancel(repos, code: str):
    return await uc.cancel_by_code(repos.bookings, repos.instructors, repos.notifications, code=code)


async def _register_instructor(repos) -> None:
    await repos.instructors.create(name="Prof. Ruiz", email=INSTRUCTOR_EMAIL)


@pytest.mark.asyncio
async def test_regular_booking_on_empty_date(repos) -> None:
    result = await _book(repos)

    assert result.as_instructor is False
    assert is_valid_code(result.code)
    assert repos.store.occupied(DAY) == 1
    booking = repos.store.bookings[0]
    assert (booking.first_name, booking.last_name, booking.year_label) == ("Ana", "Gomez", "2º año")
    assert len(repos.store.notifications) == 1
    notification = repos.store.notifications[0]
    assert notification.kind == NotificationKind.NEW
    assert notification.is_instructor is False


@pytest.mark.asyncio
async def test_instructor_claims_whole_empty_day(repos) -> None:
    await _register_instructor(repos)

    result = await _book(repos, first_name="ignored", last_name="Ruiz", email="RUIZ@lab.edu")

    assert result.as_instructor is True
    assert repos.store.occupied(DAY) == DAILY_CAPACITY
    rows = repos.store.bookings
    assert len({b.code for b in rows}) == DAILY_CAPACITY
    assert {(b.booking_date, b.time_of_day, b.last_name, b.email) for b in rows} == {
        (DAY, time(19, 0), "Ruiz", "RUIZ@lab.edu")
    }
    assert all(b.first_name == "Prof. Ruiz" for b in rows)
    assert result.code == rows[0].code
    assert len(repos.store.notifications) == 1
    assert repos.store.notifications[0].is_instructor is True
    assert repos.store.notifications[0].first_name == "Prof. Ruiz"


@pytest.mark.asyncio
async def test_instructor_cannot_book_a_full_day_again(repos) -> None:
    await _register_instructor(repos)
    await _book(repos, email=INSTRUCTOR_EMAIL)

    with pytest.raises(DateAlreadyHasBookingsError):
        await _book(repos, email=INSTRUCTOR_EMAIL)
    assert repos.store.occupied(DAY) == DAILY_CAPACITY


@pytest.mark.asyncio
async def test_instructor_cannot_book_a_partially_taken_day(repos) -> None:
    await _register_instructor(repos)
    await _book(repos)

    with pytest.raises(DateAlreadyHasBookingsError):
        await _book(repos, email=INSTRUCTOR_EMAIL)
    assert repos.store.occupied(DAY) == 1


@pytest.mark.asyncio
async def test_student_rejected_on_instructor_day(repos) -> None:
    await _register_instructor(repos)
    await _book(repos, email=INSTRUCTOR_EMAIL)

    with pytest.raises(CapacityExceededError):
        await _book(repos, email="late@x.com")


@pytest.mark.asyncio
async def test_blocked_date_rejects_public_booking(repos) -> None:
    await repos.blocked.create(blocked_on=DAY, reason="exam week")

    with pytest.raises(DateBlockedError) as excinfo:
        await _book(repos)
    assert excinfo.value.reason == "exam week"
    assert repos.store.bookings == []
    assert repos.store.notifications == []


@pytest.mark.asyncio
async def test_admin_booking_bypasses_blocked_date(repos) -> None:
    await repos.blocked.create(blocked_on=DAY, reason="exam week")

    result = await _book(repos, enforce_blocked=False)
    assert repos.store.occupied(DAY) == 1
    assert result.as_instructor is False


@pytest.mark.asyncio
async def test_same_email_twice_on_same_date_is_rejected(repos) -> None:
    await _book(repos)

    with pytest.raises(DuplicateBookingError):
        await _book(repos, email="ANA@X.COM")
    assert repos.store.occupied(DAY) == 1


@pytest.mark.asyncio
async def test_same_email_on_another_date_is_fine(repos) -> None:
    await _book(repos)
    await _book(repos, booking_date=date(2025, 5, 11))
    assert len(repos.store.bookings) == 2


@pytest.mark.asyncio
async def test_capacity_never_exceeds_eight(repos) -> None:
    for idx in range(DAILY_CAPACITY):
        await _book(repos, email=f"student{idx}@x.com")
    assert repos.store.occupied(DAY) == DAILY_CAPACITY

    with pytest.raises(CapacityExceededError):
        await _book(repos, email="ninth@x.com")
    assert repos.store.occupied(DAY) == DAILY_CAPACITY


@pytest.mark.asyncio
@pytest.mark.parametrize("at", [time(18, 39), time(22, 1), time(7, 0)])
async def test_time_outside_window_touches_nothing(repos, at: time) -> None:
    with pytest.raises(InvalidTimeWindowError):
        await _book(repos, time_of_day=at)
    assert repos.store.bookings == []
    assert repos.store.notifications == []


@pytest.mark.asyncio
@pytest.mark.parametrize("at", [time(18, 40), time(22, 0)])
async def test_window_edges_are_admitted(repos, at: time) -> None:
    await _book(repos, time_of_day=at)
    assert repos.store.occupied(DAY) == 1


@pytest.mark.asyncio
async def test_code_collision_regenerates(repos) -> None:
    await _book(repos, code_factory=_codes(["AAAA"]))
    result = await _book(repos, email="bob@x.com", code_factory=_codes(["AAAA", "AAAA", "BBBB"]))

    assert result.code == "BBBB"
    assert sorted(b.code for b in repos.store.bookings) == ["AAAA", "BBBB"]


@pytest.mark.asyncio
async def test_code_collision_gives_up_after_max_attempts(repos) -> None:
    await _book(repos, code_factory=_codes(["AAAA"]))

    with pytest.raises(CodeGenerationError):
        await uc.create_booking(
            repos.bookings,
            repos.instructors,
            repos.blocked,
            repos.notifications,
            first_name="Bob",
            last_name="Lee",
            email="bob@x.com",
            year_label="1",
            booking_date=DAY,
            time_of_day=time(19, 0),
            code_factory=lambda: "AAAA",
            max_code_attempts=3,
        )
    assert repos.store.occupied(DAY) == 1


@pytest.mark.asyncio
async def test_notification_failure_does_not_fail_booking(repos, caplog: pytest.LogCaptureFixture) -> None:
    from conftest import FakeNotificationRepo

    failing = FakeNotificationRepo(repos.store, fail=True)
    result = await _book(repos, notification_repo=failing)

    assert is_valid_code(result.code)
    assert repos.store.occupied(DAY) == 1
    assert repos.store.notifications == []
    assert "could not record" in caplog.text


@pytest.mark.asyncio
async def test_cancel_instructor_primary_code_frees_the_day(repos) -> None:
    await _register_instructor(repos)
    result = await _book(repos, email=INSTRUCTOR_EMAIL)

    cancelled = await _cancel(repos, result.code)

    assert cancelled.deleted == DAILY_CAPACITY
    assert cancelled.as_instructor is True
    assert repos.store.occupied(DAY) == 0
    last = repos.store.notifications[-1]
    assert last.kind == NotificationKind.CANCELLATION
    assert last.is_instructor is True


@pytest.mark.asyncio
async def test_any_instructor_code_cancels_the_whole_day(repos) -> None:
    await _register_instructor(repos)
    result = await _book(repos, email=INSTRUCTOR_EMAIL)
    secondary = result.bookings[-1].code

    cancelled = await _cancel(repos, secondary.lower())

    assert cancelled.deleted == DAILY_CAPACITY
    assert repos.store.occupied(DAY) == 0


@pytest.mark.asyncio
async def test_cancel_regular_removes_only_that_booking(repos) -> None:
    first = await _book(repos)
    await _book(repos, email="bob@x.com")

    cancelled = await _cancel(repos, first.code)

    assert cancelled.deleted == 1
    assert cancelled.as_instructor is False
    assert [b.email for b in repos.store.bookings] == ["bob@x.com"]
    last = repos.store.notifications[-1]
    assert last.kind == NotificationKind.CANCELLATION
    assert last.email == "ana@x.com"
    assert last.is_instructor is False


@pytest.mark.asyncio
async def test_cancelling_twice_reports_invalid_code(repos) -> None:
    result = await _book(repos)
    await _cancel(repos, result.code)

    with pytest.raises(InvalidCodeError):
        await _cancel(repos, result.code)


@pytest.mark.asyncio
@pytest.mark.parametrize("code", ["", "AB", "ABCDE", "AB C"])
async def test_malformed_code_is_invalid(repos, code: str) -> None:
    with pytest.raises(InvalidCodeError):
        await _cancel(repos, code)


@pytest.mark.asyncio
async def test_cancel_by_id_deletes_single_row_even_for_instructor(repos) -> None:
    await _register_instructor(repos)
    result = await _book(repos, email=INSTRUCTOR_EMAIL)
    target = result.bookings[3]

    cancelled = await uc.cancel_by_id(repos.bookings, repos.instructors, repos.notifications, booking_id=target.id)

    assert cancelled.deleted == 1
    assert cancelled.as_instructor is True
    assert repos.store.occupied(DAY) == DAILY_CAPACITY - 1
    assert repos.store.notifications[-1].is_instructor is True


@pytest.mark.asyncio
async def test_cancel_by_id_missing_row(repos) -> None:
    with pytest.raises(BookingNotFoundError):
        await uc.cancel_by_id(repos.bookings, repos.instructors, repos.notifications, booking_id=999)


@pytest.mark.asyncio
async def test_cancel_instructor_day_by_email_and_date(repos) -> None:
    await _register_instructor(repos)
    await _book(repos, email=INSTRUCTOR_EMAIL)

    cancelled = await uc.cancel_instructor_day(
        repos.bookings,
        repos.instructors,
        repos.notifications,
        email="Ruiz@Lab.edu",
        booking_date=DAY,
    )

    assert cancelled.deleted == DAILY_CAPACITY
    assert cancelled.as_instructor is True
    assert repos.store.occupied(DAY) == 0


@pytest.mark.asyncio
async def test_cancel_instructor_day_without_rows(repos) -> None:
    with pytest.raises(BookingNotFoundError):
        await uc.cancel_instructor_day(
            repos.bookings,
            repos.instructors,
            repos.notifications,
            email=INSTRUCTOR_EMAIL,
            booking_date=DAY,
        )


@pytest.mark.asyncio
async def test_list_day_reports_occupancy(repos) -> None:
    await _book(repos, time_of_day=time(21, 0))
    await _book(repos, email="bob@x.com", time_of_day=time(19, 0))

    day = await uc.list_day(repos.bookings, booking_date=DAY)

    assert day.occupied == 2
    assert day.capacity == DAILY_CAPACITY
    assert [b.email for b in day.bookings] == ["bob@x.com", "ana@x.com"]


@pytest.mark.asyncio
async def test_is_instructor_ignores_case(repos) -> None:
    await _register_instructor(repos)
    assert await uc.is_instructor(repos.instructors, email="RUIZ@LAB.EDU") is True
    assert await uc.is_instructor(repos.instructors, email="ana@x.com") is False
