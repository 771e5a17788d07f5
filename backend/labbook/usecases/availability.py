from dataclasses import dataclass, field
from datetime import date, timedelta
from itertools import chain
from typing import Iterator

from ..domain.repositories import BlockedDateRepository, BookingRepository
from ..domain.services import DAILY_CAPACITY

DEFAULT_HORIZON_DAYS = 30


@dataclass(frozen=True)
class AvailableDate:
    booking_date: date
    occupied: int


@dataclass(frozen=True)
class AvailableDates:
    """
    Dates open for booking: every day in [start, start + horizon] plus any later
    day that already has bookings, minus blocked and full days.

    Iterating is lazy and can be repeated; each pass walks the same data.
    """

    start: date
    horizon_days: int
    occupied_by_date: dict[date, int] = field(default_factory=dict)
    blocked: frozenset[date] = field(default_factory=frozenset)

    def __iter__(self) -> Iterator[AvailableDate]:
        window = (self.start + timedelta(days=offset) for offset in range(self.horizon_days + 1))
        horizon_end = self.start + timedelta(days=self.horizon_days)
        beyond = sorted(d for d in self.occupied_by_date if d > horizon_end)
        for candidate in chain(window, beyond):
            if candidate in self.blocked:
                continue
            occupied = self.occupied_by_date.get(candidate, 0)
            if occupied >= DAILY_CAPACITY:
                continue
            yield AvailableDate(booking_date=candidate, occupied=occupied)


async def list_available_dates(
    booking_repo: BookingRepository,
    blocked_repo: BlockedDateRepository,
    *,
    today: date,
    horizon_days: int = DEFAULT_HORIZON_DAYS,
) -> AvailableDates:
    occupied = await booking_repo.counts_from(today)
    blocked = await blocked_repo.dates_from(today)
    return AvailableDates(
        start=today,
        horizon_days=horizon_days,
        occupied_by_date=occupied,
        blocked=frozenset(blocked),
    )
