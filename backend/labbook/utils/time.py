from datetime import date, datetime, time, timezone


def minutes_since_midnight(value: time) -> int:
    """Hours and minutes only; seconds never move a time across a window edge."""
    return value.hour * 60 + value.minute


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today() -> date:
    return date.today()
