from datetime import datetime, date, timedelta, timezone
from typing import Iterator


ONE_DAY = timedelta(days=1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


def canonicalize(value: datetime | date) -> datetime:
    """
    Map a timestamp to its canonical day: midnight UTC of the UTC calendar date.

    Aware datetimes are converted to UTC first, so 23:30-05:00 and 04:30Z on the
    following day land on the same key. Naive datetimes are treated as UTC (that
    is how rows come back from storage). Plain dates carry no offset and map
    straight to their own midnight.
    """
    if isinstance(value, datetime) and value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)


def to_storage(day: datetime) -> datetime:
    """Naive UTC form used in database columns."""
    return canonicalize(day).replace(tzinfo=None)


def iter_days(start: datetime, end: datetime) -> Iterator[datetime]:
    """Yield each canonical day in the inclusive range [start, end]."""
    current = canonicalize(start)
    last = canonicalize(end)
    while current <= last:
        yield current
        current = current + ONE_DAY


def start_of_month(year: int, month: int) -> datetime:
    return datetime(year, month, 1, tzinfo=timezone.utc)


def end_of_month(year: int, month: int) -> datetime:
    if month == 12:
        return datetime(year + 1, 1, 1, tzinfo=timezone.utc) - ONE_DAY
    return datetime(year, month + 1, 1, tzinfo=timezone.utc) - ONE_DAY
