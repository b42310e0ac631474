from __future__ import annotations

import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from zoneinfo import ZoneInfo


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from utils.datetime_utils import canonicalize, end_of_month, iter_days, to_storage  # noqa: E402


def test_canonicalize_same_utc_date_from_different_offsets():
    utc = datetime(2026, 2, 12, 15, 0, tzinfo=timezone.utc)
    edmonton = datetime(2026, 2, 12, 8, 0, tzinfo=timezone(timedelta(hours=-7)))
    riyadh = datetime(2026, 2, 12, 18, 0, tzinfo=timezone(timedelta(hours=3)))
    expected = datetime(2026, 2, 12, tzinfo=timezone.utc)
    assert canonicalize(utc) == expected
    assert canonicalize(edmonton) == expected
    assert canonicalize(riyadh) == expected


def test_canonicalize_uses_utc_date_not_local_wall_clock():
    # 23:30 in New York is already the next day in UTC.
    late_evening = datetime(2026, 2, 12, 23, 30, tzinfo=ZoneInfo("America/New_York"))
    assert canonicalize(late_evening) == datetime(2026, 2, 13, tzinfo=timezone.utc)


def test_canonicalize_treats_naive_as_utc_and_accepts_dates():
    assert canonicalize(datetime(2026, 2, 12, 7, 0)) == datetime(2026, 2, 12, tzinfo=timezone.utc)
    assert canonicalize(date(2026, 2, 12)) == datetime(2026, 2, 12, tzinfo=timezone.utc)
    assert to_storage(date(2026, 2, 12)) == datetime(2026, 2, 12)


def test_iter_days_is_inclusive_and_ignores_dst_transitions():
    start = datetime(2026, 3, 7, 12, 0, tzinfo=ZoneInfo("America/New_York"))
    end = datetime(2026, 3, 10, 12, 0, tzinfo=ZoneInfo("America/New_York"))
    days = list(iter_days(start, end))
    assert [d.day for d in days] == [7, 8, 9, 10]
    assert all(d.hour == 0 and d.tzinfo == timezone.utc for d in days)


def test_iter_days_single_day():
    days = list(iter_days(date(2026, 1, 1), date(2026, 1, 1)))
    assert days == [datetime(2026, 1, 1, tzinfo=timezone.utc)]


def test_end_of_month_handles_leap_years_and_december():
    assert end_of_month(2024, 2).day == 29
    assert end_of_month(2026, 2).day == 28
    assert end_of_month(2026, 12) == datetime(2026, 12, 31, tzinfo=timezone.utc)
