from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable

from sqlalchemy.orm import Session

from db.models import CompletionRecord
from services.completion_store import CompletionStore
from services.errors import InvalidRange
from services.trackables import TrackableKind, TrackableSet, completion_percentage
from utils.datetime_utils import canonicalize, end_of_month, iter_days, start_of_month, today_utc


@dataclass(frozen=True)
class DayStat:
    day: datetime
    completed_count: int
    total: int
    percentage: int
    is_success_day: bool
    statuses: dict[str, bool] = field(default_factory=dict)


@dataclass(frozen=True)
class MonthStat:
    month: int
    success_days: int
    total_days: int
    percentage: int


def _qualifies(record: CompletionRecord) -> bool:
    if record.kind == TrackableKind.PRAYER.value:
        return bool(record.state)
    return True


def completion_index(
    records: Iterable[CompletionRecord],
    trackable_ids: Iterable[str] | None = None,
) -> dict[datetime, set[str]]:
    """
    Group qualifying records into {canonical day: completed trackable ids}.

    Sets collapse duplicate rows that survive from before reconciliation, and
    ids outside ``trackable_ids`` (deleted or inactive habits) are ignored.
    """
    allowed = set(trackable_ids) if trackable_ids is not None else None
    index: dict[datetime, set[str]] = defaultdict(set)
    for record in records:
        if not _qualifies(record):
            continue
        if allowed is not None and record.trackable_id not in allowed:
            continue
        index[canonicalize(record.day)].add(record.trackable_id)
    return index


def _check_range(start_day: date | datetime, end_day: date | datetime) -> tuple[datetime, datetime]:
    if start_day is None or end_day is None:
        raise InvalidRange("startDate and endDate are required")
    try:
        start = canonicalize(start_day)
        end = canonicalize(end_day)
    except (AttributeError, TypeError, ValueError) as exc:
        raise InvalidRange(f"Invalid date: {exc}") from exc
    if end < start:
        raise InvalidRange("endDate must not be before startDate")
    return start, end


def build_day_stats(
    trackable_set: TrackableSet,
    index: dict[datetime, set[str]],
    start: datetime,
    end: datetime,
) -> list[DayStat]:
    total = trackable_set.total
    if total == 0:
        return []
    days: list[DayStat] = []
    for day in iter_days(start, end):
        done = index.get(day, set())
        statuses = {tid: tid in done for tid in trackable_set.trackable_ids}
        completed = sum(1 for flag in statuses.values() if flag)
        days.append(
            DayStat(
                day=day,
                completed_count=completed,
                total=total,
                percentage=completion_percentage(completed, total),
                is_success_day=trackable_set.is_success_day(completed),
                statuses=statuses,
            )
        )
    return days


def daily_stats(
    db: Session,
    user_id: str,
    trackable_set: TrackableSet,
    start_day: date | datetime,
    end_day: date | datetime,
) -> list[DayStat]:
    """One DayStat per canonical day in [start_day, end_day]; empty when nothing is tracked."""
    start, end = _check_range(start_day, end_day)
    if trackable_set.total == 0:
        return []
    records = CompletionStore(db).scan_range(user_id, trackable_set.kind, start, end)
    index = completion_index(records, trackable_set.trackable_ids)
    return build_day_stats(trackable_set, index, start, end)


def list_entries(
    db: Session,
    user_id: str,
    kind: TrackableKind,
    start_day: date | datetime,
    end_day: date | datetime,
) -> list[dict]:
    """Qualifying completions in the range, one per (trackable, canonical day)."""
    start, end = _check_range(start_day, end_day)
    records = CompletionStore(db).scan_range(user_id, kind, start, end)
    index = completion_index(records)
    return [
        {"trackable_id": tid, "day": day, "kind": kind.value}
        for day in sorted(index)
        for tid in sorted(index[day])
    ]


def monthly_stats(
    db: Session,
    user_id: str,
    trackable_set: TrackableSet,
    year: int,
    today: date | datetime | None = None,
) -> list[MonthStat]:
    if not 1 <= int(year) <= 9998:
        raise InvalidRange(f"Invalid year: {year}")
    today_day = canonicalize(today if today is not None else today_utc())

    year_start = start_of_month(year, 1)
    year_end = min(end_of_month(year, 12), today_day)
    by_day: dict[datetime, DayStat] = {}
    if trackable_set.total and year_start <= year_end:
        for stat in daily_stats(db, user_id, trackable_set, year_start, year_end):
            by_day[stat.day] = stat

    months: list[MonthStat] = []
    for month in range(1, 13):
        month_start = start_of_month(year, month)
        if month_start > today_day or not trackable_set.total:
            months.append(MonthStat(month=month, success_days=0, total_days=0, percentage=0))
            continue
        month_end = min(end_of_month(year, month), today_day)
        days = [by_day[d] for d in iter_days(month_start, month_end) if d in by_day]
        total_days = len(days)
        success_days = sum(1 for stat in days if stat.is_success_day)
        percentage = completion_percentage(success_days, total_days) if total_days else 0
        months.append(
            MonthStat(month=month, success_days=success_days, total_days=total_days, percentage=percentage)
        )
    return months
