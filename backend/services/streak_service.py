from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable

from sqlalchemy.orm import Session

from config import settings
from services.completion_store import CompletionStore
from services.milestone_service import list_milestones, milestone_to_dict
from services.stats_service import completion_index
from services.trackables import TrackableKind, TrackableSet, milestone_thresholds, trackable_set_for
from utils.datetime_utils import ONE_DAY, canonicalize, today_utc


DayPredicate = Callable[[datetime], bool]


@dataclass(frozen=True)
class StreakResult:
    current: int
    longest: int


def walk_streak(is_success_day: DayPredicate, today: datetime, window_days: int) -> StreakResult:
    """
    Walk ``window_days`` canonical days backwards from ``today``.

    ``current`` counts successes until the first failure and then freezes;
    ``longest`` is the best run anywhere in the window. Runs longer than the
    window are reported as the window length.
    """
    current = 0
    longest = 0
    run = 0
    broken = False
    day = canonicalize(today)
    for _ in range(window_days):
        if is_success_day(day):
            run += 1
            if not broken:
                current += 1
            longest = max(longest, run)
        else:
            broken = True
            run = 0
        day = day - ONE_DAY
    return StreakResult(current=current, longest=longest)


def _window(today: date | datetime | None, window_days: int | None) -> tuple[datetime, datetime, int]:
    days = int(window_days or settings.STREAK_WINDOW_DAYS)
    end = canonicalize(today if today is not None else today_utc())
    start = end - ONE_DAY * (days - 1)
    return start, end, days


def _window_index(
    db: Session,
    user_id: str,
    trackable_set: TrackableSet,
    start: datetime,
    end: datetime,
) -> dict[datetime, set[str]]:
    records = CompletionStore(db).scan_range(user_id, trackable_set.kind, start, end)
    return completion_index(records, trackable_set.trackable_ids)


def streaks(
    db: Session,
    user_id: str,
    trackable_set: TrackableSet,
    today: date | datetime | None = None,
    window_days: int | None = None,
) -> StreakResult:
    """Aggregate streak: a day counts when the whole set meets its success rule."""
    if trackable_set.total == 0:
        return StreakResult(current=0, longest=0)
    start, end, days = _window(today, window_days)
    index = _window_index(db, user_id, trackable_set, start, end)
    return walk_streak(
        lambda day: trackable_set.is_success_day(len(index.get(day, ()))),
        end,
        days,
    )


def trackable_streaks(
    db: Session,
    user_id: str,
    trackable_set: TrackableSet,
    today: date | datetime | None = None,
    window_days: int | None = None,
) -> dict[str, StreakResult]:
    """Per-trackable streaks: a day counts when that one trackable was completed."""
    if trackable_set.total == 0:
        return {}
    start, end, days = _window(today, window_days)
    index = _window_index(db, user_id, trackable_set, start, end)

    def completed(trackable_id: str) -> DayPredicate:
        return lambda day: trackable_id in index.get(day, ())

    return {tid: walk_streak(completed(tid), end, days) for tid in trackable_set.trackable_ids}


def streak_summary(
    db: Session,
    user_id: str,
    kind: TrackableKind | str,
    today: date | datetime | None = None,
) -> dict:
    kind = TrackableKind.parse(kind)
    result = streaks(db, user_id, trackable_set_for(db, user_id, kind), today=today)
    thresholds = [
        {"days": threshold, "eligible": result.longest >= threshold}
        for threshold in milestone_thresholds(kind)
    ]
    if kind == TrackableKind.PRAYER:
        milestones = [{"days": t["days"], "achieved": t["eligible"]} for t in thresholds]
    else:
        milestones = [milestone_to_dict(row) for row in list_milestones(db, user_id, kind)]
    return {
        "current_streak": result.current,
        "longest_streak": result.longest,
        "milestones": milestones,
        "thresholds": thresholds,
    }
