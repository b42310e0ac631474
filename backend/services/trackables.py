from __future__ import annotations

import enum
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import settings
from db.models import Habit
from services.errors import StorageUnavailable, UnknownTrackable


PRAYER_TYPES: tuple[str, ...] = ("fajr", "zuhr", "asr", "maghrib", "isha")


class TrackableKind(str, enum.Enum):
    HABIT = "habit"
    PRAYER = "prayer"

    @classmethod
    def parse(cls, value: str | TrackableKind) -> TrackableKind:
        try:
            return cls(str(getattr(value, "value", value)).strip().lower())
        except ValueError:
            raise UnknownTrackable(f"Unknown trackable kind: {value}") from None


def milestone_thresholds(kind: TrackableKind) -> tuple[int, ...]:
    if kind == TrackableKind.PRAYER:
        return tuple(settings.PRAYER_MILESTONES)
    return tuple(settings.HABIT_MILESTONES)


def is_success(kind: TrackableKind, completed: int, total: int) -> bool:
    """Habits succeed at the configured percentage bar, prayers only when all five are done."""
    if total <= 0:
        return False
    if kind == TrackableKind.PRAYER:
        return completed >= total
    return completion_percentage(completed, total) >= settings.HABIT_SUCCESS_PERCENT


def completion_percentage(completed: int, total: int) -> int:
    if total <= 0:
        return 0
    # Half-up rounding; Python's round() would send 12.5 to 12.
    return int(completed * 100 / total + 0.5)


@dataclass(frozen=True)
class TrackableSet:
    kind: TrackableKind
    trackable_ids: tuple[str, ...]

    @property
    def total(self) -> int:
        return len(self.trackable_ids)

    def is_success_day(self, completed: int) -> bool:
        return is_success(self.kind, completed, self.total)


def prayer_set() -> TrackableSet:
    return TrackableSet(kind=TrackableKind.PRAYER, trackable_ids=PRAYER_TYPES)


def active_habit_set(db: Session, user_id: str) -> TrackableSet:
    try:
        rows = (
            db.query(Habit.id)
            .filter(Habit.user_id == user_id, Habit.is_active.is_(True))
            .order_by(Habit.order.asc(), Habit.created_at.asc(), Habit.id.asc())
            .all()
        )
    except SQLAlchemyError as exc:
        raise StorageUnavailable(f"Could not load habits: {exc}") from exc
    return TrackableSet(kind=TrackableKind.HABIT, trackable_ids=tuple(str(row.id) for row in rows))


def trackable_set_for(db: Session, user_id: str, kind: TrackableKind) -> TrackableSet:
    if kind == TrackableKind.PRAYER:
        return prayer_set()
    return active_habit_set(db, user_id)


def resolve_trackable(db: Session, user_id: str, kind: TrackableKind, trackable_id: str | int) -> str:
    """Return the canonical trackable id, or raise UnknownTrackable."""
    raw = str(trackable_id or "").strip()
    if kind == TrackableKind.PRAYER:
        name = raw.lower()
        if name not in PRAYER_TYPES:
            raise UnknownTrackable(f"Unknown prayer: {trackable_id}")
        return name

    if not raw.isdigit():
        raise UnknownTrackable("Habit not found")
    try:
        habit = db.query(Habit).filter(Habit.id == int(raw), Habit.user_id == user_id).first()
    except SQLAlchemyError as exc:
        raise StorageUnavailable(f"Could not load habit: {exc}") from exc
    if not habit:
        raise UnknownTrackable("Habit not found")
    return str(habit.id)
