from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.models import Habit
from services.completion_store import CompletionStore
from services.errors import StorageUnavailable, UnknownTrackable
from services.trackables import TrackableKind

logger = logging.getLogger(__name__)

DEFAULT_ICON = "✓"


def habit_to_dict(habit: Habit) -> dict:
    return {
        "id": habit.id,
        "name": habit.name,
        "icon": habit.icon,
        "order": habit.order,
        "is_active": bool(habit.is_active),
        "created_at": habit.created_at.isoformat() if habit.created_at else None,
        "updated_at": habit.updated_at.isoformat() if habit.updated_at else None,
    }


def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Habit %s failed", action)
        raise StorageUnavailable(f"Could not {action} habit") from exc


def _owned(db: Session, user_id: str, habit_id: int) -> Habit:
    habit = db.query(Habit).filter(Habit.id == habit_id, Habit.user_id == user_id).first()
    if not habit:
        raise UnknownTrackable("Habit not found")
    return habit


def list_habits(db: Session, user_id: str, active_only: bool = False) -> list[Habit]:
    query = db.query(Habit).filter(Habit.user_id == user_id)
    if active_only:
        query = query.filter(Habit.is_active.is_(True))
    return query.order_by(Habit.order.asc(), Habit.created_at.asc(), Habit.id.asc()).all()


def create_habit(
    db: Session,
    user_id: str,
    name: str,
    icon: str | None = None,
    order: int | None = None,
) -> Habit:
    if order is None:
        max_order = db.query(func.max(Habit.order)).filter(Habit.user_id == user_id).scalar()
        order = 0 if max_order is None else int(max_order) + 1
    habit = Habit(
        user_id=user_id,
        name=name.strip(),
        icon=(icon or "").strip() or DEFAULT_ICON,
        order=order,
        is_active=True,
    )
    db.add(habit)
    _commit(db, "create")
    db.refresh(habit)
    return habit


def update_habit(
    db: Session,
    user_id: str,
    habit_id: int,
    *,
    name: str | None = None,
    icon: str | None = None,
    order: int | None = None,
    is_active: bool | None = None,
) -> Habit:
    habit = _owned(db, user_id, habit_id)
    if name is not None:
        habit.name = name.strip()
    if icon is not None:
        habit.icon = icon.strip() or DEFAULT_ICON
    if order is not None:
        habit.order = order
    if is_active is not None:
        habit.is_active = is_active
    _commit(db, "update")
    db.refresh(habit)
    return habit


def reorder_habits(db: Session, user_id: str, habit_ids: list[int]) -> list[Habit]:
    """Assign display order from list position; ids the user does not own are skipped."""
    owned = {h.id: h for h in db.query(Habit).filter(Habit.user_id == user_id).all()}
    for index, habit_id in enumerate(habit_ids):
        habit = owned.get(int(habit_id))
        if habit is not None:
            habit.order = index
    _commit(db, "reorder")
    return list_habits(db, user_id)


def delete_habit(db: Session, user_id: str, habit_id: int) -> int:
    """Delete a habit and its completion records. Returns the number of records removed."""
    habit = _owned(db, user_id, habit_id)
    removed = CompletionStore(db).delete_for_trackable(user_id, TrackableKind.HABIT, str(habit.id))
    db.delete(habit)
    _commit(db, "delete")
    logger.info("Deleted habit %s for user %s with %s completion records", habit_id, user_id, removed)
    return removed
