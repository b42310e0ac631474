from __future__ import annotations

import sys
from datetime import date
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from db.database import Base  # noqa: E402
from db.models import CompletionRecord, Habit  # noqa: E402
from services.errors import UnknownTrackable  # noqa: E402
from services.habit_service import (  # noqa: E402
    create_habit,
    delete_habit,
    list_habits,
    reorder_habits,
    update_habit,
)
from services.toggle_service import toggle_completion  # noqa: E402


def _new_db():
    engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)()


def test_new_habits_are_appended_in_order_with_default_icon():
    db = _new_db()
    first = create_habit(db, "u1", "  Read  ")
    second = create_habit(db, "u1", "Walk", icon="🚶")
    other_user = create_habit(db, "u2", "Swim")

    assert (first.order, second.order, other_user.order) == (0, 1, 0)
    assert first.name == "Read"
    assert first.icon == "✓"
    assert second.icon == "🚶"
    assert [h.name for h in list_habits(db, "u1")] == ["Read", "Walk"]


def test_inactive_habits_are_hidden_from_active_listing():
    db = _new_db()
    keep = create_habit(db, "u1", "Read")
    pause = create_habit(db, "u1", "Journal")
    update_habit(db, "u1", pause.id, is_active=False)

    assert [h.id for h in list_habits(db, "u1", active_only=True)] == [keep.id]
    assert len(list_habits(db, "u1")) == 2


def test_reorder_follows_list_position_and_skips_foreign_ids():
    db = _new_db()
    a = create_habit(db, "u1", "A")
    b = create_habit(db, "u1", "B")
    c = create_habit(db, "u1", "C")
    foreign = create_habit(db, "u2", "X")

    ordered = reorder_habits(db, "u1", [c.id, foreign.id, a.id, b.id])
    assert [h.name for h in ordered] == ["C", "A", "B"]
    db.refresh(foreign)
    assert foreign.order == 0


def test_delete_habit_removes_its_completions_only():
    db = _new_db()
    gone = create_habit(db, "u1", "Read")
    stays = create_habit(db, "u1", "Walk")
    toggle_completion(db, "u1", "habit", gone.id, date(2026, 3, 9))
    toggle_completion(db, "u1", "habit", gone.id, date(2026, 3, 10))
    toggle_completion(db, "u1", "habit", stays.id, date(2026, 3, 10))

    assert delete_habit(db, "u1", gone.id) == 2
    assert db.query(Habit).count() == 1
    remaining = db.query(CompletionRecord).all()
    assert [r.trackable_id for r in remaining] == [str(stays.id)]


def test_other_users_cannot_touch_a_habit():
    db = _new_db()
    habit = create_habit(db, "owner", "Read")
    with pytest.raises(UnknownTrackable):
        update_habit(db, "intruder", habit.id, name="Mine now")
    with pytest.raises(UnknownTrackable):
        delete_habit(db, "intruder", habit.id)
    db.refresh(habit)
    assert habit.name == "Read"
