from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from api.schemas import (
    HabitCreate,
    HabitReorderRequest,
    HabitToggleRequest,
    HabitUpdate,
    MilestoneRequest,
    day_iso,
    day_stat_to_dict,
    month_stat_to_dict,
)
from auth.utils import get_current_user_id
from db.database import get_db
from services.habit_service import (
    create_habit,
    delete_habit,
    habit_to_dict,
    list_habits,
    reorder_habits,
    update_habit,
)
from services.milestone_service import acknowledge_milestone, milestone_to_dict
from services.stats_service import daily_stats, list_entries, monthly_stats
from services.streak_service import streak_summary, trackable_streaks
from services.toggle_service import toggle_completion
from services.trackables import TrackableKind, active_habit_set

router = APIRouter(prefix="/habits", tags=["habits"])


# --- Habit definitions ---

@router.get("")
def get_habits(
    active_only: bool = False,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return [habit_to_dict(h) for h in list_habits(db, user_id, active_only=active_only)]


@router.post("", status_code=201)
def post_habit(
    req: HabitCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return habit_to_dict(create_habit(db, user_id, req.name, icon=req.icon, order=req.order))


# Must be registered before /{habit_id}
@router.put("/reorder")
def put_reorder(
    req: HabitReorderRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return [habit_to_dict(h) for h in reorder_habits(db, user_id, req.habit_ids)]


@router.put("/{habit_id}")
def put_habit(
    habit_id: int,
    req: HabitUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    habit = update_habit(
        db,
        user_id,
        habit_id,
        name=req.name,
        icon=req.icon,
        order=req.order,
        is_active=req.is_active,
    )
    return habit_to_dict(habit)


@router.delete("/{habit_id}", status_code=204)
def remove_habit(
    habit_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    delete_habit(db, user_id, habit_id)
    return Response(status_code=204)


# --- Completions ---

@router.get("/entries")
def get_entries(
    start_date: datetime,
    end_date: datetime,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    entries = list_entries(db, user_id, TrackableKind.HABIT, start_date, end_date)
    return [
        {"habit_id": e["trackable_id"], "date": day_iso(e["day"]), "completed": True}
        for e in entries
    ]


@router.post("/entries/toggle")
def post_toggle(
    req: HabitToggleRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    out = toggle_completion(db, user_id, TrackableKind.HABIT, req.habit_id, req.date)
    return {"completed": out["state"], "habit_id": out["trackable_id"], "date": day_iso(out["day"])}


# --- Stats ---

@router.get("/stats/daily")
def get_daily_stats(
    start_date: datetime,
    end_date: datetime,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    habits = list_habits(db, user_id, active_only=True)
    days = daily_stats(db, user_id, active_habit_set(db, user_id), start_date, end_date)
    return {"days": [day_stat_to_dict(d) for d in days], "habits": [habit_to_dict(h) for h in habits]}


@router.get("/stats/monthly")
def get_monthly_stats(
    year: int = Query(ge=2000, le=2100),
    today: Optional[date] = None,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    months = monthly_stats(db, user_id, active_habit_set(db, user_id), year, today=today)
    return {"year": year, "months": [month_stat_to_dict(m) for m in months]}


@router.get("/stats/streak")
def get_streak(
    today: Optional[date] = None,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return streak_summary(db, user_id, TrackableKind.HABIT, today=today)


@router.get("/stats/habit-streaks")
def get_habit_streaks(
    today: Optional[date] = None,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    results = trackable_streaks(db, user_id, active_habit_set(db, user_id), today=today)
    return {
        habit_id: {"current_streak": r.current, "longest_streak": r.longest}
        for habit_id, r in results.items()
    }


# --- Milestones ---

@router.put("/streaks/{threshold}")
def put_milestone(
    threshold: int,
    req: MilestoneRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    row = acknowledge_milestone(
        db,
        user_id,
        threshold,
        reward=req.reward,
        notes=req.notes,
        kind=TrackableKind.HABIT,
        achieved_at=req.achieved_at,
    )
    return milestone_to_dict(row)
