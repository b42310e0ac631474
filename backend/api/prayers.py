from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.schemas import MilestoneRequest, PrayerToggleRequest, day_iso, day_stat_to_dict, month_stat_to_dict
from auth.utils import get_current_user_id
from db.database import get_db
from services.milestone_service import acknowledge_milestone, milestone_to_dict
from services.stats_service import daily_stats, list_entries, monthly_stats
from services.streak_service import streak_summary
from services.toggle_service import toggle_completion
from services.trackables import TrackableKind, prayer_set

router = APIRouter(prefix="/prayers", tags=["prayers"])


@router.get("/entries")
def get_entries(
    start_date: datetime,
    end_date: datetime,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    entries = list_entries(db, user_id, TrackableKind.PRAYER, start_date, end_date)
    return [
        {"prayer_type": e["trackable_id"], "date": day_iso(e["day"]), "prayed": True}
        for e in entries
    ]


@router.post("/toggle")
def post_toggle(
    req: PrayerToggleRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    out = toggle_completion(db, user_id, TrackableKind.PRAYER, req.prayer_type, req.date)
    return {"prayed": out["state"], "prayer_type": out["trackable_id"], "date": day_iso(out["day"])}


@router.get("/stats/daily")
def get_daily_stats(
    start_date: datetime,
    end_date: datetime,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    days = daily_stats(db, user_id, prayer_set(), start_date, end_date)
    return {"days": [day_stat_to_dict(d) for d in days]}


@router.get("/stats/monthly")
def get_monthly_stats(
    year: int = Query(ge=2000, le=2100),
    today: Optional[date] = None,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    months = monthly_stats(db, user_id, prayer_set(), year, today=today)
    return {"year": year, "months": [month_stat_to_dict(m) for m in months]}


@router.get("/stats/streak")
def get_streak(
    today: Optional[date] = None,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return streak_summary(db, user_id, TrackableKind.PRAYER, today=today)


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
        kind=TrackableKind.PRAYER,
        achieved_at=req.achieved_at,
    )
    return milestone_to_dict(row)
