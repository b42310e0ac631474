from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from services.stats_service import DayStat, MonthStat


class HabitCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    icon: Optional[str] = None
    order: Optional[int] = None


class HabitUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    icon: Optional[str] = None
    order: Optional[int] = None
    is_active: Optional[bool] = None


class HabitReorderRequest(BaseModel):
    habit_ids: list[int]


class HabitToggleRequest(BaseModel):
    habit_id: int
    date: datetime


class PrayerToggleRequest(BaseModel):
    prayer_type: str
    date: datetime


class MilestoneRequest(BaseModel):
    reward: Optional[str] = None
    notes: Optional[str] = None
    achieved_at: Optional[datetime] = None


def day_iso(day: datetime) -> str:
    return day.isoformat().replace("+00:00", "Z")


def day_stat_to_dict(stat: DayStat) -> dict:
    return {
        "date": day_iso(stat.day),
        "completed_count": stat.completed_count,
        "total": stat.total,
        "percentage": stat.percentage,
        "is_success_day": stat.is_success_day,
        "statuses": stat.statuses,
    }


def month_stat_to_dict(stat: MonthStat) -> dict:
    return {
        "month": stat.month,
        "success_days": stat.success_days,
        "total_days": stat.total_days,
        "percentage": stat.percentage,
    }
