from datetime import datetime
from sqlalchemy import (
    Column, Integer, Text, Boolean, Index,
    DateTime,
)
from db.database import Base


class Habit(Base):
    __tablename__ = "habits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False)
    name = Column(Text, nullable=False)
    icon = Column(Text, nullable=False, default="✓")
    order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class CompletionRecord(Base):
    __tablename__ = "completion_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False)
    kind = Column(Text, nullable=False)  # habit | prayer
    trackable_id = Column(Text, nullable=False)  # habit id or prayer slot name
    day = Column(DateTime, nullable=False)  # UTC midnight, naive
    state = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class StreakMilestone(Base):
    __tablename__ = "streak_milestones"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False)
    kind = Column(Text, nullable=False, default="habit")
    threshold = Column(Integer, nullable=False)
    achieved_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    reward = Column(Text, nullable=False, default="")
    notes = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


Index("idx_habits_user_order", Habit.user_id, Habit.order)
Index("idx_completion_user_kind_day", CompletionRecord.user_id, CompletionRecord.kind, CompletionRecord.day)
Index("idx_completion_user_trackable", CompletionRecord.user_id, CompletionRecord.kind, CompletionRecord.trackable_id)
Index(
    "idx_completion_unique_day",
    CompletionRecord.user_id,
    CompletionRecord.kind,
    CompletionRecord.trackable_id,
    CompletionRecord.day,
    unique=True,
)
Index(
    "idx_streak_milestones_unique",
    StreakMilestone.user_id,
    StreakMilestone.kind,
    StreakMilestone.threshold,
    unique=True,
)
