from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.models import StreakMilestone
from services.completion_store import dialect_insert
from services.errors import InvalidThreshold, StorageUnavailable
from services.trackables import TrackableKind, milestone_thresholds
from utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


def milestone_to_dict(row: StreakMilestone) -> dict:
    return {
        "id": row.id,
        "kind": row.kind,
        "threshold": row.threshold,
        "achieved_at": row.achieved_at.isoformat() if row.achieved_at else None,
        "reward": row.reward or "",
        "notes": row.notes or "",
        "created_at": row.created_at.isoformat() if row.created_at else None,
        "updated_at": row.updated_at.isoformat() if row.updated_at else None,
    }


def list_milestones(db: Session, user_id: str, kind: TrackableKind) -> list[StreakMilestone]:
    try:
        return (
            db.query(StreakMilestone)
            .filter(StreakMilestone.user_id == user_id, StreakMilestone.kind == kind.value)
            .order_by(StreakMilestone.threshold.asc())
            .all()
        )
    except SQLAlchemyError as exc:
        raise StorageUnavailable(f"Could not load milestones: {exc}") from exc


def acknowledge_milestone(
    db: Session,
    user_id: str,
    threshold: int,
    reward: str | None = None,
    notes: str | None = None,
    kind: TrackableKind | str = TrackableKind.HABIT,
    achieved_at: datetime | None = None,
) -> StreakMilestone:
    """
    Record that the user acknowledged reaching ``threshold``.

    One row per (user, kind, threshold). Acknowledging again updates reward and
    notes in place; the first ``achieved_at`` is kept unless a new one is passed.
    Eligibility is the caller's business (see streak_service.streak_summary).
    """
    kind = TrackableKind.parse(kind)
    allowed = milestone_thresholds(kind)
    if threshold not in allowed:
        raise InvalidThreshold(f"Invalid milestone {threshold}; allowed: {', '.join(str(v) for v in allowed)}")

    now = utcnow().replace(tzinfo=None)
    if achieved_at is not None and achieved_at.tzinfo is not None:
        achieved_at = achieved_at.astimezone(timezone.utc).replace(tzinfo=None)
    reward_value = (reward or "").strip()
    notes_value = (notes or "").strip()
    stmt = dialect_insert(db, StreakMilestone).values(
        user_id=user_id,
        kind=kind.value,
        threshold=threshold,
        achieved_at=achieved_at or now,
        reward=reward_value,
        notes=notes_value,
        created_at=now,
        updated_at=now,
    )
    updates: dict = {"updated_at": now}
    if reward is not None:
        updates["reward"] = reward_value
    if notes is not None:
        updates["notes"] = notes_value
    if achieved_at is not None:
        updates["achieved_at"] = achieved_at
    stmt = stmt.on_conflict_do_update(
        index_elements=[StreakMilestone.user_id, StreakMilestone.kind, StreakMilestone.threshold],
        set_=updates,
    )

    try:
        db.execute(stmt)
        db.commit()
        row = (
            db.query(StreakMilestone)
            .filter(
                StreakMilestone.user_id == user_id,
                StreakMilestone.kind == kind.value,
                StreakMilestone.threshold == threshold,
            )
            .populate_existing()
            .one()
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Milestone upsert failed for user %s threshold %s", user_id, threshold)
        raise StorageUnavailable(f"Could not save milestone: {exc}") from exc

    logger.info("Milestone %s (%s) acknowledged for user %s", threshold, kind.value, user_id)
    return row
