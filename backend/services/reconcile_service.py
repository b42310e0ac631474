from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session

from db.models import CompletionRecord
from services.completion_store import CompletionStore
from services.errors import TrackerError
from services.trackables import TrackableKind
from utils.datetime_utils import canonicalize

logger = logging.getLogger(__name__)

GroupKey = tuple[str, str, datetime]


@dataclass
class ReconcileSummary:
    kind: str
    total_records: int = 0
    groups_found: int = 0
    records_deleted: int = 0
    cancelled: bool = False
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def group_by_day(records: list[CompletionRecord]) -> dict[GroupKey, list[CompletionRecord]]:
    """Group records by (user, trackable, canonical day)."""
    groups: dict[GroupKey, list[CompletionRecord]] = defaultdict(list)
    for record in records:
        groups[(record.user_id, record.trackable_id, canonicalize(record.day))].append(record)
    return dict(groups)


def newest_first(rows: list[CompletionRecord]) -> list[CompletionRecord]:
    # created_at may be missing on very old rows; id breaks ties.
    return sorted(rows, key=lambda r: (r.created_at or datetime.min, r.id), reverse=True)


def _plan(records: list[CompletionRecord]) -> list[tuple[GroupKey, int, list[int]]]:
    plans = []
    for key, rows in group_by_day(records).items():
        if len(rows) < 2:
            continue
        keep, *stale = newest_first(rows)
        plans.append((key, keep.id, [r.id for r in stale]))
    return plans


def reconcile(
    db: Session,
    kind: TrackableKind | str,
    should_stop: Callable[[], bool] | None = None,
) -> ReconcileSummary:
    """
    Collapse duplicate completion records of one kind to the newest row per key.

    Rows are grouped by (user, trackable, canonical day); the newest row of a
    group is left untouched and the others are deleted. Nothing else is
    changed. Each group is committed on its own. A failing group is recorded in
    ``errors`` and the pass moves on; ``should_stop`` is polled between groups
    and leaves already-cleaned groups in place.
    """
    kind = TrackableKind.parse(kind)
    store = CompletionStore(db)
    records = store.iter_all(kind)
    summary = ReconcileSummary(kind=kind.value, total_records=len(records))
    logger.info("Reconciling %s %s records", len(records), kind.value)

    # Plan from plain ids: commits and rollbacks below expire the loaded rows.
    plans = _plan(records)

    for (user_id, trackable_id, day), keep_id, stale_ids in plans:
        if should_stop is not None and should_stop():
            summary.cancelled = True
            logger.info("Reconciliation of %s records stopped early", kind.value)
            break

        summary.groups_found += 1
        label = f"{user_id}/{trackable_id}/{day.date().isoformat()}"
        logger.info(
            "Duplicate %s group %s: keeping %s, deleting %s",
            kind.value,
            label,
            keep_id,
            stale_ids,
        )
        try:
            deleted = sum(1 for record_id in stale_ids if store.delete_by_id(record_id))
            store.commit()
        except TrackerError as exc:
            db.rollback()
            message = f"{label}: {exc}"
            summary.errors.append(message)
            logger.warning("Failed to reconcile %s group %s", kind.value, message)
            continue
        summary.records_deleted += deleted

    logger.info(
        "Reconciled %s records: %s duplicate groups, %s deleted, %s errors",
        kind.value,
        summary.groups_found,
        summary.records_deleted,
        len(summary.errors),
    )
    return summary
