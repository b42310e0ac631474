from __future__ import annotations

import sys
from datetime import date, datetime
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from db.database import Base  # noqa: E402
from db.models import CompletionRecord  # noqa: E402
from services.completion_store import CompletionStore  # noqa: E402
from services.errors import StorageUnavailable  # noqa: E402
from services.reconcile_service import reconcile  # noqa: E402
from services.toggle_service import toggle_completion  # noqa: E402


def _new_db():
    engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)()


def _add(db, *, kind="habit", trackable_id="1", day, created_at, user_id="u1", state=True) -> int:
    row = CompletionRecord(
        user_id=user_id,
        kind=kind,
        trackable_id=trackable_id,
        day=day,
        state=state,
        created_at=created_at,
    )
    db.add(row)
    db.commit()
    return row.id


def _ids(db, kind="habit") -> set[int]:
    return {row.id for row in db.query(CompletionRecord).filter(CompletionRecord.kind == kind).all()}


def test_reconcile_keeps_newest_record_per_canonical_day():
    db = _new_db()
    utc_row = _add(db, day=datetime(2026, 2, 12), created_at=datetime(2026, 2, 12, 10))
    west_row = _add(db, day=datetime(2026, 2, 12, 7), created_at=datetime(2026, 2, 12, 11))
    # UTC+3 local midnight of Feb 12 is Feb 11 21:00 UTC, which belongs to Feb 11.
    east_row = _add(db, day=datetime(2026, 2, 11, 21), created_at=datetime(2026, 2, 12, 9))
    feb_11 = _add(db, day=datetime(2026, 2, 11), created_at=datetime(2026, 2, 11, 8))
    other_user = _add(db, user_id="u2", day=datetime(2026, 2, 12, 7), created_at=datetime(2026, 2, 12, 7))

    summary = reconcile(db, "habit")

    assert summary.total_records == 5
    assert summary.groups_found == 2
    assert summary.records_deleted == 2
    assert summary.errors == []
    assert summary.cancelled is False
    assert _ids(db) == {west_row, east_row, other_user}
    assert utc_row not in _ids(db) and feb_11 not in _ids(db)
    days = {row.id: row.day for row in db.query(CompletionRecord).all()}
    # Survivors keep their raw day.
    assert days[west_row] == datetime(2026, 2, 12, 7)
    assert days[east_row] == datetime(2026, 2, 11, 21)
    assert days[other_user] == datetime(2026, 2, 12, 7)


def test_reconcile_breaks_created_at_ties_by_id():
    db = _new_db()
    stamp = datetime(2026, 2, 12, 10)
    older = _add(db, day=datetime(2026, 2, 12), created_at=stamp)
    newer = _add(db, day=datetime(2026, 2, 12, 7), created_at=stamp)

    reconcile(db, "habit")
    assert _ids(db) == {newer}
    assert older not in _ids(db)


def test_reconcile_is_idempotent_and_scoped_by_kind():
    db = _new_db()
    _add(db, day=datetime(2026, 2, 12), created_at=datetime(2026, 2, 12, 1))
    _add(db, day=datetime(2026, 2, 12, 7), created_at=datetime(2026, 2, 12, 2))
    prayer_a = _add(db, kind="prayer", trackable_id="fajr", day=datetime(2026, 2, 12), created_at=datetime(2026, 2, 12, 1))
    prayer_b = _add(db, kind="prayer", trackable_id="fajr", day=datetime(2026, 2, 12, 7), created_at=datetime(2026, 2, 12, 2))

    first = reconcile(db, "habit")
    second = reconcile(db, "habit")
    assert first.groups_found == 1
    assert second.groups_found == 0
    assert second.records_deleted == 0
    assert _ids(db, "prayer") == {prayer_a, prayer_b}

    prayers = reconcile(db, "prayer")
    assert (prayers.groups_found, prayers.records_deleted) == (1, 1)
    assert _ids(db, "prayer") == {prayer_b}


def test_failed_group_is_reported_and_other_groups_still_run(monkeypatch):
    db = _new_db()
    doomed = _add(db, trackable_id="1", day=datetime(2026, 2, 10), created_at=datetime(2026, 2, 10, 1))
    _add(db, trackable_id="1", day=datetime(2026, 2, 10, 7), created_at=datetime(2026, 2, 10, 2))
    stale = _add(db, trackable_id="2", day=datetime(2026, 2, 12), created_at=datetime(2026, 2, 12, 1))
    kept = _add(db, trackable_id="2", day=datetime(2026, 2, 12, 7), created_at=datetime(2026, 2, 12, 2))

    original = CompletionStore.delete_by_id

    def flaky_delete(self, record_id):
        if record_id == doomed:
            raise StorageUnavailable("disk full")
        return original(self, record_id)

    monkeypatch.setattr(CompletionStore, "delete_by_id", flaky_delete)
    summary = reconcile(db, "habit")

    assert summary.groups_found == 2
    assert summary.records_deleted == 1
    assert len(summary.errors) == 1
    assert "disk full" in summary.errors[0]
    remaining = _ids(db)
    assert doomed in remaining
    assert stale not in remaining and kept in remaining


def test_stopping_early_keeps_partial_progress():
    db = _new_db()
    first_stale = _add(db, trackable_id="1", day=datetime(2026, 2, 10), created_at=datetime(2026, 2, 10, 1))
    _add(db, trackable_id="1", day=datetime(2026, 2, 10, 7), created_at=datetime(2026, 2, 10, 2))
    second_stale = _add(db, trackable_id="2", day=datetime(2026, 2, 12), created_at=datetime(2026, 2, 12, 1))
    _add(db, trackable_id="2", day=datetime(2026, 2, 12, 7), created_at=datetime(2026, 2, 12, 2))

    polls = []

    def stop_after_first_group() -> bool:
        polls.append(1)
        return len(polls) > 1

    summary = reconcile(db, "habit", should_stop=stop_after_first_group)
    assert summary.cancelled is True
    assert summary.groups_found == 1
    assert summary.records_deleted == 1
    remaining = _ids(db)
    assert first_stale not in remaining
    assert second_stale in remaining

    rerun = reconcile(db, "habit")
    assert (rerun.groups_found, rerun.records_deleted) == (1, 1)


def test_lone_offset_row_is_left_alone_and_still_toggles_off():
    db = _new_db()
    legacy = _add(db, trackable_id="fajr", kind="prayer", day=datetime(2026, 2, 12, 7), created_at=datetime(2026, 2, 12, 7))

    summary = reconcile(db, "prayer")
    assert (summary.groups_found, summary.records_deleted) == (0, 0)
    assert db.get(CompletionRecord, legacy).day == datetime(2026, 2, 12, 7)

    assert toggle_completion(db, "u1", "prayer", "fajr", date(2026, 2, 12))["state"] is False
    assert _ids(db, "prayer") == set()
