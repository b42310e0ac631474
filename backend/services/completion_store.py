from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator

from sqlalchemy import Boolean, DateTime, Text, delete, literal, select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.models import CompletionRecord
from services.errors import StorageUnavailable
from services.trackables import TrackableKind
from utils.datetime_utils import ONE_DAY, canonicalize, to_storage, utcnow

logger = logging.getLogger(__name__)


def dialect_insert(db: Session, model):
    """INSERT construct with ON CONFLICT support for the bound dialect."""
    if db.get_bind().dialect.name == "postgresql":
        return postgresql_insert(model)
    return sqlite_insert(model)


def _naive_now() -> datetime:
    return utcnow().replace(tzinfo=None)


class CompletionStore:
    """
    Keyed access to completion records.

    A key is (user_id, kind, trackable_id, canonical day). Keyed statements
    match every row whose raw ``day`` falls inside that UTC date, so rows left
    at an offset time by the old local-midnight normalization are found too.
    Every write is a single conditional statement so that concurrent writers
    converge through the database's own atomicity. Nothing here commits except
    ``commit()``; callers decide where a logical operation ends.
    """

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _storage_errors(self, action: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Completion store %s failed", action)
            raise StorageUnavailable(f"Completion store {action} failed") from exc

    @staticmethod
    def _key_filter(user_id: str, kind: TrackableKind, trackable_id: str, day: datetime):
        lower = to_storage(day)
        return (
            CompletionRecord.user_id == user_id,
            CompletionRecord.kind == kind.value,
            CompletionRecord.trackable_id == trackable_id,
            CompletionRecord.day >= lower,
            CompletionRecord.day < lower + ONE_DAY,
        )

    def commit(self) -> None:
        with self._storage_errors("commit"):
            self.db.commit()

    def get(self, user_id: str, kind: TrackableKind, trackable_id: str, day: datetime) -> CompletionRecord | None:
        with self._storage_errors("lookup"):
            return (
                self.db.query(CompletionRecord)
                .filter(*self._key_filter(user_id, kind, trackable_id, day))
                .order_by(CompletionRecord.created_at.desc(), CompletionRecord.id.desc())
                .first()
            )

    def insert_if_absent(
        self,
        user_id: str,
        kind: TrackableKind,
        trackable_id: str,
        day: datetime,
        state: bool = True,
    ) -> bool:
        """
        Insert a record at the canonical midnight unless the key already has one.

        ``INSERT ... SELECT ... WHERE NOT EXISTS`` skips days that hold a legacy
        offset row; ``ON CONFLICT DO NOTHING`` absorbs a concurrent insert of
        the same midnight row. Returns True when a row was created.
        """
        now = _naive_now()
        existing = (
            select(CompletionRecord.id)
            .where(*self._key_filter(user_id, kind, trackable_id, day))
            .correlate(None)
            .exists()
        )
        row = select(
            literal(user_id, Text),
            literal(kind.value, Text),
            literal(trackable_id, Text),
            literal(to_storage(day), DateTime),
            literal(state, Boolean),
            literal(now, DateTime),
            literal(now, DateTime),
        ).where(~existing)
        stmt = dialect_insert(self.db, CompletionRecord).from_select(
            [
                CompletionRecord.user_id,
                CompletionRecord.kind,
                CompletionRecord.trackable_id,
                CompletionRecord.day,
                CompletionRecord.state,
                CompletionRecord.created_at,
                CompletionRecord.updated_at,
            ],
            row,
        )
        stmt = stmt.on_conflict_do_nothing(
            index_elements=[
                CompletionRecord.user_id,
                CompletionRecord.kind,
                CompletionRecord.trackable_id,
                CompletionRecord.day,
            ],
        )
        with self._storage_errors("insert"):
            result = self.db.execute(stmt)
        return result.rowcount == 1

    def set_state_if(
        self,
        user_id: str,
        kind: TrackableKind,
        trackable_id: str,
        day: datetime,
        *,
        expected: bool,
        new: bool,
    ) -> bool:
        stmt = (
            update(CompletionRecord)
            .where(*self._key_filter(user_id, kind, trackable_id, day))
            .where(CompletionRecord.state.is_(expected))
            .values(state=new, updated_at=_naive_now())
            .execution_options(synchronize_session=False)
        )
        with self._storage_errors("update"):
            result = self.db.execute(stmt)
        return result.rowcount > 0

    def delete_if(
        self,
        user_id: str,
        kind: TrackableKind,
        trackable_id: str,
        day: datetime,
        *,
        state: bool | None = None,
    ) -> bool:
        """Delete every row of the key (optionally only those in ``state``)."""
        stmt = delete(CompletionRecord).where(*self._key_filter(user_id, kind, trackable_id, day))
        if state is not None:
            stmt = stmt.where(CompletionRecord.state.is_(state))
        with self._storage_errors("delete"):
            result = self.db.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount > 0

    def delete_by_id(self, record_id: int) -> bool:
        stmt = delete(CompletionRecord).where(CompletionRecord.id == record_id)
        with self._storage_errors("delete"):
            result = self.db.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount > 0

    def delete_for_trackable(self, user_id: str, kind: TrackableKind, trackable_id: str) -> int:
        stmt = delete(CompletionRecord).where(
            CompletionRecord.user_id == user_id,
            CompletionRecord.kind == kind.value,
            CompletionRecord.trackable_id == trackable_id,
        )
        with self._storage_errors("delete"):
            result = self.db.execute(stmt.execution_options(synchronize_session=False))
        return int(result.rowcount or 0)

    def scan_range(
        self,
        user_id: str,
        kind: TrackableKind,
        start: datetime,
        end: datetime,
    ) -> list[CompletionRecord]:
        """
        Records whose canonical day lies in [start, end].

        The raw bound is [start, end + 1 day) so rows written under the old
        offset-based normalization (e.g. 07:00 for a UTC-7 midnight) are found
        on the UTC date they actually belong to.
        """
        lower = to_storage(start)
        upper = to_storage(canonicalize(end) + ONE_DAY)
        with self._storage_errors("range scan"):
            return (
                self.db.query(CompletionRecord)
                .filter(
                    CompletionRecord.user_id == user_id,
                    CompletionRecord.kind == kind.value,
                    CompletionRecord.day >= lower,
                    CompletionRecord.day < upper,
                )
                .all()
            )

    def scan_trackable(self, user_id: str, kind: TrackableKind, trackable_id: str) -> list[CompletionRecord]:
        with self._storage_errors("trackable scan"):
            return (
                self.db.query(CompletionRecord)
                .filter(
                    CompletionRecord.user_id == user_id,
                    CompletionRecord.kind == kind.value,
                    CompletionRecord.trackable_id == trackable_id,
                )
                .order_by(CompletionRecord.day.asc())
                .all()
            )

    def iter_all(self, kind: TrackableKind) -> list[CompletionRecord]:
        with self._storage_errors("full scan"):
            return (
                self.db.query(CompletionRecord)
                .filter(CompletionRecord.kind == kind.value)
                .order_by(CompletionRecord.day.asc(), CompletionRecord.id.asc())
                .all()
            )
