import logging

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from config import settings

logger = logging.getLogger(__name__)

_is_sqlite = settings.DATABASE_URL.startswith("sqlite")

engine = create_engine(
    settings.DATABASE_URL,
    connect_args={"check_same_thread": False} if _is_sqlite else {},
    echo=False,
)


if _is_sqlite:
    # Enable WAL mode so several app processes can share one database file
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    pass


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def run_startup_migrations(bind=None) -> None:
    """Enforce completion-record uniqueness on databases created before the index existed."""
    bind = bind or engine
    inspector = inspect(bind)
    if "completion_records" not in inspector.get_table_names():
        # Tables may not exist yet on first boot.
        return

    existing = {idx["name"] for idx in inspector.get_indexes("completion_records")}
    with bind.begin() as conn:
        conn.execute(text(
            """
            CREATE INDEX IF NOT EXISTS idx_completion_user_kind_day
            ON completion_records (user_id, kind, day)
            """
        ))
        if "idx_completion_unique_day" in existing:
            return

        duplicates = conn.execute(text(
            """
            SELECT COUNT(*) FROM (
                SELECT 1
                FROM completion_records
                GROUP BY user_id, kind, trackable_id, day
                HAVING COUNT(*) > 1
            ) AS dupes
            """
        )).scalar_one()
        if duplicates:
            # Legacy rows must be collapsed by the reconciliation pass before the
            # unique index can be created.
            logger.warning(
                "Skipping unique completion index: %s duplicate groups present; run reconcile_entries.py",
                duplicates,
            )
            return
        conn.execute(text(
            """
            CREATE UNIQUE INDEX IF NOT EXISTS idx_completion_unique_day
            ON completion_records (user_id, kind, trackable_id, day)
            """
        ))
