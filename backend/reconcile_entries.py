"""
Collapse duplicate habit and prayer completions left behind by the old
local-timezone day normalization.

    python reconcile_entries.py [--kind habit|prayer|all]

Ctrl-C stops between duplicate groups; groups already cleaned stay cleaned.
"""
import argparse
import logging
import signal
import sys
import threading

from config import settings
from db.database import SessionLocal, run_startup_migrations
from services.reconcile_service import reconcile
from services.trackables import TrackableKind

logger = logging.getLogger("reconcile_entries")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument(
        "--kind",
        choices=["habit", "prayer", "all"],
        default="all",
        help="which completion records to reconcile (default: all)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=(settings.LOG_LEVEL or "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    stop = threading.Event()

    def _request_stop(signum, frame):
        logger.warning("Stop requested; finishing the current group")
        stop.set()

    signal.signal(signal.SIGINT, _request_stop)

    kinds = list(TrackableKind) if args.kind == "all" else [TrackableKind(args.kind)]
    failed = False
    db = SessionLocal()
    try:
        for kind in kinds:
            summary = reconcile(db, kind, should_stop=stop.is_set)
            print(
                f"{kind.value}: {summary.total_records} records, "
                f"{summary.groups_found} duplicate groups, "
                f"{summary.records_deleted} deleted, "
                f"{len(summary.errors)} errors"
                + (" (stopped early)" if summary.cancelled else "")
            )
            for error in summary.errors:
                print(f"  error: {error}")
            failed = failed or bool(summary.errors)
            if stop.is_set():
                break
    finally:
        db.close()

    if not stop.is_set():
        run_startup_migrations()
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
