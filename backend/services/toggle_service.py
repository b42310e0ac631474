from __future__ import annotations

import logging
from datetime import date, datetime

from sqlalchemy.orm import Session

from services.completion_store import CompletionStore
from services.trackables import TrackableKind, resolve_trackable
from utils.datetime_utils import canonicalize

logger = logging.getLogger(__name__)


def _flip(store: CompletionStore, user_id: str, kind: TrackableKind, trackable_id: str, day: datetime) -> bool:
    if store.insert_if_absent(user_id, kind, trackable_id, day, state=True):
        return True

    if kind == TrackableKind.HABIT:
        # Presence is the completion flag for habits; this also clears legacy
        # rows of the same day.
        store.delete_if(user_id, kind, trackable_id, day)
        return False

    # Prayers keep an explicit flag: prayed rows are removed, otherwise a
    # "recorded but not prayed" row flips on.
    if store.delete_if(user_id, kind, trackable_id, day, state=True):
        return False
    return store.set_state_if(user_id, kind, trackable_id, day, expected=False, new=True)


def toggle_completion(
    db: Session,
    user_id: str,
    kind: TrackableKind | str,
    trackable_id: str | int,
    day: date | datetime,
) -> dict:
    """Flip one trackable's completion for one canonical day and return the new state."""
    kind = TrackableKind.parse(kind)
    resolved_id = resolve_trackable(db, user_id, kind, trackable_id)
    canonical_day = canonicalize(day)

    store = CompletionStore(db)
    state = _flip(store, user_id, kind, resolved_id, canonical_day)
    store.commit()

    logger.debug("Toggled %s %s for user %s on %s -> %s", kind.value, resolved_id, user_id, canonical_day.date(), state)
    return {
        "state": state,
        "kind": kind.value,
        "trackable_id": resolved_id,
        "day": canonical_day,
    }
