"""Detail cache: large per-event payloads kept off the timeline query path.

An event stays small (title + inline metadata); its full payload is stored
here on demand and linked through ``timeline_events.detail_key``. Every read
bumps ``accessed_at`` so an LRU eviction policy can be added without a
schema change. Reads made inside a read-only scope leave ``accessed_at`` as
it was.
"""

import contextlib
import logging
import sqlite3
from typing import Any, Dict

from chronicle.types import DetailBlob, JsonValue, NotFoundError, TimelineEvent, ValidationError

from .engine import Engine
from .rows import fetch_event, from_json, row_to_detail, to_json

logger = logging.getLogger(__name__)


def detail_key_for(event: TimelineEvent) -> str:
    """Conventional blob key for an event."""
    return f"{event.type}:{event.id}:full"


class DetailCache:
    """Lazy blob storage linked to timeline events."""

    def __init__(self, engine: Engine):
        self._engine = engine

    def expand(self, event_id: str, data: JsonValue) -> Dict[str, str]:
        """Store (or replace) the full payload for an event and link it.

        The blob write and the event's ``detail_key`` update happen in one
        transaction. Calling again for the same event replaces the blob.

        Returns:
            ``{"detail_key": key}``

        Raises:
            ValidationError: If data is missing or not JSON-serializable.
            NotFoundError: If the event does not exist.
        """
        if data is None:
            raise ValidationError("Detail data is required")
        payload = to_json(data, "data")
        now = self._engine.now()

        with self._engine.transaction() as conn:
            event = fetch_event(conn, event_id)
            key = event.detail_key or detail_key_for(event)
            conn.execute(
                """INSERT OR REPLACE INTO full_details (key, data, created_at, accessed_at)
                   VALUES (?, ?, ?, ?)""",
                (key, payload, now, now),
            )
            conn.execute(
                "UPDATE timeline_events SET detail_key = ?, updated_at = ? WHERE id = ?",
                (key, now, event_id),
            )

        logger.debug(f"Expanded event {event_id} into {key} ({len(payload)} bytes)")
        return {"detail_key": key}

    def _access_scope(self) -> "contextlib.AbstractContextManager[sqlite3.Connection]":
        """Write scope that can bump ``accessed_at``, or the caller's read-only scope."""
        if self._engine.in_read_only:
            return self._engine.read()
        return self._engine.transaction()

    def _touch(self, conn: sqlite3.Connection, key: str, now: int) -> bool:
        if self._engine.in_read_only:
            return False
        conn.execute("UPDATE full_details SET accessed_at = ? WHERE key = ?", (now, key))
        return True

    def get(self, key: str) -> DetailBlob:
        """Read a blob by key, updating its ``accessed_at``.

        Raises:
            NotFoundError: If no blob has this key.
        """
        now = self._engine.now()
        with self._access_scope() as conn:
            row = conn.execute("SELECT * FROM full_details WHERE key = ?", (key,)).fetchone()
            if row is None:
                raise NotFoundError(f"Detail not found: {key}")
            touched = self._touch(conn, key, now)

        blob = row_to_detail(row)
        if touched:
            blob.accessed_at = now
        return blob

    def get_event_with_detail(self, event_id: str) -> Dict[str, Any]:
        """Event plus its expanded payload.

        Returns:
            ``{"event": TimelineEvent, "detail": data}``; the ``detail`` key
            is absent when the event was never expanded.

        Raises:
            NotFoundError: If the event does not exist.
        """
        now = self._engine.now()
        with self._access_scope() as conn:
            event = fetch_event(conn, event_id)
            result: Dict[str, Any] = {"event": event}
            if event.detail_key:
                row = conn.execute(
                    "SELECT data FROM full_details WHERE key = ?", (event.detail_key,)
                ).fetchone()
                if row is None:
                    logger.warning(
                        f"Event {event_id} links missing detail {event.detail_key}"
                    )
                else:
                    self._touch(conn, event.detail_key, now)
                    result["detail"] = from_json(row["data"])
        return result

    def delete_for_event(self, conn: sqlite3.Connection, event: TimelineEvent) -> bool:
        """Delete an event's blob on the caller's open transaction.

        Returns:
            True if a blob was deleted.
        """
        if not event.detail_key:
            return False
        cur = conn.execute("DELETE FROM full_details WHERE key = ?", (event.detail_key,))
        return cur.rowcount > 0
