"""Ephemeral key/value memories with optional per-key TTL.

Expiry is enforced two ways:
- point reads (get, exists, update_ttl, get_or_set, rename) delete an
  expired row and then behave as if the key never existed; inside a
  read-only scope get and exists only hide it
- ``sweep_expired`` deletes every expired row in one statement

``list``, ``search`` and ``stats`` only filter expired rows out; they never
delete as a side effect.
"""

import logging
import math
import sqlite3
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from chronicle.types import (
    ConflictError,
    JsonValue,
    Memory,
    MemoryInput,
    NotFoundError,
    ValidationError,
)

from .engine import Engine
from .patterns import contains_pattern, glob_to_like
from .rows import row_to_memory, to_json
from .validation import optional_text, require_text, validate_limit

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 100
DEFAULT_NAMESPACE_LABEL = "default"

_LIVE = "(expires_at IS NULL OR expires_at > ?)"

_UPSERT = """
    INSERT INTO memories (key, value, namespace, created_at, updated_at, expires_at)
    VALUES (?, ?, ?, ?, ?, ?)
    ON CONFLICT(key) DO UPDATE SET
        value = excluded.value,
        namespace = excluded.namespace,
        updated_at = excluded.updated_at,
        expires_at = excluded.expires_at,
        created_at = CASE
            WHEN memories.expires_at IS NOT NULL AND memories.expires_at <= excluded.updated_at
            THEN excluded.created_at
            ELSE memories.created_at
        END
"""

MemoryEntry = Union[MemoryInput, Mapping[str, Any]]


def ttl_to_expires_at(ttl_seconds: Any, now: int) -> Optional[int]:
    """Absolute expiry in ms; ``None`` or 0 means never.

    Raises:
        ValidationError: Negative, NaN/Infinity or non-numeric TTL.
    """
    if ttl_seconds is None:
        return None
    if isinstance(ttl_seconds, bool) or not isinstance(ttl_seconds, (int, float)):
        raise ValidationError("ttl_seconds must be a number")
    if math.isnan(ttl_seconds) or math.isinf(ttl_seconds):
        raise ValidationError("ttl_seconds must be finite")
    if ttl_seconds < 0:
        raise ValidationError(f"ttl_seconds must be >= 0, got {ttl_seconds}")
    if ttl_seconds == 0:
        return None
    return now + math.ceil(ttl_seconds * 1000)


def _is_expired(row: sqlite3.Row, now: int) -> bool:
    return row["expires_at"] is not None and row["expires_at"] <= now


class MemoryStore:
    """Namespaced scratchpad keyed by a global unique key."""

    def __init__(self, engine: Engine):
        self._engine = engine

    def _prepare(
        self,
        key: Any,
        value: Any,
        namespace: Any,
        ttl_seconds: Any,
        now: int,
    ) -> Tuple[str, str, Optional[str], int, int, Optional[int]]:
        require_text(key, "Memory key")
        optional_text(namespace, "namespace")
        return (
            key,
            to_json(value, "value"),
            namespace or None,
            now,
            now,
            ttl_to_expires_at(ttl_seconds, now),
        )

    def _live_row(self, conn: sqlite3.Connection, key: str, now: int) -> Optional[sqlite3.Row]:
        """Row for ``key`` on a write scope, deleting it first if expired."""
        row = conn.execute("SELECT * FROM memories WHERE key = ?", (key,)).fetchone()
        if row is not None and _is_expired(row, now):
            conn.execute("DELETE FROM memories WHERE key = ?", (key,))
            logger.debug(f"Expired memory {key} removed on read")
            return None
        return row

    def _expire(self, key: str, now: int) -> None:
        with self._engine.transaction() as conn:
            conn.execute(
                """DELETE FROM memories
                   WHERE key = ? AND expires_at IS NOT NULL AND expires_at <= ?""",
                (key, now),
            )
        logger.debug(f"Expired memory {key} removed on read")

    def set(
        self,
        key: str,
        value: JsonValue,
        namespace: Optional[str] = None,
        ttl_seconds: Optional[float] = None,
    ) -> Memory:
        """Upsert a memory.

        A positive ``ttl_seconds`` expires the key that many seconds from
        now; omitting it (or passing 0) clears any previous expiry.
        """
        now = self._engine.now()
        params = self._prepare(key, value, namespace, ttl_seconds, now)
        with self._engine.transaction() as conn:
            conn.execute(_UPSERT, params)
            row = conn.execute("SELECT * FROM memories WHERE key = ?", (key,)).fetchone()
        return row_to_memory(row)

    def get(self, key: str) -> Memory:
        """Get a live memory.

        Raises:
            NotFoundError: If absent or expired. An expired row is deleted,
                except inside a read-only scope where it is left for a sweep.
        """
        require_text(key, "Memory key")
        now = self._engine.now()
        with self._engine.read() as conn:
            row = conn.execute("SELECT * FROM memories WHERE key = ?", (key,)).fetchone()
        if row is None:
            raise NotFoundError(f"Memory not found: {key}")
        if _is_expired(row, now):
            if not self._engine.in_read_only:
                self._expire(key, now)
            raise NotFoundError(f"Memory not found: {key}")
        return row_to_memory(row)

    def exists(self, key: str) -> bool:
        try:
            self.get(key)
        except NotFoundError:
            return False
        return True

    def delete(self, key: str) -> bool:
        """Returns False if the key did not exist."""
        require_text(key, "Memory key")
        with self._engine.transaction() as conn:
            cur = conn.execute("DELETE FROM memories WHERE key = ?", (key,))
        return cur.rowcount > 0

    def list(self, namespace: Optional[str] = None, pattern: Optional[str] = None) -> List[Memory]:
        """Live memories, most recently updated first.

        Args:
            namespace: Exact namespace filter.
            pattern: Key glob; ``*`` matches any run, ``?`` one character.
        """
        optional_text(namespace, "namespace")
        optional_text(pattern, "pattern")
        sql = f"SELECT * FROM memories WHERE {_LIVE}"
        params: List[Any] = [self._engine.now()]
        if namespace:
            sql += " AND namespace = ?"
            params.append(namespace)
        if pattern:
            sql += " AND key LIKE ? ESCAPE '\\'"
            params.append(glob_to_like(pattern))
        sql += " ORDER BY updated_at DESC, key ASC"

        with self._engine.read() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [row_to_memory(row) for row in rows]

    def search(
        self, term: str, namespace: Optional[str] = None, limit: Optional[int] = None
    ) -> List[Memory]:
        """Live memories whose serialized value contains ``term`` literally."""
        require_text(term, "Search term")
        optional_text(namespace, "namespace")
        limit = validate_limit(limit, DEFAULT_SEARCH_LIMIT)
        sql = f"SELECT * FROM memories WHERE {_LIVE} AND value LIKE ? ESCAPE '\\'"
        params: List[Any] = [self._engine.now(), contains_pattern(term)]
        if namespace:
            sql += " AND namespace = ?"
            params.append(namespace)
        sql += " ORDER BY updated_at DESC, key ASC LIMIT ?"
        params.append(limit)

        with self._engine.read() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [row_to_memory(row) for row in rows]

    def bulk_set(self, entries: Iterable[MemoryEntry]) -> int:
        """Upsert many memories all-or-nothing.

        Every entry is validated before anything is written; a failure
        partway through the writes rolls all of them back.

        Returns:
            Number of entries written.
        """
        now = self._engine.now()
        batch = []
        for i, entry in enumerate(entries):
            if isinstance(entry, MemoryInput):
                key, value, namespace, ttl = (
                    entry.key, entry.value, entry.namespace, entry.ttl_seconds
                )
            elif isinstance(entry, Mapping):
                if "key" not in entry or "value" not in entry:
                    raise ValidationError(f"entries[{i}] needs 'key' and 'value'")
                key, value = entry["key"], entry["value"]
                namespace, ttl = entry.get("namespace"), entry.get("ttl_seconds")
            else:
                raise ValidationError(f"entries[{i}] must be a MemoryInput or mapping")
            try:
                batch.append(self._prepare(key, value, namespace, ttl, now))
            except ValidationError as e:
                raise ValidationError(f"entries[{i}]: {e}") from e

        with self._engine.transaction() as conn:
            for params in batch:
                conn.execute(_UPSERT, params)
        logger.debug(f"Bulk stored {len(batch)} memories")
        return len(batch)

    def bulk_delete(self, pattern: str) -> int:
        """Delete every key matching a glob. Returns the number deleted."""
        require_text(pattern, "pattern")
        with self._engine.transaction() as conn:
            cur = conn.execute(
                "DELETE FROM memories WHERE key LIKE ? ESCAPE '\\'", (glob_to_like(pattern),)
            )
        logger.debug(f"Bulk deleted {cur.rowcount} memories matching {pattern!r}")
        return cur.rowcount

    def update_ttl(self, key: str, ttl_seconds: Optional[float]) -> bool:
        """Reset a live key's expiry; ``None`` (or 0) clears it.

        Returns:
            False if the key is absent or already expired.
        """
        require_text(key, "Memory key")
        now = self._engine.now()
        expires_at = ttl_to_expires_at(ttl_seconds, now)
        with self._engine.transaction() as conn:
            if self._live_row(conn, key, now) is None:
                return False
            conn.execute(
                "UPDATE memories SET expires_at = ?, updated_at = ? WHERE key = ?",
                (expires_at, now, key),
            )
        return True

    def sweep_expired(self) -> int:
        """Delete all expired rows. Idempotent."""
        now = self._engine.now()
        with self._engine.transaction() as conn:
            cur = conn.execute(
                "DELETE FROM memories WHERE expires_at IS NOT NULL AND expires_at <= ?", (now,)
            )
        if cur.rowcount:
            logger.info(f"Swept {cur.rowcount} expired memories")
        return cur.rowcount

    def stats(self) -> Dict[str, Any]:
        """Live totals plus the count of expired rows still awaiting a sweep.

        A memory without a namespace is counted under ``"default"``.
        """
        now = self._engine.now()
        with self._engine.read() as conn:
            rows = conn.execute(
                f"""SELECT namespace, COUNT(*) AS count FROM memories
                    WHERE {_LIVE} GROUP BY namespace""",
                (now,),
            ).fetchall()
            expired = conn.execute(
                "SELECT COUNT(*) FROM memories WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (now,),
            ).fetchone()[0]

        by_namespace: Dict[str, int] = {}
        for row in rows:
            label = row["namespace"] or DEFAULT_NAMESPACE_LABEL
            by_namespace[label] = by_namespace.get(label, 0) + row["count"]
        return {
            "total": sum(by_namespace.values()),
            "by_namespace": by_namespace,
            "expired_count": expired,
        }

    def get_or_set(
        self,
        key: str,
        default: JsonValue,
        namespace: Optional[str] = None,
        ttl_seconds: Optional[float] = None,
    ) -> JsonValue:
        """Value of a live key, or store ``default`` under it and return that."""
        now = self._engine.now()
        params = self._prepare(key, default, namespace, ttl_seconds, now)
        with self._engine.transaction() as conn:
            row = self._live_row(conn, key, now)
            if row is not None:
                return row_to_memory(row).value
            conn.execute(_UPSERT, params)
        return default

    def rename(self, old_key: str, new_key: str) -> Memory:
        """Move a live memory to a new key, keeping value, namespace and expiry.

        Raises:
            NotFoundError: ``old_key`` is absent or expired.
            ConflictError: ``new_key`` holds a live memory.
        """
        require_text(old_key, "old_key")
        require_text(new_key, "new_key")
        now = self._engine.now()
        with self._engine.transaction() as conn:
            found = self._live_row(conn, old_key, now) is not None
            if found and old_key != new_key:
                if self._live_row(conn, new_key, now) is not None:
                    raise ConflictError(f"Memory already exists with key: {new_key}")
                conn.execute(
                    "UPDATE memories SET key = ?, updated_at = ? WHERE key = ?",
                    (new_key, now, old_key),
                )
        if not found:
            raise NotFoundError(f"Memory not found: {old_key}")
        return self.get(new_key)
