"""Event store: the time- and type-indexed timeline.

Events are append-mostly. ``date`` is always derived from ``timestamp``
(UTC calendar day) at write time and recomputed whenever the timestamp
changes; it is never accepted from callers.
"""

import logging
import re
import sqlite3
import uuid
from datetime import date as date_cls
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from dateutil import parser as dateutil_parser

from chronicle.types import (
    ConflictError,
    Granularity,
    JsonValue,
    TimelineEvent,
    TimelineResult,
    ValidationError,
    date_for_timestamp,
)

from .details import DetailCache
from .engine import Engine
from .patterns import contains_pattern
from .rows import fetch_event, row_to_event, to_json_or_none
from .validation import optional_text, require_text, validate_limit

logger = logging.getLogger(__name__)

DEFAULT_DATE_LIMIT = 1000
DEFAULT_RANGE_LIMIT = 10000
DEFAULT_SEARCH_LIMIT = 100
MAX_METADATA_BYTES = 64 * 1024

UPDATABLE_FIELDS = frozenset({"title", "metadata", "namespace", "timestamp"})

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Closed mapping: every Granularity has exactly one fixed strftime format.
# The format is bound as a query parameter, never spliced into SQL.
_PERIOD_FORMATS: Dict[Granularity, str] = {
    Granularity.DAY: "%Y-%m-%d",
    Granularity.WEEK: "%Y-W%W",
    Granularity.MONTH: "%Y-%m",
}

TimestampInput = Union[int, float, str, datetime]


def normalize_timestamp(value: Any) -> int:
    """Convert an int/float (ms), datetime, or date/time string to ms since epoch.

    Naive datetimes and strings without an offset are taken as UTC.

    Raises:
        ValidationError: If the value is missing or cannot be parsed.
    """
    if value is None:
        raise ValidationError("Event timestamp is required")
    if isinstance(value, bool):
        raise ValidationError("Event timestamp must be a number or date/time string")

    if isinstance(value, int):
        ms = value
    elif isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            raise ValidationError(f"Invalid timestamp: {value}")
        ms = int(value)
    elif isinstance(value, (datetime, str)):
        if isinstance(value, str) and not value.strip():
            raise ValidationError("Event timestamp is required")
        try:
            dt = dateutil_parser.parse(value.strip()) if isinstance(value, str) else value
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
            # Offsets dateutil accepts but datetime rejects only fail here
            ms = (dt - _EPOCH) // timedelta(milliseconds=1)
        except (ValueError, OverflowError) as e:
            raise ValidationError(f"Invalid timestamp: {value!r}") from e
    else:
        raise ValidationError(
            f"Event timestamp must be a number or date/time string, got {type(value).__name__}"
        )

    # Must map onto a representable calendar day
    try:
        date_for_timestamp(ms)
    except (OverflowError, OSError, ValueError) as e:
        raise ValidationError(f"Timestamp out of range: {ms}") from e
    return ms


def validate_date(value: Any, field_name: str = "date") -> str:
    """Check a ``YYYY-MM-DD`` string names a real calendar day."""
    if not isinstance(value, str) or not _DATE_RE.match(value):
        raise ValidationError(f"{field_name} must be in YYYY-MM-DD format")
    try:
        date_cls.fromisoformat(value)
    except ValueError as e:
        raise ValidationError(f"{field_name} is not a valid date: {value}") from e
    return value


def _metadata_json(metadata: JsonValue) -> Optional[str]:
    payload = to_json_or_none(metadata, "metadata")
    if payload is not None and len(payload.encode("utf-8")) > MAX_METADATA_BYTES:
        raise ValidationError(
            f"metadata too large ({len(payload.encode('utf-8'))} bytes, max {MAX_METADATA_BYTES}); "
            "store large payloads with DetailCache.expand"
        )
    return payload


def _result(events: List[TimelineEvent]) -> TimelineResult:
    by_type: Dict[str, int] = {}
    for event in events:
        by_type[event.type] = by_type.get(event.type, 0) + 1
    return TimelineResult(events=events, stats={"total": len(events), "by_type": by_type})


class EventStore:
    """CRUD and date/range queries over timeline events."""

    def __init__(self, engine: Engine, details: Optional[DetailCache] = None):
        self._engine = engine
        self._details = details or DetailCache(engine)

    def store(
        self,
        type: str,
        timestamp: TimestampInput,
        *,
        title: Optional[str] = None,
        metadata: JsonValue = None,
        namespace: Optional[str] = None,
        event_id: Optional[str] = None,
    ) -> str:
        """Store a timeline event.

        Args:
            type: Free-form tag, e.g. "ticket", "play", "calendar_event".
            timestamp: ms since epoch, datetime, or date/time string.
            title: Optional human label.
            metadata: Inline structured value (at most 64 KiB serialized).
            namespace: Optional grouping string.
            event_id: Caller-chosen id; a UUID is generated when omitted.

        Returns:
            The event id.

        Raises:
            ValidationError: Missing/unparseable type or timestamp, bad metadata.
            ConflictError: event_id is already taken.
        """
        require_text(type, "Event type")
        if event_id is not None:
            require_text(event_id, "event_id")
        optional_text(title, "title")
        optional_text(namespace, "namespace")

        ts = normalize_timestamp(timestamp)
        day = date_for_timestamp(ts)
        metadata_json = _metadata_json(metadata)
        event_id = event_id or str(uuid.uuid4())
        now = self._engine.now()

        with self._engine.transaction() as conn:
            try:
                conn.execute(
                    """INSERT INTO timeline_events
                       (id, timestamp, date, type, namespace, title, metadata,
                        detail_key, created_at, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, NULL, ?, ?)""",
                    (event_id, ts, day, type, namespace, title, metadata_json, now, now),
                )
            except sqlite3.IntegrityError as e:
                raise ConflictError(f"Event already exists: {event_id}") from e

        logger.debug(f"Stored {type} event {event_id} on {day}")
        return event_id

    def get(self, event_id: str) -> TimelineEvent:
        """Get a single event.

        Raises:
            NotFoundError: If absent.
        """
        with self._engine.read() as conn:
            return fetch_event(conn, event_id)

    def _query(
        self, where: str, params: Sequence[Any], type: Optional[str], limit: int
    ) -> TimelineResult:
        # ``where`` is always one of this module's literal fragments
        sql = f"SELECT * FROM timeline_events WHERE {where}"
        args = list(params)
        if type:
            sql += " AND type = ?"
            args.append(type)
        sql += " ORDER BY timestamp ASC, rowid ASC LIMIT ?"
        args.append(limit)

        with self._engine.read() as conn:
            rows = conn.execute(sql, args).fetchall()
        return _result([row_to_event(row) for row in rows])

    def query_by_date(
        self, date: str, type: Optional[str] = None, limit: Optional[int] = None
    ) -> TimelineResult:
        """Events on one UTC day, oldest first.

        ``stats`` holds ``total`` and ``by_type`` for the returned events.
        """
        validate_date(date)
        return self._query(
            "date = ?", [date], optional_text(type, "type"),
            validate_limit(limit, DEFAULT_DATE_LIMIT),
        )

    def query_range(
        self,
        start_date: str,
        end_date: str,
        type: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> TimelineResult:
        """Events between two days, inclusive on both ends, oldest first.

        Raises:
            ValidationError: If end_date is before start_date.
        """
        validate_date(start_date, "start_date")
        validate_date(end_date, "end_date")
        if end_date < start_date:
            raise ValidationError(f"end_date {end_date} is before start_date {start_date}")
        return self._query(
            "date >= ? AND date <= ?",
            [start_date, end_date],
            optional_text(type, "type"),
            validate_limit(limit, DEFAULT_RANGE_LIMIT),
        )

    def summary(self, date: str) -> Dict[str, Any]:
        """Counts for one day without loading any events."""
        validate_date(date)
        with self._engine.read() as conn:
            rows = conn.execute(
                "SELECT type, COUNT(*) AS count FROM timeline_events WHERE date = ? GROUP BY type",
                (date,),
            ).fetchall()
        by_type = {row["type"]: row["count"] for row in rows}
        return {"date": date, "total": sum(by_type.values()), "by_type": by_type}

    def update(self, event_id: str, changes: Mapping[str, Any]) -> TimelineEvent:
        """Update any subset of title, metadata, namespace and timestamp.

        A timestamp change recomputes ``date``. An empty ``changes`` returns
        the event untouched.

        Raises:
            ValidationError: Unknown field or invalid value.
            NotFoundError: If the event does not exist.
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Cannot update event field(s): {', '.join(sorted(unknown))}; "
                f"allowed: {', '.join(sorted(UPDATABLE_FIELDS))}"
            )

        assignments: List[str] = []
        params: List[Any] = []
        if "title" in changes:
            assignments.append("title = ?")
            params.append(optional_text(changes["title"], "title"))
        if "metadata" in changes:
            assignments.append("metadata = ?")
            params.append(_metadata_json(changes["metadata"]))
        if "namespace" in changes:
            assignments.append("namespace = ?")
            params.append(optional_text(changes["namespace"], "namespace"))
        if "timestamp" in changes:
            ts = normalize_timestamp(changes["timestamp"])
            assignments.append("timestamp = ?")
            assignments.append("date = ?")
            params.extend([ts, date_for_timestamp(ts)])

        with self._engine.transaction() as conn:
            event = fetch_event(conn, event_id)
            if not assignments:
                return event
            assignments.append("updated_at = ?")
            params.extend([self._engine.now(), event_id])
            conn.execute(
                f"UPDATE timeline_events SET {', '.join(assignments)} WHERE id = ?", params
            )
            return fetch_event(conn, event_id)

    def delete(self, event_id: str) -> None:
        """Delete an event and its detail blob in one transaction.

        Raises:
            NotFoundError: If the event does not exist.
        """
        with self._engine.transaction() as conn:
            event = fetch_event(conn, event_id)
            had_detail = self._details.delete_for_event(conn, event)
            conn.execute("DELETE FROM timeline_events WHERE id = ?", (event_id,))
        logger.debug(f"Deleted event {event_id} (detail deleted: {had_detail})")

    def event_type_counts(self) -> Dict[str, int]:
        """Global count per event type, most frequent first."""
        with self._engine.read() as conn:
            rows = conn.execute(
                """SELECT type, COUNT(*) AS count FROM timeline_events
                   GROUP BY type ORDER BY count DESC, type ASC"""
            ).fetchall()
        return {row["type"]: row["count"] for row in rows}

    def search_metadata(self, term: str, limit: Optional[int] = None) -> List[TimelineEvent]:
        """Events whose serialized metadata contains ``term`` literally, newest first."""
        if not isinstance(term, str) or not term:
            raise ValidationError("Search term is required")
        limit = validate_limit(limit, DEFAULT_SEARCH_LIMIT)
        with self._engine.read() as conn:
            rows = conn.execute(
                """SELECT * FROM timeline_events
                   WHERE metadata LIKE ? ESCAPE '\\'
                   ORDER BY timestamp DESC, rowid DESC
                   LIMIT ?""",
                (contains_pattern(term), limit),
            ).fetchall()
        return [row_to_event(row) for row in rows]

    def activity(
        self,
        start_date: str,
        end_date: str,
        granularity: Union[Granularity, str] = Granularity.DAY,
        type: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Event counts per day, week (``YYYY-Www``) or month in a date range.

        Returns:
            ``[{"period": str, "count": int}, ...]`` in period order.
        """
        validate_date(start_date, "start_date")
        validate_date(end_date, "end_date")
        if end_date < start_date:
            raise ValidationError(f"end_date {end_date} is before start_date {start_date}")
        try:
            granularity = Granularity(granularity)
        except ValueError as e:
            raise ValidationError(
                f"granularity must be one of {[g.value for g in Granularity]}, got {granularity!r}"
            ) from e

        sql = """SELECT strftime(?, date) AS period, COUNT(*) AS count
                 FROM timeline_events
                 WHERE date >= ? AND date <= ?"""
        args: List[Any] = [_PERIOD_FORMATS[granularity], start_date, end_date]
        if type:
            sql += " AND type = ?"
            args.append(type)
        sql += " GROUP BY period ORDER BY period ASC"

        with self._engine.read() as conn:
            rows = conn.execute(sql, args).fetchall()
        return [{"period": row["period"], "count": row["count"]} for row in rows]
