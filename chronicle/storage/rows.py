"""Row deserializers and JSON boundary for chronicle storage.

Module-level functions converting sqlite rows to dataclass instances, plus
the ``to_json``/``from_json`` pair every store uses for structured payloads.
The stores keep their SQL; only the conversions live here.
"""

import json
import logging
import sqlite3
from typing import Any, Optional

from chronicle.types import (
    DetailBlob,
    Entity,
    EntityVersion,
    Memory,
    NotFoundError,
    Relation,
    RelationDirection,
    TimelineEvent,
    ValidationError,
)

logger = logging.getLogger(__name__)


def to_json(data: Any, field_name: str = "value") -> str:
    """Serialize a structured value, rejecting anything that is not plain JSON."""
    try:
        return json.dumps(data, allow_nan=False, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{field_name} is not JSON-serializable: {e}") from e


def to_json_or_none(data: Any, field_name: str = "value") -> Optional[str]:
    if data is None:
        return None
    return to_json(data, field_name)


def from_json(s: Optional[str]) -> Any:
    """Parse JSON string."""
    if s is None:
        return None
    try:
        return json.loads(s)
    except json.JSONDecodeError as e:
        logger.warning(f"Unreadable JSON column ({e}); returning None")
        return None


def _safe_get(row: sqlite3.Row, key: str, default: Any = None) -> Any:
    """Safely get value from row."""
    try:
        value = row[key]
        return value if value is not None else default
    except (IndexError, KeyError):
        return default


def row_to_event(row: sqlite3.Row) -> TimelineEvent:
    return TimelineEvent(
        id=row["id"],
        timestamp=row["timestamp"],
        date=row["date"],
        type=row["type"],
        namespace=row["namespace"],
        title=row["title"],
        metadata=from_json(row["metadata"]),
        detail_key=row["detail_key"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def row_to_detail(row: sqlite3.Row) -> DetailBlob:
    return DetailBlob(
        key=row["key"],
        data=from_json(row["data"]),
        created_at=row["created_at"],
        accessed_at=row["accessed_at"],
    )


def row_to_memory(row: sqlite3.Row) -> Memory:
    return Memory(
        key=row["key"],
        value=from_json(row["value"]),
        namespace=row["namespace"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        expires_at=row["expires_at"],
    )


def row_to_entity(row: sqlite3.Row) -> Entity:
    return Entity(
        id=row["id"],
        type=row["type"],
        name=row["name"],
        properties=from_json(row["properties"]) or {},
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def row_to_entity_version(row: sqlite3.Row) -> EntityVersion:
    return EntityVersion(
        id=row["id"],
        entity_id=row["entity_id"],
        version=row["version"],
        properties=from_json(row["properties"]) or {},
        changed_by=row["changed_by"],
        changed_at=row["changed_at"],
        change_reason=row["change_reason"],
    )


def row_to_relation(row: sqlite3.Row, side: Optional[RelationDirection] = None) -> Relation:
    return Relation(
        id=row["id"],
        from_entity_id=row["from_entity_id"],
        relation_type=row["relation_type"],
        to_entity_id=row["to_entity_id"],
        properties=from_json(row["properties"]),
        created_at=row["created_at"],
        from_entity_name=_safe_get(row, "from_entity_name"),
        to_entity_name=_safe_get(row, "to_entity_name"),
        side=side,
    )


def fetch_event(conn: sqlite3.Connection, event_id: str) -> TimelineEvent:
    """Load one event on an open connection, or raise NotFoundError."""
    row = conn.execute("SELECT * FROM timeline_events WHERE id = ?", (event_id,)).fetchone()
    if row is None:
        raise NotFoundError(f"Event not found: {event_id}")
    return row_to_event(row)
