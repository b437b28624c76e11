"""
Shared record types for chronicle.

All store records live here as dataclasses. They are the contract between
the storage layer and its callers (MCP handlers, CLI, import scripts).
Timestamps are integer milliseconds since the Unix epoch throughout.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

# Schema-less structured payload used for metadata, properties, blob data
# and KV values. Everything crossing the serialization boundary must fit it.
JsonValue = Union[None, bool, int, float, str, List["JsonValue"], Dict[str, "JsonValue"]]


# === Shared Utility Functions ===


def now_ms() -> int:
    """Current UTC time in integer milliseconds."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def date_for_timestamp(timestamp: int) -> str:
    """Calendar day (UTC) of a millisecond timestamp, as ``YYYY-MM-DD``."""
    return datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc).strftime("%Y-%m-%d")


# === Enums ===


class RelationDirection(str, Enum):
    """Which end of a relation an entity lookup matches."""

    FROM = "from"  # entity is the source
    TO = "to"  # entity is the target
    BOTH = "both"


VALID_DIRECTION_VALUES = frozenset(d.value for d in RelationDirection)


class Granularity(str, Enum):
    """Period size for activity reports."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"


VALID_GRANULARITY_VALUES = frozenset(g.value for g in Granularity)


# === Errors ===


class ChronicleError(Exception):
    """Base for all chronicle errors."""

    code = "INTERNAL_ERROR"


class ValidationError(ChronicleError, ValueError):
    """Malformed or missing caller input. Never retried internally."""

    code = "VALIDATION_ERROR"


class ConflictError(ValidationError):
    """A uniqueness constraint would be violated (e.g. duplicate entity name)."""

    code = "CONFLICT"


class NotFoundError(ChronicleError):
    """Referenced id, key or name does not exist (or has expired)."""

    code = "NOT_FOUND"


class EngineError(ChronicleError):
    """Underlying storage failure: open failure, disk error, lock timeout."""

    code = "ENGINE_ERROR"


class BusyError(EngineError):
    """The write lock could not be acquired within the busy timeout."""

    code = "BUSY"


# === Records ===


@dataclass
class TimelineEvent:
    """A point-in-time occurrence on the timeline."""

    id: str
    timestamp: int
    date: str
    type: str
    namespace: Optional[str] = None
    title: Optional[str] = None
    metadata: JsonValue = None
    detail_key: Optional[str] = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TimelineResult:
    """Events for a date or range, plus counts over the returned events."""

    events: List[TimelineEvent] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=lambda: {"total": 0, "by_type": {}})

    def to_dict(self) -> Dict[str, Any]:
        return {"events": [e.to_dict() for e in self.events], "stats": self.stats}


@dataclass
class DetailBlob:
    """Large, rarely-read payload attached to one event."""

    key: str
    data: JsonValue
    created_at: int
    accessed_at: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Memory:
    """A namespaced, possibly-expiring key/value entry."""

    key: str
    value: JsonValue
    namespace: Optional[str] = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None
    expires_at: Optional[int] = None  # None = never expires

    @property
    def metadata(self) -> Dict[str, Any]:
        return {
            "namespace": self.namespace,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "expires_at": self.expires_at,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "value": self.value, "metadata": self.metadata}


@dataclass
class MemoryInput:
    """One entry for MemoryStore.bulk_set."""

    key: str
    value: JsonValue
    namespace: Optional[str] = None
    ttl_seconds: Optional[float] = None


@dataclass
class Entity:
    """A named, typed node in the entity graph.

    ``name`` is unique across all entities regardless of ``type``.
    """

    id: str
    type: str
    name: str
    properties: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[int] = None
    updated_at: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class EntityVersion:
    """Immutable snapshot of an entity's properties after one change."""

    id: int
    entity_id: str
    version: int
    properties: Dict[str, Any]
    changed_by: str
    changed_at: int
    change_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Relation:
    """A directed, typed edge between two entities."""

    id: str
    from_entity_id: str
    relation_type: str
    to_entity_id: str
    properties: Optional[Dict[str, Any]] = None
    created_at: Optional[int] = None
    # Populated by lookups
    from_entity_name: Optional[str] = None
    to_entity_name: Optional[str] = None
    side: Optional[RelationDirection] = None  # which end matched the queried entity

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["side"] = self.side.value if self.side else None
        return d
