"""Chronicle storage.

One SQLite file (WAL mode) behind four cooperating stores that share the
engine's transaction mechanism.
"""

from .details import DetailCache, detail_key_for
from .engine import Engine, translate_sqlite_error
from .entities import EntityGraphStore
from .events import (
    MAX_METADATA_BYTES,
    EventStore,
    normalize_timestamp,
    validate_date,
)
from .memories import MemoryStore
from .patterns import escape_like_pattern, glob_to_like
from .schema import SCHEMA_VERSION
from .validation import MAX_QUERY_LIMIT

__all__ = [
    # Engine
    "Engine",
    "SCHEMA_VERSION",
    "translate_sqlite_error",
    # Stores
    "EventStore",
    "DetailCache",
    "EntityGraphStore",
    "MemoryStore",
    # Helpers
    "MAX_METADATA_BYTES",
    "MAX_QUERY_LIMIT",
    "detail_key_for",
    "escape_like_pattern",
    "glob_to_like",
    "normalize_timestamp",
    "validate_date",
]
