"""Chronicle - the process-owned handle on one memory database.

Opens the engine once and wires the four stores to it::

    with Chronicle() as c:
        event_id = c.events.store("ticket", 1700000000000, title="Fix bug")
        c.details.expand(event_id, {"body": "..."})
        c.memories.set("dev:focus", "parser", ttl_seconds=3600)

Also holds the ``{success, data}`` / ``{success: false, error}`` envelope
helpers shared by the MCP and CLI layers.
"""

import contextlib
import logging
from typing import Any, Callable, Dict, Optional

from chronicle.storage import DetailCache, Engine, EntityGraphStore, EventStore, MemoryStore
from chronicle.types import ChronicleError, EngineError

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"


class Chronicle:
    """Engine plus stores, opened together and closed together."""

    def __init__(
        self,
        db_path: Optional[str] = None,
        busy_timeout_ms: Optional[int] = None,
        clock: Optional[Callable[[], int]] = None,
        engine: Optional[Engine] = None,
    ):
        self.engine = engine or Engine.open(db_path, busy_timeout_ms, clock)
        self.details = DetailCache(self.engine)
        self.events = EventStore(self.engine, self.details)
        self.entities = EntityGraphStore(self.engine, self.events)
        self.memories = MemoryStore(self.engine)
        logger.debug(f"Chronicle opened at {self.engine.db_path}")

    def transaction(self) -> "contextlib.AbstractContextManager":
        """Compose several store calls into one atomic unit."""
        return self.engine.transaction()

    def health(self) -> Dict[str, Any]:
        return self.engine.health()

    def integrity(self) -> Dict[str, Any]:
        return self.engine.integrity()

    def stats(self) -> Dict[str, Any]:
        """Engine counts plus per-store breakdowns."""
        stats = self.engine.stats()
        stats["event_types"] = self.events.event_type_counts()
        stats["entity_types"] = self.entities.type_stats()
        stats["memory"] = self.memories.stats()
        return stats

    def vacuum(self) -> None:
        self.engine.vacuum()

    def close(self) -> None:
        self.engine.close()

    def __enter__(self) -> "Chronicle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


# =============================================================================
# RESULT ENVELOPES
# =============================================================================


def to_jsonable(value: Any) -> Any:
    """Convert records (anything with ``to_dict``) and containers of them."""
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def success_envelope(data: Any = None) -> Dict[str, Any]:
    return {"success": True, "data": to_jsonable(data)}


def error_envelope(exc: BaseException, expose_internal: bool = False) -> Dict[str, Any]:
    """Map an exception onto ``{success: false, error: {code, message}}``.

    Validation, conflict and not-found messages are passed through. Engine
    and unexpected errors keep their code but replace the message unless
    ``expose_internal`` is set.
    """
    if isinstance(exc, ChronicleError):
        code = exc.code
        internal = isinstance(exc, EngineError)
    else:
        code = ChronicleError.code
        internal = True

    if internal and not expose_internal:
        message = INTERNAL_ERROR_MESSAGE
    else:
        message = str(exc)
    return {"success": False, "error": {"code": code, "message": message}}
