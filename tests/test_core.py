"""
Tests for the Chronicle handle and the result envelopes.
"""

import pytest

from chronicle import Chronicle
from chronicle.core import (
    INTERNAL_ERROR_MESSAGE,
    error_envelope,
    success_envelope,
    to_jsonable,
)
from chronicle.types import (
    BusyError,
    ConflictError,
    EngineError,
    NotFoundError,
    RelationDirection,
    ValidationError,
)

from conftest import T0


class TestChronicle:
    """Test opening, composing and closing the stores."""

    def test_open_with_path(self, db_path, clock):
        with Chronicle(db_path=db_path, clock=clock) as c:
            assert c.engine.db_path == db_path
            event_id = c.events.store("ticket", T0)
            assert c.events.get(event_id).created_at == T0
        assert c.engine.closed

    def test_busy_timeout_passed_through(self, db_path):
        with Chronicle(db_path=db_path, busy_timeout_ms=250) as c:
            assert c.engine.busy_timeout_ms == 250

    def test_stores_share_one_engine(self, chronicle):
        assert chronicle.events._engine is chronicle.engine
        assert chronicle.memories._engine is chronicle.engine
        assert chronicle.entities._engine is chronicle.engine

    def test_stats_include_store_breakdowns(self, chronicle, clock):
        chronicle.events.store("ticket", T0)
        chronicle.entities.create("person", "Ada")
        chronicle.memories.set("k", 1, namespace="dev")
        chronicle.memories.set("tmp", 1, ttl_seconds=1)
        clock.advance(2)

        stats = chronicle.stats()

        assert stats["events"] == 1
        assert stats["event_types"] == {"ticket": 1}
        assert stats["entity_types"] == {"person": 1}
        assert stats["memory"] == {"total": 1, "by_namespace": {"dev": 1}, "expired_count": 1}
        assert stats["expired_memories"] == 1

    def test_health_and_integrity(self, chronicle):
        assert chronicle.health()["status"] == "healthy"
        assert chronicle.integrity()["healthy"] is True

    def test_transaction_composes_stores(self, chronicle, row_count):
        with chronicle.transaction():
            event_id = chronicle.events.store("ticket", T0)
            chronicle.details.expand(event_id, {"body": "x"})
            chronicle.memories.set("last_ticket", event_id)
        assert row_count("timeline_events") == 1
        assert row_count("full_details") == 1
        assert chronicle.memories.get("last_ticket").value == event_id


class TestEnvelopes:
    def test_success_envelope_converts_records(self, chronicle):
        entity = chronicle.entities.create("person", "Ada")
        envelope = success_envelope({"entity": entity, "items": [entity]})
        assert envelope["success"] is True
        assert envelope["data"]["entity"]["name"] == "Ada"
        assert envelope["data"]["items"][0]["id"] == entity.id

    def test_success_envelope_without_data(self):
        assert success_envelope() == {"success": True, "data": None}

    def test_to_jsonable_relation_side(self, chronicle):
        chronicle.entities.create("person", "Ada")
        chronicle.entities.create_relation("Ada", "mentors", "Ada")
        [relation] = chronicle.entities.relations("Ada")
        assert relation.side is RelationDirection.BOTH
        assert to_jsonable(relation)["side"] == "both"

    def test_to_jsonable_passes_plain_values(self):
        assert to_jsonable((1, "a", None)) == [1, "a", None]

    @pytest.mark.parametrize(
        "exc, code",
        [
            (ValidationError("type is required"), "VALIDATION_ERROR"),
            (ConflictError("Entity already exists with name: Ada"), "CONFLICT"),
            (NotFoundError("Memory not found: k"), "NOT_FOUND"),
        ],
    )
    def test_caller_errors_keep_their_message(self, exc, code):
        assert error_envelope(exc) == {
            "success": False,
            "error": {"code": code, "message": str(exc)},
        }

    @pytest.mark.parametrize(
        "exc, code",
        [
            (EngineError("disk I/O error"), "ENGINE_ERROR"),
            (BusyError("database is locked"), "BUSY"),
            (RuntimeError("boom"), "INTERNAL_ERROR"),
        ],
    )
    def test_internal_errors_withhold_message(self, exc, code):
        error = error_envelope(exc)["error"]
        assert error == {"code": code, "message": INTERNAL_ERROR_MESSAGE}

    def test_expose_internal(self):
        error = error_envelope(EngineError("disk I/O error"), expose_internal=True)["error"]
        assert error["message"] == "disk I/O error"
