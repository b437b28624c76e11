"""Tests for the expiring key/value memory store."""

import pytest

from chronicle.types import ConflictError, MemoryInput, NotFoundError, ValidationError

from conftest import T0


class TestSetGet:
    def test_round_trip_structured_value(self, memories):
        value = {"focus": "parser", "files": ["a.py", "b.py"], "depth": 2}
        stored = memories.set("dev:focus", value, namespace="dev")

        memory = memories.get("dev:focus")
        assert memory.value == value
        assert memory.namespace == "dev"
        assert memory.expires_at is None
        assert stored == memory

    def test_set_overwrites_and_keeps_created_at(self, memories, clock):
        memories.set("k", 1)
        clock.advance(5)
        memory = memories.set("k", 2)
        assert memory.value == 2
        assert memory.created_at == T0
        assert memory.updated_at == T0 + 5000

    def test_missing_key(self, memories):
        with pytest.raises(NotFoundError):
            memories.get("missing")
        assert memories.exists("missing") is False

    def test_none_value_is_stored(self, memories):
        memories.set("empty", None)
        assert memories.get("empty").value is None
        assert memories.exists("empty")

    def test_key_required(self, memories):
        with pytest.raises(ValidationError):
            memories.set("", 1)

    def test_value_must_be_json(self, memories):
        with pytest.raises(ValidationError):
            memories.set("k", {1, 2})


class TestExpiry:
    def test_expired_key_is_gone(self, memories, clock, row_count):
        memories.set("tmp", "x", ttl_seconds=1)
        assert memories.get("tmp").expires_at == T0 + 1000

        clock.advance(2)

        with pytest.raises(NotFoundError):
            memories.get("tmp")
        assert row_count("memories") == 0
        assert memories.sweep_expired() == 0

    def test_expiry_boundary(self, memories, clock):
        memories.set("tmp", "x", ttl_seconds=1)
        clock.advance(0.999)
        assert memories.exists("tmp")
        clock.advance(0.001)
        assert not memories.exists("tmp")

    def test_set_without_ttl_clears_expiry(self, memories, clock):
        memories.set("k", 1, ttl_seconds=1)
        memories.set("k", 2)
        clock.advance(10)
        assert memories.get("k").value == 2

    def test_zero_ttl_means_never(self, memories, clock):
        memories.set("k", 1, ttl_seconds=0)
        clock.advance(10**6)
        assert memories.get("k").expires_at is None

    @pytest.mark.parametrize("bad_ttl", [-1, float("nan"), float("inf"), "60", True])
    def test_invalid_ttl(self, memories, bad_ttl):
        with pytest.raises(ValidationError):
            memories.set("k", 1, ttl_seconds=bad_ttl)
        assert not memories.exists("k")

    def test_reset_after_expiry_gets_new_created_at(self, memories, clock):
        memories.set("k", 1, ttl_seconds=1)
        clock.advance(5)
        # Row is still on disk: nothing has read or swept it yet
        memory = memories.set("k", 2)
        assert memory.created_at == T0 + 5000

    def test_list_and_search_skip_expired_without_deleting(self, memories, clock, row_count):
        memories.set("live", "note")
        memories.set("dead", "note", ttl_seconds=1)
        clock.advance(2)

        assert [m.key for m in memories.list()] == ["live"]
        assert [m.key for m in memories.search("note")] == ["live"]
        assert row_count("memories") == 2

    def test_sweep(self, memories, clock):
        memories.set("a", 1, ttl_seconds=1)
        memories.set("b", 1, ttl_seconds=1)
        memories.set("c", 1)
        clock.advance(2)

        assert memories.sweep_expired() == 2
        assert memories.sweep_expired() == 0
        assert [m.key for m in memories.list()] == ["c"]

    def test_update_ttl(self, memories, clock):
        memories.set("k", 1)
        assert memories.update_ttl("k", 1) is True
        assert memories.get("k").expires_at == T0 + 1000

        assert memories.update_ttl("k", None) is True
        clock.advance(5)
        assert memories.get("k").expires_at is None

    def test_update_ttl_on_missing_or_expired(self, memories, clock, row_count):
        assert memories.update_ttl("missing", 10) is False
        memories.set("k", 1, ttl_seconds=1)
        clock.advance(2)
        assert memories.update_ttl("k", 10) is False
        assert row_count("memories") == 0

    def test_sub_millisecond_ttl_rounds_up(self, memories, clock):
        memory = memories.set("blink", "x", ttl_seconds=0.0004)
        assert memory.expires_at == T0 + 1
        assert memories.exists("blink")
        clock.advance(0.001)
        assert not memories.exists("blink")

    def test_expired_read_inside_read_scope(self, memories, engine, clock, row_count):
        memories.set("tmp", "x", ttl_seconds=1)
        memories.set("kept", "y")
        clock.advance(2)

        with engine.read():
            assert not memories.exists("tmp")
            with pytest.raises(NotFoundError):
                memories.get("tmp")
            assert memories.get("kept").value == "y"

        assert row_count("memories") == 2
        assert memories.sweep_expired() == 1


class TestListAndSearch:
    def test_list_ordering_and_namespace(self, memories, clock):
        memories.set("a", 1, namespace="dev")
        clock.advance(1)
        memories.set("b", 1, namespace="dev")
        memories.set("c", 1, namespace="ops")

        assert [m.key for m in memories.list(namespace="dev")] == ["b", "a"]
        assert [m.key for m in memories.list()] == ["b", "c", "a"]

    def test_glob_pattern(self, memories):
        for key in ["dev:focus", "dev:todo", "ops:focus", "dev_x", "devXx"]:
            memories.set(key, 1)

        assert sorted(m.key for m in memories.list(pattern="dev:*")) == ["dev:focus", "dev:todo"]
        assert sorted(m.key for m in memories.list(pattern="*:focus")) == ["dev:focus", "ops:focus"]
        assert [m.key for m in memories.list(pattern="dev_?")] == ["dev_x"]

    def test_search_is_literal(self, memories):
        memories.set("a", "50% off")
        memories.set("b", "500 off")
        assert [m.key for m in memories.search("50%")] == ["a"]

    def test_search_namespace_and_limit(self, memories, clock):
        memories.set("a", "note", namespace="dev")
        clock.advance(1)
        memories.set("b", "note", namespace="dev")
        memories.set("c", "note", namespace="ops")

        assert [m.key for m in memories.search("note", namespace="dev")] == ["b", "a"]
        assert len(memories.search("note", limit=1)) == 1


class TestBulk:
    def test_bulk_set_mixed_inputs(self, memories):
        written = memories.bulk_set(
            [
                MemoryInput("a", 1, namespace="dev"),
                {"key": "b", "value": [2], "ttl_seconds": 60},
            ]
        )
        assert written == 2
        assert memories.get("a").namespace == "dev"
        assert memories.get("b").expires_at == T0 + 60_000

    def test_bulk_set_is_all_or_nothing(self, memories, row_count):
        with pytest.raises(ValidationError, match=r"entries\[1\]"):
            memories.bulk_set([{"key": "a", "value": 1}, {"key": "", "value": 2}])
        assert row_count("memories") == 0

        with pytest.raises(ValidationError):
            memories.bulk_set([{"key": "a", "value": 1}, {"value": 2}])
        assert row_count("memories") == 0

    def test_bulk_delete(self, memories):
        for key in ["tmp:1", "tmp:2", "keep", "tmp%"]:
            memories.set(key, 1)

        assert memories.bulk_delete("tmp:*") == 2
        assert sorted(m.key for m in memories.list()) == ["keep", "tmp%"]

    def test_delete(self, memories):
        memories.set("k", 1)
        assert memories.delete("k") is True
        assert memories.delete("k") is False


class TestStatsAndHelpers:
    def test_stats(self, memories, clock):
        memories.set("a", 1)
        memories.set("b", 1, namespace="dev")
        memories.set("c", 1, namespace="dev")
        memories.set("d", 1, ttl_seconds=1)
        clock.advance(2)

        assert memories.stats() == {
            "total": 3,
            "by_namespace": {"default": 1, "dev": 2},
            "expired_count": 1,
        }

    def test_get_or_set(self, memories):
        assert memories.get_or_set("k", {"n": 1}) == {"n": 1}
        assert memories.get_or_set("k", {"n": 2}) == {"n": 1}

    def test_get_or_set_replaces_expired(self, memories, clock):
        memories.set("k", "old", ttl_seconds=1)
        clock.advance(2)
        assert memories.get_or_set("k", "new") == "new"
        assert memories.get("k").value == "new"

    def test_rename(self, memories, clock):
        memories.set("old", "v", namespace="dev", ttl_seconds=60)
        clock.advance(1)

        renamed = memories.rename("old", "new")

        assert renamed.key == "new"
        assert renamed.value == "v"
        assert renamed.namespace == "dev"
        assert renamed.expires_at == T0 + 60_000
        assert not memories.exists("old")

    def test_rename_missing_or_taken(self, memories, clock, row_count):
        with pytest.raises(NotFoundError):
            memories.rename("missing", "new")

        memories.set("a", 1)
        memories.set("b", 2)
        with pytest.raises(ConflictError):
            memories.rename("a", "b")

        memories.set("gone", 3, ttl_seconds=1)
        clock.advance(2)
        with pytest.raises(NotFoundError):
            memories.rename("gone", "c")
        assert row_count("memories") == 2

    def test_rename_onto_expired_key(self, memories, clock):
        memories.set("stale", 0, ttl_seconds=1)
        clock.advance(2)
        memories.set("fresh", 1)
        assert memories.rename("fresh", "stale").value == 1
