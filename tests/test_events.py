"""Tests for the event store."""

from datetime import datetime, timedelta, timezone

import pytest

from chronicle.storage import MAX_METADATA_BYTES, MAX_QUERY_LIMIT, normalize_timestamp
from chronicle.types import (
    ConflictError,
    Granularity,
    NotFoundError,
    ValidationError,
    date_for_timestamp,
)

from conftest import T0

LAST_MS_OF_DAY = 1_700_006_399_999  # 2023-11-14T23:59:59.999Z
NEXT_DAY = LAST_MS_OF_DAY + 1


class TestStoreAndGet:
    def test_ticket_scenario(self, events):
        event_id = events.store("ticket", 1_700_000_000_000, title="Fix bug")

        result = events.query_by_date("2023-11-14", "ticket")

        assert [e.id for e in result.events] == [event_id]
        assert result.stats["total"] == 1
        assert result.stats["by_type"]["ticket"] == 1

    def test_round_trip(self, events):
        metadata = {"key": "PROJ-1", "labels": ["a", "b"], "points": 3.5, "done": False}
        event_id = events.store(
            "ticket", T0, title="Fix bug", metadata=metadata, namespace="work"
        )

        event = events.get(event_id)

        assert event.id == event_id
        assert event.timestamp == T0
        assert event.type == "ticket"
        assert event.title == "Fix bug"
        assert event.metadata == metadata
        assert event.namespace == "work"
        assert event.date == "2023-11-14"
        assert event.detail_key is None
        assert event.created_at == event.updated_at == T0

    def test_caller_supplied_id(self, events):
        assert events.store("play", T0, event_id="spotify-1") == "spotify-1"
        with pytest.raises(ConflictError):
            events.store("play", T0, event_id="spotify-1")

    def test_get_missing_raises_not_found(self, events):
        with pytest.raises(NotFoundError):
            events.get("missing")

    @pytest.mark.parametrize("bad_type", [None, "", "   ", 5])
    def test_type_is_required(self, events, bad_type):
        with pytest.raises(ValidationError):
            events.store(bad_type, T0)

    def test_metadata_size_cap(self, events):
        with pytest.raises(ValidationError, match="too large"):
            events.store("note", T0, metadata={"blob": "x" * MAX_METADATA_BYTES})

    def test_metadata_must_be_json(self, events):
        with pytest.raises(ValidationError):
            events.store("note", T0, metadata={"bad": float("nan")})
        with pytest.raises(ValidationError):
            events.store("note", T0, metadata={"bad": object()})


class TestTimestamps:
    def test_date_is_utc_day_of_timestamp(self, events):
        late = events.store("a", LAST_MS_OF_DAY)
        early = events.store("a", NEXT_DAY)
        assert events.get(late).date == "2023-11-14"
        assert events.get(early).date == "2023-11-15"

    def test_iso_string_with_zone(self):
        assert normalize_timestamp("2023-11-14T22:13:20Z") == T0
        assert normalize_timestamp("2023-11-15T00:13:20+02:00") == T0

    def test_naive_string_is_utc(self):
        assert normalize_timestamp("2023-11-14 22:13:20") == T0

    def test_datetime(self):
        aware = datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)
        assert normalize_timestamp(aware) == T0
        assert normalize_timestamp(aware.replace(tzinfo=None)) == T0
        assert normalize_timestamp(aware + timedelta(milliseconds=123)) == T0 + 123

    @pytest.mark.parametrize(
        "bad",
        [None, "", "not a date", True, float("nan"), [1], "2023-11-14T10:00:00+25:00"],
    )
    def test_unparseable_timestamps(self, bad):
        with pytest.raises(ValidationError):
            normalize_timestamp(bad)

    def test_store_accepts_string(self, events):
        event_id = events.store("a", "2023-11-14T22:13:20Z")
        assert events.get(event_id).timestamp == T0


class TestQueries:
    def test_ordered_by_timestamp_then_insertion(self, events):
        second = events.store("a", T0 + 10, title="second")
        first = events.store("a", T0, title="first")
        tie_1 = events.store("a", T0 + 20, title="tie 1")
        tie_2 = events.store("a", T0 + 20, title="tie 2")

        result = events.query_by_date("2023-11-14")
        assert [e.id for e in result.events] == [first, second, tie_1, tie_2]

    def test_type_filter_and_stats(self, events):
        events.store("ticket", T0)
        events.store("play", T0)
        events.store("play", T0 + 1)

        all_events = events.query_by_date("2023-11-14")
        assert all_events.stats == {"total": 3, "by_type": {"ticket": 1, "play": 2}}

        plays = events.query_by_date("2023-11-14", type="play")
        assert plays.stats == {"total": 2, "by_type": {"play": 2}}

    def test_limit(self, events):
        for i in range(5):
            events.store("a", T0 + i)
        result = events.query_by_date("2023-11-14", limit=2)
        assert result.stats["total"] == 2
        assert [e.timestamp for e in result.events] == [T0, T0 + 1]

    @pytest.mark.parametrize("bad_limit", [0, -1, "10", 1.5, True])
    def test_invalid_limit(self, events, bad_limit):
        with pytest.raises(ValidationError):
            events.query_by_date("2023-11-14", limit=bad_limit)

    def test_limit_is_capped(self, events):
        events.store("a", T0)
        result = events.query_by_date("2023-11-14", limit=MAX_QUERY_LIMIT * 10)
        assert result.stats["total"] == 1

    @pytest.mark.parametrize("bad_date", ["2023-2-3", "2023-02-30", "yesterday", "", None])
    def test_invalid_dates(self, events, bad_date):
        with pytest.raises(ValidationError):
            events.query_by_date(bad_date)

    def test_range_is_inclusive(self, events):
        events.store("a", T0 - 86_400_000)  # 11-13
        events.store("a", T0)  # 11-14
        events.store("a", NEXT_DAY)  # 11-15
        events.store("a", NEXT_DAY + 86_400_000)  # 11-16

        result = events.query_range("2023-11-14", "2023-11-15")
        assert [e.date for e in result.events] == ["2023-11-14", "2023-11-15"]

    def test_range_rejects_reversed_dates(self, events):
        with pytest.raises(ValidationError):
            events.query_range("2023-11-15", "2023-11-14")

    def test_summary(self, events):
        events.store("ticket", T0)
        events.store("ticket", T0)
        events.store("play", T0)
        events.store("play", NEXT_DAY)
        assert events.summary("2023-11-14") == {
            "date": "2023-11-14",
            "total": 3,
            "by_type": {"ticket": 2, "play": 1},
        }
        assert events.summary("2024-01-01") == {"date": "2024-01-01", "total": 0, "by_type": {}}

    def test_event_type_counts_most_frequent_first(self, events):
        events.store("ticket", T0)
        for i in range(3):
            events.store("play", T0 + i)
        assert list(events.event_type_counts().items()) == [("play", 3), ("ticket", 1)]

    def test_search_metadata_is_literal(self, events):
        hit = events.store("a", T0, metadata={"note": "50% done"})
        events.store("a", T0 + 1, metadata={"note": "500 done"})
        assert [e.id for e in events.search_metadata("50%")] == [hit]

    def test_search_metadata_newest_first(self, events):
        older = events.store("a", T0, metadata={"who": "Ada"})
        newer = events.store("a", T0 + 5, metadata={"who": "Ada"})
        assert [e.id for e in events.search_metadata("Ada")] == [newer, older]


class TestActivity:
    @pytest.fixture
    def populated(self, events):
        events.store("a", T0)  # 2023-11-14, week 46
        events.store("b", NEXT_DAY)  # 2023-11-15, week 46
        events.store("a", NEXT_DAY + 5 * 86_400_000)  # 2023-11-20, week 47
        events.store("a", 1_701_388_800_000)  # 2023-12-01
        return events

    def test_by_day(self, populated):
        assert populated.activity("2023-11-01", "2023-12-31", "day") == [
            {"period": "2023-11-14", "count": 1},
            {"period": "2023-11-15", "count": 1},
            {"period": "2023-11-20", "count": 1},
            {"period": "2023-12-01", "count": 1},
        ]

    def test_by_week(self, populated):
        assert populated.activity("2023-11-01", "2023-11-30", Granularity.WEEK) == [
            {"period": "2023-W46", "count": 2},
            {"period": "2023-W47", "count": 1},
        ]

    def test_by_month_with_type(self, populated):
        assert populated.activity("2023-11-01", "2023-12-31", "month", type="a") == [
            {"period": "2023-11", "count": 2},
            {"period": "2023-12", "count": 1},
        ]

    def test_unknown_granularity(self, populated):
        with pytest.raises(ValidationError):
            populated.activity("2023-11-01", "2023-11-30", "%Y")


class TestUpdate:
    def test_timestamp_change_recomputes_date(self, events):
        event_id = events.store("a", T0)
        updated = events.update(event_id, {"timestamp": NEXT_DAY})
        assert updated.timestamp == NEXT_DAY
        assert updated.date == "2023-11-15"
        assert events.get(event_id).date == date_for_timestamp(NEXT_DAY)
        assert events.query_by_date("2023-11-14").events == []

    def test_partial_update(self, events, clock):
        event_id = events.store("a", T0, title="old", metadata={"x": 1}, namespace="ns")
        clock.advance(5)
        updated = events.update(event_id, {"title": "new", "metadata": None})
        assert updated.title == "new"
        assert updated.metadata is None
        assert updated.namespace == "ns"
        assert updated.updated_at == T0 + 5000
        assert updated.created_at == T0

    def test_empty_changes_leave_event_untouched(self, events, clock):
        event_id = events.store("a", T0)
        clock.advance(5)
        assert events.update(event_id, {}).updated_at == T0

    def test_unknown_field_rejected(self, events):
        event_id = events.store("a", T0)
        with pytest.raises(ValidationError, match="date"):
            events.update(event_id, {"date": "2020-01-01"})

    def test_missing_event(self, events):
        with pytest.raises(NotFoundError):
            events.update("missing", {"title": "x"})


class TestDelete:
    def test_delete_removes_event_and_detail(self, events, details, row_count):
        event_id = events.store("ticket", T0)
        details.expand(event_id, {"body": "long"})

        events.delete(event_id)

        assert row_count("timeline_events") == 0
        assert row_count("full_details") == 0
        with pytest.raises(NotFoundError):
            details.get_event_with_detail(event_id)

    def test_delete_missing(self, events):
        with pytest.raises(NotFoundError):
            events.delete("missing")
