"""Tests for LIKE pattern injection prevention.

Verifies that LIKE metacharacters (%, _, \\) in search terms and key
globs are escaped, so caller input never acts as a wildcard.
"""

import pytest

from chronicle.storage import escape_like_pattern, glob_to_like

from conftest import T0

# ---------------------------------------------------------------------------
# escape_like_pattern / glob_to_like unit tests
# ---------------------------------------------------------------------------


class TestEscapeLikePattern:
    def test_plain_string_unchanged(self):
        assert escape_like_pattern("hello world") == "hello world"

    def test_percent_escaped(self):
        assert escape_like_pattern("50%") == "50\\%"

    def test_underscore_escaped(self):
        assert escape_like_pattern("my_file") == "my\\_file"

    def test_backslash_escaped_first(self):
        """Backslash is doubled before % and _ get their escapes."""
        assert escape_like_pattern("a\\%") == "a\\\\\\%"

    def test_empty_string(self):
        assert escape_like_pattern("") == ""


class TestGlobToLike:
    def test_star_and_question_mark(self):
        assert glob_to_like("dev:*") == "dev:%"
        assert glob_to_like("k?") == "k_"

    def test_literal_wildcards_stay_literal(self):
        """A literal % or _ in the glob is escaped before * and ? are mapped."""
        assert glob_to_like("50%_*") == "50\\%\\_%"


# ---------------------------------------------------------------------------
# Store-level behaviour
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("term", ["%", "_", "\\"])
def test_bare_metacharacter_matches_only_itself(chronicle, term):
    """A search for a lone metacharacter must not match everything."""
    chronicle.memories.set("plain", "nothing special")
    chronicle.memories.set("special", f"has {term} inside")
    chronicle.events.store("note", T0, metadata={"text": "nothing special"})
    chronicle.entities.create("tag", "plain")

    assert [m.key for m in chronicle.memories.search(term)] == ["special"]
    assert chronicle.entities.search(term) == []
    assert chronicle.events.search_metadata(term) == []


def test_memory_glob_with_literal_underscore(memories):
    memories.set("user_1", 1)
    memories.set("userX1", 1)

    assert [m.key for m in memories.list(pattern="user_*")] == ["user_1"]
    assert memories.bulk_delete("user_?") == 1
    assert memories.exists("userX1")


def test_bulk_delete_percent_does_not_delete_everything(memories):
    memories.set("a", 1)
    memories.set("b", 1)
    assert memories.bulk_delete("%") == 0
    assert len(memories.list()) == 2
