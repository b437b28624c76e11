"""Tests for chronicle.utils module."""

from pathlib import Path

from chronicle.utils import (
    DEFAULT_BUSY_TIMEOUT_MS,
    MAX_BUSY_TIMEOUT_MS,
    get_chronicle_home,
    resolve_busy_timeout,
    resolve_db_path,
)


class TestChronicleHome:
    def test_env_override(self, isolated_data_dir):
        assert get_chronicle_home() == isolated_data_dir

    def test_defaults_to_home_directory(self, monkeypatch):
        monkeypatch.delenv("CHRONICLE_DATA_DIR")
        assert get_chronicle_home() == Path.home() / ".chronicle"


class TestResolveDbPath:
    """Explicit argument, then CHRONICLE_DB_PATH, then the data directory."""

    def test_explicit_path_wins(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CHRONICLE_DB_PATH", str(tmp_path / "env.db"))
        assert resolve_db_path(tmp_path / "arg.db") == tmp_path / "arg.db"
        assert resolve_db_path(str(tmp_path / "arg.db")) == tmp_path / "arg.db"

    def test_env_path(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CHRONICLE_DB_PATH", str(tmp_path / "env.db"))
        assert resolve_db_path() == tmp_path / "env.db"

    def test_default_in_data_dir(self, isolated_data_dir):
        assert resolve_db_path() == isolated_data_dir / "chronicle.db"

    def test_expands_user(self):
        assert resolve_db_path("~/x.db") == Path.home() / "x.db"


class TestResolveBusyTimeout:
    def test_default(self):
        assert resolve_busy_timeout() == DEFAULT_BUSY_TIMEOUT_MS

    def test_explicit(self):
        assert resolve_busy_timeout(250) == 250

    def test_env(self, monkeypatch):
        monkeypatch.setenv("CHRONICLE_BUSY_TIMEOUT_MS", "1200")
        assert resolve_busy_timeout() == 1200

    def test_non_integer_env_falls_back(self, monkeypatch):
        monkeypatch.setenv("CHRONICLE_BUSY_TIMEOUT_MS", "soon")
        assert resolve_busy_timeout() == DEFAULT_BUSY_TIMEOUT_MS

    def test_clamped(self):
        assert resolve_busy_timeout(0) == 1
        assert resolve_busy_timeout(10**9) == MAX_BUSY_TIMEOUT_MS
