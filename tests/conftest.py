"""
Pytest fixtures and test configuration for chronicle tests.
"""

import pytest

from chronicle import Chronicle
from chronicle.storage import Engine

# 2023-11-14T22:13:20Z
T0 = 1_700_000_000_000


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = T0):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)


@pytest.fixture(autouse=True)
def isolated_data_dir(tmp_path, monkeypatch):
    """Keep every test away from ~/.chronicle and the caller's environment."""
    monkeypatch.setenv("CHRONICLE_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("CHRONICLE_DB_PATH", raising=False)
    monkeypatch.delenv("CHRONICLE_BUSY_TIMEOUT_MS", raising=False)
    return tmp_path / "data"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "chronicle.db"


@pytest.fixture
def engine(db_path, clock):
    engine = Engine.open(db_path, clock=clock)
    yield engine
    engine.close()


@pytest.fixture
def chronicle(engine):
    return Chronicle(engine=engine)


@pytest.fixture
def events(chronicle):
    return chronicle.events


@pytest.fixture
def details(chronicle):
    return chronicle.details


@pytest.fixture
def entities(chronicle):
    return chronicle.entities


@pytest.fixture
def memories(chronicle):
    return chronicle.memories


@pytest.fixture
def row_count(engine):
    """Row count straight from the database, bypassing the stores."""

    def count(table: str) -> int:
        with engine.read() as conn:
            return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    return count
