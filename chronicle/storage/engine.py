"""Durable engine: the single SQLite file behind every chronicle store.

Responsibilities:
- Open the database file with WAL journaling, a bounded busy timeout and
  foreign-key enforcement on every connection
- Bootstrap the schema (idempotent)
- Scope transactions for all stores through one mechanism

Concurrency model: one connection per thread. Write scopes start with
``BEGIN IMMEDIATE`` so writers serialize on the database's write lock
(waiting at most ``busy_timeout_ms``); read scopes use deferred ``BEGIN``
and see a WAL snapshot, so readers never block writers or each other.
A scope opened while another is active on the same thread becomes a
SAVEPOINT inside it, which is how store calls compose atomically.
"""

import contextlib
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Union

from chronicle.types import BusyError, EngineError, now_ms
from chronicle.utils import resolve_busy_timeout, resolve_db_path

from .health import check_health, check_integrity
from .schema import get_schema_version, init_db
from .stats_ops import get_stats

logger = logging.getLogger(__name__)


def translate_sqlite_error(e: sqlite3.Error) -> EngineError:
    """Map a sqlite3 exception onto the chronicle error taxonomy."""
    message = str(e)
    if isinstance(e, sqlite3.OperationalError) and (
        "locked" in message.lower() or "busy" in message.lower()
    ):
        return BusyError(f"Timed out waiting for the database write lock: {message}")
    return EngineError(f"Database error: {message}")


class Engine:
    """Handle on one chronicle database file.

    Open once per process with :meth:`open` and pass the instance to every
    store. Use as a context manager (or call :meth:`close`) to release all
    connections at shutdown.
    """

    def __init__(
        self,
        db_path: Path,
        busy_timeout_ms: int,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.db_path = db_path
        self.busy_timeout_ms = busy_timeout_ms
        self._clock = clock or now_ms
        self._local = threading.local()
        self._connections: Dict[int, Tuple[threading.Thread, sqlite3.Connection]] = {}
        self._lock = threading.Lock()
        self._closed = False

    @classmethod
    def open(
        cls,
        db_path: Optional[Union[str, Path]] = None,
        busy_timeout_ms: Optional[int] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> "Engine":
        """Open (creating if needed) the database and bootstrap its schema.

        Args:
            db_path: Database file; defaults to CHRONICLE_DB_PATH or
                <data dir>/chronicle.db.
            busy_timeout_ms: Maximum write-lock wait; defaults to
                CHRONICLE_BUSY_TIMEOUT_MS or 5000.
            clock: Millisecond clock shared by all stores (tests inject a
                fake one to simulate time).

        Raises:
            EngineError: If the file cannot be opened, WAL cannot be enabled,
                or the schema cannot be created. Never retried.
        """
        engine = cls(resolve_db_path(db_path), resolve_busy_timeout(busy_timeout_ms), clock)
        engine._bootstrap()
        return engine

    def _bootstrap(self) -> None:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise EngineError(f"Cannot create database directory {self.db_path.parent}: {e}") from e

        conn = self._conn()
        try:
            init_db(conn, self.db_path, self.now())
        except sqlite3.Error as e:
            raise EngineError(f"Schema bootstrap failed for {self.db_path}: {e}") from e

    # === Connections ===

    def _new_connection(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(
                str(self.db_path),
                timeout=self.busy_timeout_ms / 1000,
                isolation_level=None,  # transactions are managed explicitly
                check_same_thread=False,  # owned by one thread; closed from any
            )
        except sqlite3.Error as e:
            raise EngineError(f"Cannot open database at {self.db_path}: {e}") from e

        try:
            conn.row_factory = sqlite3.Row
            mode = conn.execute("PRAGMA journal_mode=WAL").fetchone()[0]
            if str(mode).lower() != "wal":
                raise EngineError(
                    f"Database at {self.db_path} refused WAL journaling (mode={mode})"
                )
            conn.execute(f"PRAGMA busy_timeout={int(self.busy_timeout_ms)}")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute("PRAGMA foreign_keys=ON")
        except sqlite3.Error as e:
            conn.close()
            raise EngineError(f"Cannot configure database at {self.db_path}: {e}") from e
        except EngineError:
            conn.close()
            raise
        return conn

    def _conn(self) -> sqlite3.Connection:
        """This thread's connection, created on first use."""
        if self._closed:
            raise EngineError("Engine is closed")
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = self._new_connection()
            thread = threading.current_thread()
            with self._lock:
                stale = self._prune_dead_threads()
                self._connections[thread.ident] = (thread, conn)
            self._close_all(stale)
            self._local.conn = conn
            self._local.depth = 0
            self._local.write = False
        return conn

    def _prune_dead_threads(self) -> List[sqlite3.Connection]:
        """Unregister connections whose owning thread has exited. Caller holds the lock."""
        dead = [
            ident for ident, (thread, _) in self._connections.items() if not thread.is_alive()
        ]
        return [self._connections.pop(ident)[1] for ident in dead]

    def _close_all(self, connections: List[sqlite3.Connection]) -> None:
        for conn in connections:
            try:
                conn.close()
            except sqlite3.Error as e:
                logger.warning(f"Error closing connection: {e}")

    @property
    def open_connections(self) -> int:
        """Connections currently registered, one per live thread that used the engine."""
        with self._lock:
            return len(self._connections)

    def close(self) -> None:
        """Close every connection this engine opened. Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            registered, self._connections = self._connections, {}
        connections = [conn for _, conn in registered.values()]
        self._close_all(connections)
        logger.debug(f"Closed {len(connections)} connection(s) to {self.db_path}")

    def __enter__(self) -> "Engine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def now(self) -> int:
        """Current time in ms from the engine clock."""
        return self._clock()

    # === Transactions ===

    @contextlib.contextmanager
    def _scope(self, write: bool) -> Iterator[sqlite3.Connection]:
        conn = self._conn()
        state = self._local
        depth = state.depth

        try:
            if depth == 0:
                conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
                state.write = write
            else:
                if write and not state.write:
                    raise EngineError("Cannot write inside a read-only transaction")
                conn.execute(f"SAVEPOINT sp_{depth}")
        except sqlite3.Error as e:
            raise translate_sqlite_error(e) from e

        state.depth = depth + 1
        try:
            yield conn
        except BaseException as e:
            state.depth = depth
            self._rollback(conn, depth)
            if isinstance(e, sqlite3.Error):
                raise translate_sqlite_error(e) from e
            raise
        else:
            state.depth = depth
            try:
                conn.execute("COMMIT" if depth == 0 else f"RELEASE sp_{depth}")
            except sqlite3.Error as e:
                self._rollback(conn, depth)
                raise translate_sqlite_error(e) from e

    def _rollback(self, conn: sqlite3.Connection, depth: int) -> None:
        try:
            if depth == 0:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
            else:
                conn.execute(f"ROLLBACK TO sp_{depth}")
                conn.execute(f"RELEASE sp_{depth}")
        except sqlite3.Error as e:
            logger.error(f"Rollback failed at depth {depth}: {e}")
        else:
            logger.debug(f"Transaction rolled back (depth {depth})")

    def transaction(self) -> "contextlib.AbstractContextManager[sqlite3.Connection]":
        """Atomic write scope.

        Commits on normal exit; on any exception rolls back every write made
        inside the scope and re-raises the exception unchanged (sqlite3
        errors are first translated to EngineError/BusyError). Nests.
        """
        return self._scope(write=True)

    def read(self) -> "contextlib.AbstractContextManager[sqlite3.Connection]":
        """Read-only snapshot scope. Never waits on the write lock."""
        return self._scope(write=False)

    def run_in_transaction(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Call ``fn(conn, *args, **kwargs)`` inside :meth:`transaction`."""
        with self.transaction() as conn:
            return fn(conn, *args, **kwargs)

    @property
    def in_transaction(self) -> bool:
        return getattr(self._local, "depth", 0) > 0

    @property
    def in_read_only(self) -> bool:
        """True inside a :meth:`read` scope, where writes are refused."""
        return self.in_transaction and not self._local.write

    # === Maintenance & observability ===

    def health(self) -> Dict[str, Any]:
        """Cheap self-test: WAL on, foreign keys on, write lock obtainable."""
        return check_health(self.read, self.transaction)

    def integrity(self) -> Dict[str, Any]:
        """Cross-table consistency report (orphaned blobs, dangling rows)."""
        with self.read() as conn:
            return check_integrity(conn)

    def stats(self) -> Dict[str, Any]:
        """Read-only counts and sizes across all stores."""
        with self.read() as conn:
            stats = get_stats(conn, self.now())
            stats["schema_version"] = get_schema_version(conn)
        stats["db_path"] = str(self.db_path)
        stats["busy_timeout_ms"] = self.busy_timeout_ms
        wal_path = Path(f"{self.db_path}-wal")
        stats["wal_size"] = wal_path.stat().st_size if wal_path.exists() else 0
        return stats

    def vacuum(self) -> None:
        """Rebuild the database file to reclaim free pages."""
        if self.in_transaction:
            raise EngineError("VACUUM cannot run inside a transaction")
        conn = self._conn()
        try:
            conn.execute("VACUUM")
        except sqlite3.Error as e:
            raise translate_sqlite_error(e) from e
        logger.info(f"Vacuumed {self.db_path}")
