"""Aggregate counts across the chronicle tables.

Read-only; used for dashboards and the CLI ``stats`` command.
"""

import logging
import sqlite3
from typing import Any, Dict

from .schema import validate_table_name

logger = logging.getLogger(__name__)


def get_stats(conn: sqlite3.Connection, now: int) -> Dict[str, Any]:
    """Get counts of each record type plus database size.

    Args:
        conn: Open sqlite3 connection.
        now: Current time in ms (for counting expired memories).

    Returns:
        Dict mapping record type names to their counts, plus
        ``expired_memories``, ``journal_mode`` and ``db_size`` in bytes.
    """
    stats: Dict[str, Any] = {}
    for table, key in [
        ("timeline_events", "events"),
        ("full_details", "details"),
        ("memories", "memories"),
        ("entities", "entities"),
        ("entity_versions", "entity_versions"),
        ("relations", "relations"),
    ]:
        validate_table_name(table)
        stats[key] = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    stats["expired_memories"] = conn.execute(
        "SELECT COUNT(*) FROM memories WHERE expires_at IS NOT NULL AND expires_at <= ?",
        (now,),
    ).fetchone()[0]

    stats["journal_mode"] = conn.execute("PRAGMA journal_mode").fetchone()[0]
    page_count = conn.execute("PRAGMA page_count").fetchone()[0]
    page_size = conn.execute("PRAGMA page_size").fetchone()[0]
    stats["db_size"] = page_count * page_size
    return stats
