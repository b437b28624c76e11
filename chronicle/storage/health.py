"""Health and consistency checks for chronicle storage.

Free functions over engine scopes or an open connection. Nothing here
mutates state: the write probe opens and commits an empty transaction.
"""

import logging
import sqlite3
from typing import Any, Callable, Dict

from chronicle.types import ChronicleError

logger = logging.getLogger(__name__)


def check_health(read_scope: Callable, write_scope: Callable) -> Dict[str, Any]:
    """Self-test the durability and integrity settings.

    Args:
        read_scope: Engine.read (context manager factory).
        write_scope: Engine.transaction (context manager factory).

    Returns:
        Dict with:
        - status: "healthy", "degraded" (connected but a check failed) or
          "unhealthy" (no connection)
        - checks: connection, durable_mode_on, fk_on, writable
        - error: message of the first failure, when there is one
    """
    checks = {
        "connection": False,
        "durable_mode_on": False,
        "fk_on": False,
        "writable": False,
    }
    error = None

    try:
        with read_scope() as conn:
            checks["connection"] = True
            mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
            checks["durable_mode_on"] = str(mode).lower() == "wal"
            checks["fk_on"] = conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
    except ChronicleError as e:
        error = str(e)

    if checks["connection"]:
        try:
            with write_scope():
                pass
            checks["writable"] = True
        except ChronicleError as e:
            error = str(e)

    if all(checks.values()):
        status = "healthy"
    elif checks["connection"]:
        status = "degraded"
    else:
        status = "unhealthy"

    if status != "healthy":
        logger.warning(f"Health check {status}: checks={checks} error={error}")

    result: Dict[str, Any] = {"status": status, "checks": checks, **checks}
    if error:
        result["error"] = error
    return result


def check_integrity(conn: sqlite3.Connection) -> Dict[str, Any]:
    """Check cross-table consistency.

    Orphaned detail blobs are allowed but reported. Dangling versions or
    relations mean foreign-key enforcement was bypassed.

    Returns:
        Dict with:
        - orphaned_details: blobs no event references
        - dangling_versions: versions whose entity is missing
        - dangling_relations: relations with a missing endpoint
        - version_gaps: entities whose versions are not exactly 1..N
        - healthy: True if nothing dangles and no gaps exist
    """
    orphaned_details = conn.execute(
        """SELECT COUNT(*) FROM full_details d
           WHERE NOT EXISTS (
               SELECT 1 FROM timeline_events e WHERE e.detail_key = d.key
           )"""
    ).fetchone()[0]

    dangling_versions = conn.execute(
        """SELECT COUNT(*) FROM entity_versions v
           WHERE NOT EXISTS (SELECT 1 FROM entities e WHERE e.id = v.entity_id)"""
    ).fetchone()[0]

    dangling_relations = conn.execute(
        """SELECT COUNT(*) FROM relations r
           WHERE NOT EXISTS (SELECT 1 FROM entities e WHERE e.id = r.from_entity_id)
              OR NOT EXISTS (SELECT 1 FROM entities e WHERE e.id = r.to_entity_id)"""
    ).fetchone()[0]

    version_gaps = conn.execute(
        """SELECT COUNT(*) FROM (
               SELECT entity_id FROM entity_versions
               GROUP BY entity_id
               HAVING MIN(version) != 1 OR MAX(version) != COUNT(*)
           )"""
    ).fetchone()[0]

    healthy = dangling_versions == 0 and dangling_relations == 0 and version_gaps == 0
    if not healthy:
        logger.warning(
            f"Integrity check failed: dangling_versions={dangling_versions} "
            f"dangling_relations={dangling_relations} version_gaps={version_gaps}"
        )

    return {
        "orphaned_details": orphaned_details,
        "dangling_versions": dangling_versions,
        "dangling_relations": dangling_relations,
        "version_gaps": version_gaps,
        "healthy": healthy,
    }
