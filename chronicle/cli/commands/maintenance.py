"""Statistics, health and housekeeping commands for Chronicle CLI."""

import sys
from typing import TYPE_CHECKING

from chronicle.cli.commands.helpers import print_json

if TYPE_CHECKING:
    from chronicle import Chronicle


def cmd_stats(args, c: "Chronicle"):
    """Show database statistics."""
    stats = c.stats()
    if args.json:
        print_json(stats)
        return

    print(f"Database: {stats['db_path']} ({stats['db_size']:,} bytes, WAL {stats['wal_size']:,})")
    print(f"Schema version: {stats['schema_version']}  journal: {stats['journal_mode']}")
    print("")
    print(f"Events:          {stats['events']}")
    print(f"Details:         {stats['details']}")
    print(f"Entities:        {stats['entities']}")
    print(f"Entity versions: {stats['entity_versions']}")
    print(f"Relations:       {stats['relations']}")
    print(f"Memories:        {stats['memories']} ({stats['expired_memories']} expired)")
    if stats["event_types"]:
        print("")
        print("Event types:")
        for event_type, count in stats["event_types"].items():
            print(f"  {event_type}: {count}")


def cmd_health(args, c: "Chronicle"):
    """Run the storage self-test."""
    health = c.health()
    if args.json:
        print_json(health)
    else:
        icon = {"healthy": "✓", "degraded": "⚠", "unhealthy": "✗"}[health["status"]]
        print(f"{icon} {health['status']}")
        for name, ok in health["checks"].items():
            print(f"  {'✓' if ok else '✗'} {name}")
        if health.get("error"):
            print(f"  error: {health['error']}")
    if health["status"] != "healthy":
        sys.exit(1)


def cmd_integrity(args, c: "Chronicle"):
    """Check cross-table consistency."""
    report = c.integrity()
    if args.json:
        print_json(report)
    else:
        for key in ("orphaned_details", "dangling_versions", "dangling_relations", "version_gaps"):
            print(f"  {key}: {report[key]}")
        print("✓ consistent" if report["healthy"] else "✗ inconsistent")
    if not report["healthy"]:
        sys.exit(1)


def cmd_sweep(args, c: "Chronicle"):
    """Delete expired memories."""
    deleted = c.memories.sweep_expired()
    print(f"✓ Removed {deleted} expired memories")


def cmd_vacuum(args, c: "Chronicle"):
    """Compact the database file."""
    before = c.engine.stats()["db_size"]
    c.vacuum()
    after = c.engine.stats()["db_size"]
    print(f"✓ Vacuumed: {before:,} → {after:,} bytes")
