"""
Chronicle CLI - Command-line interface for the memory database.

Usage:
    chronicle stats [--json]
    chronicle health [--json]
    chronicle integrity [--json]
    chronicle sweep
    chronicle vacuum
    chronicle day DATE [--type T] [--limit N] [--json]
    chronicle range START END [--type T] [--limit N] [--json]
    chronicle summary DATE [--json]
    chronicle types [--json]
    chronicle activity START END [--granularity day|week|month] [--json]
    chronicle memory get KEY [--json]
    chronicle memory set KEY VALUE [--namespace NS] [--ttl SECONDS]
    chronicle memory list [--namespace NS] [--pattern GLOB] [--json]
    chronicle memory delete KEY
    chronicle entity get NAME [--json]
    chronicle entity list [--type T] [--limit N] [--json]
    chronicle entity search TERM [--type T] [--limit N] [--json]
    chronicle mcp

Global options:
    --db PATH   Database file (default: CHRONICLE_DB_PATH or ~/.chronicle/chronicle.db)
"""

import argparse
import logging
import sys
from typing import List, Optional

from chronicle import Chronicle
from chronicle.cli.commands import (
    cmd_activity,
    cmd_day,
    cmd_entity,
    cmd_health,
    cmd_integrity,
    cmd_memory,
    cmd_range,
    cmd_stats,
    cmd_summary,
    cmd_sweep,
    cmd_types,
    cmd_vacuum,
)
from chronicle.cli.commands.helpers import validate_input
from chronicle.types import VALID_GRANULARITY_VALUES, ChronicleError

# Set up logging
logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)


def cmd_mcp(args):
    """Start MCP server."""
    from chronicle.mcp.server import main as mcp_main

    mcp_main(db_path=args.db)


# =============================================================================
# PARSER
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chronicle",
        description="Personal memory store: timeline, entities and scratchpad",
    )
    parser.add_argument("--db", help="Database file", default=None)

    subparsers = parser.add_subparsers(dest="command", required=True)

    p_stats = subparsers.add_parser("stats", help="Show database statistics")
    p_stats.add_argument("--json", "-j", action="store_true")

    p_health = subparsers.add_parser("health", help="Run the storage self-test")
    p_health.add_argument("--json", "-j", action="store_true")

    p_integrity = subparsers.add_parser("integrity", help="Check cross-table consistency")
    p_integrity.add_argument("--json", "-j", action="store_true")

    subparsers.add_parser("sweep", help="Delete expired memories")
    subparsers.add_parser("vacuum", help="Compact the database file")

    p_day = subparsers.add_parser("day", help="Show events for a date")
    p_day.add_argument("date", help="YYYY-MM-DD (UTC)")
    p_day.add_argument("--type", "-t", help="Filter by event type")
    p_day.add_argument("--limit", "-l", type=int, default=1000)
    p_day.add_argument("--json", "-j", action="store_true")

    p_range = subparsers.add_parser("range", help="Show events across a date range")
    p_range.add_argument("start", help="Start date YYYY-MM-DD")
    p_range.add_argument("end", help="End date YYYY-MM-DD (inclusive)")
    p_range.add_argument("--type", "-t", help="Filter by event type")
    p_range.add_argument("--limit", "-l", type=int, default=10000)
    p_range.add_argument("--json", "-j", action="store_true")

    p_summary = subparsers.add_parser("summary", help="Event counts for a date")
    p_summary.add_argument("date", help="YYYY-MM-DD (UTC)")
    p_summary.add_argument("--json", "-j", action="store_true")

    p_types = subparsers.add_parser("types", help="All event types with counts")
    p_types.add_argument("--json", "-j", action="store_true")

    p_activity = subparsers.add_parser("activity", help="Event counts per period")
    p_activity.add_argument("start", help="Start date YYYY-MM-DD")
    p_activity.add_argument("end", help="End date YYYY-MM-DD (inclusive)")
    p_activity.add_argument(
        "--granularity", "-g", choices=sorted(VALID_GRANULARITY_VALUES), default="day"
    )
    p_activity.add_argument("--type", "-t", help="Filter by event type")
    p_activity.add_argument("--json", "-j", action="store_true")

    # memory
    p_memory = subparsers.add_parser("memory", help="Key/value memory operations")
    mem_sub = p_memory.add_subparsers(dest="memory_action", required=True)

    mem_get = mem_sub.add_parser("get", help="Get a memory")
    mem_get.add_argument("key")
    mem_get.add_argument("--json", "-j", action="store_true")

    mem_set = mem_sub.add_parser("set", help="Store a memory")
    mem_set.add_argument("key")
    mem_set.add_argument("value", help="JSON value (plain text is stored as a string)")
    mem_set.add_argument("--namespace", "-n", help="Namespace")
    mem_set.add_argument("--ttl", type=float, help="Expire after this many seconds")

    mem_list = mem_sub.add_parser("list", help="List memories")
    mem_list.add_argument("--namespace", "-n", help="Filter by namespace")
    mem_list.add_argument("--pattern", "-p", help="Key glob (* and ?)")
    mem_list.add_argument("--json", "-j", action="store_true")

    mem_delete = mem_sub.add_parser("delete", help="Delete a memory")
    mem_delete.add_argument("key")

    # entity
    p_entity = subparsers.add_parser("entity", help="Entity graph operations")
    ent_sub = p_entity.add_subparsers(dest="entity_action", required=True)

    ent_get = ent_sub.add_parser("get", help="Show an entity and its relations")
    ent_get.add_argument("name", help="Entity name or ID")
    ent_get.add_argument("--json", "-j", action="store_true")

    ent_list = ent_sub.add_parser("list", help="List entities")
    ent_list.add_argument("--type", "-t", help="Entity type (default: all)")
    ent_list.add_argument("--limit", "-l", type=int, default=1000)
    ent_list.add_argument("--json", "-j", action="store_true")

    ent_search = ent_sub.add_parser("search", help="Search entities by name or properties")
    ent_search.add_argument("term")
    ent_search.add_argument("--type", "-t", help="Filter by entity type")
    ent_search.add_argument("--limit", "-l", type=int, default=100)
    ent_search.add_argument("--json", "-j", action="store_true")

    subparsers.add_parser("mcp", help="Start MCP server (stdio transport)")

    return parser


COMMANDS = {
    "stats": cmd_stats,
    "health": cmd_health,
    "integrity": cmd_integrity,
    "sweep": cmd_sweep,
    "vacuum": cmd_vacuum,
    "day": cmd_day,
    "range": cmd_range,
    "summary": cmd_summary,
    "types": cmd_types,
    "activity": cmd_activity,
    "memory": cmd_memory,
    "entity": cmd_entity,
}


def main(argv: Optional[List[str]] = None):
    args = build_parser().parse_args(argv)

    if args.command == "mcp":
        cmd_mcp(args)
        return

    # Open the database with error handling
    try:
        c = Chronicle(db_path=validate_input(args.db, "db", 4096) if args.db else None)
    except (ChronicleError, ValueError) as e:
        logger.error(f"Failed to open chronicle database: {e}")
        sys.exit(1)

    # Dispatch with error handling
    try:
        COMMANDS[args.command](args, c)
    except (ValueError, TypeError) as e:
        logger.error(f"Input validation error: {e}")
        sys.exit(1)
    except ChronicleError as e:
        logger.error(f"Command failed: {e}")
        sys.exit(1)
    finally:
        c.close()


if __name__ == "__main__":
    main()
