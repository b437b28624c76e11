"""CLI command modules for Chronicle.

Each module contains related command handlers; __main__.py only parses
arguments and dispatches.
"""

from chronicle.cli.commands.entity import cmd_entity
from chronicle.cli.commands.maintenance import (
    cmd_health,
    cmd_integrity,
    cmd_stats,
    cmd_sweep,
    cmd_vacuum,
)
from chronicle.cli.commands.memory import cmd_memory
from chronicle.cli.commands.timeline import (
    cmd_activity,
    cmd_day,
    cmd_range,
    cmd_summary,
    cmd_types,
)

__all__ = [
    "cmd_activity",
    "cmd_day",
    "cmd_entity",
    "cmd_health",
    "cmd_integrity",
    "cmd_memory",
    "cmd_range",
    "cmd_stats",
    "cmd_summary",
    "cmd_sweep",
    "cmd_types",
    "cmd_vacuum",
]
