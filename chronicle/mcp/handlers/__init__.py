"""Handler registry for MCP tools.

Merges HANDLERS and VALIDATORS from all sub-modules into unified dicts.
"""

from typing import Callable, Dict

from chronicle.mcp.handlers.entity import HANDLERS as _ENTITY_H
from chronicle.mcp.handlers.entity import VALIDATORS as _ENTITY_V
from chronicle.mcp.handlers.memory import HANDLERS as _MEMORY_H
from chronicle.mcp.handlers.memory import VALIDATORS as _MEMORY_V
from chronicle.mcp.handlers.timeline import HANDLERS as _TIMELINE_H
from chronicle.mcp.handlers.timeline import VALIDATORS as _TIMELINE_V

HANDLERS: Dict[str, Callable] = {
    **_TIMELINE_H,
    **_MEMORY_H,
    **_ENTITY_H,
}

VALIDATORS: Dict[str, Callable] = {
    **_TIMELINE_V,
    **_MEMORY_V,
    **_ENTITY_V,
}
