"""
Chronicle MCP Server - timeline, memory and entity tools for MCP clients.

Exposes the chronicle stores as MCP tools so an agent can record and
recall events, scratchpad values and the people/projects they involve.

Every tool answers with one JSON text block:
- ``{"success": true, "data": ...}`` on success
- ``{"success": false, "error": {"code", "message"}}`` on failure, with
  storage failures reported as "Internal server error"

Usage:
    chronicle mcp  # Start MCP server (stdio transport)
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import (
    TextContent,
    Tool,
)

from chronicle.core import Chronicle, error_envelope, success_envelope
from chronicle.mcp.handlers import HANDLERS, VALIDATORS
from chronicle.mcp.tool_definitions import TOOLS
from chronicle.types import ChronicleError, ValidationError

logger = logging.getLogger(__name__)

# Initialize MCP server
mcp = Server("chronicle")

# Database for this MCP session (None = resolve from environment)
_mcp_db_path: Optional[str] = None


def set_db_path(db_path: Optional[str]) -> None:
    """Set the database for this MCP session."""
    global _mcp_db_path
    _mcp_db_path = db_path
    # Clear cached instance so next get_chronicle opens the new path
    if hasattr(get_chronicle, "_instance"):
        get_chronicle._instance.close()  # type: ignore[attr-defined]
        delattr(get_chronicle, "_instance")


def get_chronicle() -> Chronicle:
    """Get or create the Chronicle instance."""
    if not hasattr(get_chronicle, "_instance"):
        get_chronicle._instance = Chronicle(_mcp_db_path)  # type: ignore[attr-defined]
    return get_chronicle._instance  # type: ignore[attr-defined]


def _render(envelope: Dict[str, Any]) -> List[TextContent]:
    return [TextContent(type="text", text=json.dumps(envelope, indent=2, default=str))]


# =============================================================================
# INPUT VALIDATION & SANITIZATION
# =============================================================================


def validate_tool_input(name: str, arguments: Dict[str, Any]) -> Dict[str, Any]:
    """Validate and sanitize MCP tool inputs.

    Raises:
        ValidationError: Unknown tool or invalid arguments.
    """
    try:
        if not isinstance(name, str):
            raise ValueError(f"tool name must be a string, got {type(name).__name__}")
        if not name:
            raise ValueError("tool name must not be empty")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise ValueError(f"arguments must be an object, got {type(arguments).__name__}")

        validator = VALIDATORS.get(name)
        if validator is None:
            raise ValueError(f"Unknown tool: {name}")
        return validator(arguments)

    except (ValueError, TypeError) as e:
        logger.warning(f"Input validation failed for tool {name}: {e}")
        raise ValidationError(f"Invalid input: {str(e)}") from e


def handle_tool_error(e: Exception, tool_name: str, arguments: Dict[str, Any]) -> List[TextContent]:
    """Handle tool errors securely."""
    if isinstance(e, ChronicleError) and e.code in ("VALIDATION_ERROR", "CONFLICT", "NOT_FOUND"):
        logger.warning(f"Tool {tool_name} failed ({e.code}): {e}")
        return _render(error_envelope(e))

    if isinstance(e, ValueError):
        # Raised by a validator helper outside validate_tool_input
        logger.warning(f"Invalid input for tool {tool_name}: {e}")
        return _render(error_envelope(ValidationError(f"Invalid input: {str(e)}")))

    # Engine or unknown error - log full details but return generic message
    argument_keys = list(arguments.keys()) if isinstance(arguments, dict) else []
    logger.error(
        f"Internal error in tool {tool_name}",
        extra={
            "tool_name": tool_name,
            "arguments_keys": argument_keys,
            "error_type": type(e).__name__,
            "error_message": str(e),
        },
        exc_info=True,
    )
    return _render(error_envelope(e))


def dispatch(name: str, arguments: Dict[str, Any], c: Optional[Chronicle] = None) -> List[TextContent]:
    """Validate, run and render one tool call."""
    try:
        sanitized_args = validate_tool_input(name, arguments)
        handler = HANDLERS.get(name)
        if handler is None:
            # Should not reach here due to validation, but handle gracefully
            logger.error(f"Unexpected tool name after validation: {name}")
            raise ValidationError(f"Tool '{name}' is not available")
        result = handler(sanitized_args, c or get_chronicle())
        return _render(success_envelope(result))
    except Exception as e:
        return handle_tool_error(e, name, arguments)


# =============================================================================
# MCP PROTOCOL HANDLERS
# =============================================================================


@mcp.list_tools()
async def list_tools() -> list[Tool]:
    """List available chronicle tools."""
    return list(TOOLS)


@mcp.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Handle tool calls with comprehensive validation and error handling."""
    return dispatch(name, arguments)


async def run_server():
    """Run the MCP server."""
    async with stdio_server() as (read_stream, write_stream):
        await mcp.run(
            read_stream,
            write_stream,
            mcp.create_initialization_options(),
        )


def main(db_path: Optional[str] = None):
    """Entry point for MCP server.

    Database resolution (in order):
    1. Explicit db_path argument
    2. CHRONICLE_DB_PATH environment variable
    3. <CHRONICLE_DATA_DIR or ~/.chronicle>/chronicle.db
    """
    set_db_path(db_path)
    try:
        asyncio.run(run_server())
    finally:
        if hasattr(get_chronicle, "_instance"):
            get_chronicle._instance.close()  # type: ignore[attr-defined]
            delattr(get_chronicle, "_instance")


if __name__ == "__main__":
    main()
