"""MCP tool schema definitions for chronicle.

Each Tool() defines the name, description, and JSON Schema for one MCP tool.
Validators and handlers live in chronicle.mcp.handlers.
"""

from mcp.types import Tool

from chronicle.types import VALID_DIRECTION_VALUES, VALID_GRANULARITY_VALUES

VALID_DIRECTIONS = sorted(VALID_DIRECTION_VALUES)
VALID_GRANULARITIES = sorted(VALID_GRANULARITY_VALUES)

_TIMESTAMP = {
    "type": ["integer", "string"],
    "description": "Unix timestamp in milliseconds or ISO 8601 string",
}
_DATE = {"type": "string", "description": "Date in YYYY-MM-DD format (UTC)"}
_EVENT_ID = {"type": "string", "description": "Event ID"}
_ENTITY = {"type": "string", "description": "Entity name or ID"}
_NAMESPACE = {"type": "string", "description": "Optional namespace for organizing records"}
_TTL = {
    "type": "number",
    "description": "Time-to-live in seconds (optional; omit for no expiry)",
    "minimum": 0,
}


def _limit(default: int, maximum: int = 10000) -> dict:
    return {
        "type": "integer",
        "description": f"Maximum number of results (default: {default})",
        "default": default,
        "minimum": 1,
        "maximum": maximum,
    }


def _no_args() -> dict:
    return {"type": "object", "properties": {}}


TIMELINE_TOOLS = [
    Tool(
        name="store_timeline_event",
        description="Store a new timeline event (e.g. JIRA ticket, Spotify play, calendar event, journal entry). Events are indexed by timestamp and date for efficient querying.",
        inputSchema={
            "type": "object",
            "properties": {
                "timestamp": _TIMESTAMP,
                "type": {
                    "type": "string",
                    "description": "Event type (e.g. jira_ticket, spotify_play, calendar_event)",
                },
                "title": {"type": "string", "description": "Human-readable title/summary"},
                "metadata": {
                    "type": "object",
                    "description": "Lightweight metadata stored inline (max 64 KiB)",
                },
                "namespace": _NAMESPACE,
            },
            "required": ["timestamp", "type"],
        },
    ),
    Tool(
        name="get_timeline",
        description="Get all timeline events for a specific date. Returns events sorted by timestamp with stats by type.",
        inputSchema={
            "type": "object",
            "properties": {
                "date": _DATE,
                "type": {"type": "string", "description": "Filter by event type"},
                "limit": _limit(1000),
            },
            "required": ["date"],
        },
    ),
    Tool(
        name="get_event",
        description="Retrieve a single timeline event by its ID, with its full details when the event has been expanded.",
        inputSchema={
            "type": "object",
            "properties": {"event_id": _EVENT_ID},
            "required": ["event_id"],
        },
    ),
    Tool(
        name="expand_event",
        description="Store full event data (large payload) and link it to a timeline event. This enables lazy-loading of detailed information.",
        inputSchema={
            "type": "object",
            "properties": {
                "event_id": _EVENT_ID,
                "full_data": {"type": "object", "description": "Full event data to store"},
            },
            "required": ["event_id", "full_data"],
        },
    ),
    Tool(
        name="get_timeline_range",
        description="Get timeline events across a date range (inclusive). Useful for weekly/monthly summaries.",
        inputSchema={
            "type": "object",
            "properties": {
                "start_date": _DATE,
                "end_date": _DATE,
                "type": {"type": "string", "description": "Filter by event type"},
                "limit": _limit(10000),
            },
            "required": ["start_date", "end_date"],
        },
    ),
    Tool(
        name="delete_event",
        description="Delete a timeline event and its associated full details.",
        inputSchema={
            "type": "object",
            "properties": {"event_id": _EVENT_ID},
            "required": ["event_id"],
        },
    ),
    Tool(
        name="update_event",
        description="Update fields of an existing timeline event (title, metadata, namespace, timestamp).",
        inputSchema={
            "type": "object",
            "properties": {
                "event_id": _EVENT_ID,
                "updates": {
                    "type": "object",
                    "description": "Fields to update",
                    "properties": {
                        "title": {"type": "string"},
                        "metadata": {"type": "object"},
                        "namespace": {"type": "string"},
                        "timestamp": _TIMESTAMP,
                    },
                    "additionalProperties": False,
                },
            },
            "required": ["event_id", "updates"],
        },
    ),
    Tool(
        name="get_timeline_summary",
        description="Get timeline summary statistics for a specific date (event counts by type) without loading full event data.",
        inputSchema={
            "type": "object",
            "properties": {"date": _DATE},
            "required": ["date"],
        },
    ),
    Tool(
        name="get_event_types",
        description="Get a list of all event types across the entire timeline with their counts.",
        inputSchema=_no_args(),
    ),
    Tool(
        name="get_activity",
        description="Count events per day, week or month across a date range.",
        inputSchema={
            "type": "object",
            "properties": {
                "start_date": _DATE,
                "end_date": _DATE,
                "granularity": {
                    "type": "string",
                    "enum": VALID_GRANULARITIES,
                    "description": "Period size (default: day)",
                    "default": "day",
                },
                "type": {"type": "string", "description": "Filter by event type"},
            },
            "required": ["start_date", "end_date"],
        },
    ),
]

MEMORY_TOOLS = [
    Tool(
        name="store_memory",
        description="Store a key/value memory, optionally expiring after a TTL. Storing an existing key replaces it.",
        inputSchema={
            "type": "object",
            "properties": {
                "key": {"type": "string", "description": "Unique memory key"},
                "value": {"description": "Value to store (any JSON-serializable data)"},
                "namespace": _NAMESPACE,
                "ttl": _TTL,
            },
            "required": ["key", "value"],
        },
    ),
    Tool(
        name="retrieve_memory",
        description="Retrieve a memory by key. Expired memories are reported as not found.",
        inputSchema={
            "type": "object",
            "properties": {"key": {"type": "string", "description": "Memory key to retrieve"}},
            "required": ["key"],
        },
    ),
    Tool(
        name="delete_memory",
        description="Delete a memory by key.",
        inputSchema={
            "type": "object",
            "properties": {"key": {"type": "string", "description": "Memory key to delete"}},
            "required": ["key"],
        },
    ),
    Tool(
        name="list_memories",
        description="List live memories, optionally filtered by namespace and key pattern.",
        inputSchema={
            "type": "object",
            "properties": {
                "namespace": {"type": "string", "description": "Filter by namespace"},
                "pattern": {
                    "type": "string",
                    "description": "Filter by key pattern (* matches any run, ? one character)",
                },
            },
        },
    ),
    Tool(
        name="search_memories",
        description="Search live memories whose value contains the given text.",
        inputSchema={
            "type": "object",
            "properties": {
                "search_term": {
                    "type": "string",
                    "description": "Text to search for in memory values",
                },
                "namespace": {"type": "string", "description": "Filter by namespace"},
                "limit": _limit(100),
            },
            "required": ["search_term"],
        },
    ),
    Tool(
        name="bulk_store_memories",
        description="Store several memories at once. Either all are stored or none are.",
        inputSchema={
            "type": "object",
            "properties": {
                "memories": {
                    "type": "array",
                    "description": "Array of memories to store",
                    "items": {
                        "type": "object",
                        "properties": {
                            "key": {"type": "string"},
                            "value": {},
                            "namespace": {"type": "string"},
                            "ttl": _TTL,
                        },
                        "required": ["key", "value"],
                    },
                },
            },
            "required": ["memories"],
        },
    ),
    Tool(
        name="bulk_delete_memories",
        description="Delete every memory whose key matches a pattern (* and ? wildcards).",
        inputSchema={
            "type": "object",
            "properties": {
                "pattern": {"type": "string", "description": "Pattern for keys to delete"},
            },
            "required": ["pattern"],
        },
    ),
    Tool(
        name="has_memory",
        description="Check whether a live memory exists for a key.",
        inputSchema={
            "type": "object",
            "properties": {"key": {"type": "string", "description": "Memory key to check"}},
            "required": ["key"],
        },
    ),
    Tool(
        name="update_memory_ttl",
        description="Change a memory's TTL. Pass null to remove the expiration.",
        inputSchema={
            "type": "object",
            "properties": {
                "key": {"type": "string", "description": "Memory key to update"},
                "ttl": {
                    "type": ["integer", "null"],
                    "description": "New TTL in seconds (null to remove expiration)",
                    "minimum": 0,
                },
            },
            "required": ["key", "ttl"],
        },
    ),
    Tool(
        name="get_memory_stats",
        description="Count live memories per namespace and memories awaiting expiry cleanup.",
        inputSchema=_no_args(),
    ),
    Tool(
        name="clean_expired_memories",
        description="Delete all expired memories and report how many were removed.",
        inputSchema=_no_args(),
    ),
]

ENTITY_TOOLS = [
    Tool(
        name="create_entity",
        description="Create a named entity (person, project, artist, ...). Names are unique across all types.",
        inputSchema={
            "type": "object",
            "properties": {
                "type": {"type": "string", "description": "Entity type (e.g. person, project)"},
                "name": {"type": "string", "description": "Unique entity name"},
                "properties": {"type": "object", "description": "Entity properties"},
            },
            "required": ["type", "name"],
        },
    ),
    Tool(
        name="get_entity",
        description="Get an entity by name or ID.",
        inputSchema={
            "type": "object",
            "properties": {"entity": _ENTITY},
            "required": ["entity"],
        },
    ),
    Tool(
        name="list_entities",
        description="List entities of a type ('all' for every type), ordered by name.",
        inputSchema={
            "type": "object",
            "properties": {
                "type": {
                    "type": "string",
                    "description": "Entity type, or 'all' (default: all)",
                    "default": "all",
                },
                "limit": _limit(1000),
            },
        },
    ),
    Tool(
        name="update_entity",
        description="Replace an entity's properties. Pass the full desired set; every update is recorded as a new version.",
        inputSchema={
            "type": "object",
            "properties": {
                "entity": _ENTITY,
                "properties": {"type": "object", "description": "Complete new properties"},
                "changed_by": {
                    "type": "string",
                    "description": "Who made the change (default: system)",
                },
                "reason": {"type": "string", "description": "Why the change was made"},
            },
            "required": ["entity", "properties"],
        },
    ),
    Tool(
        name="delete_entity",
        description="Delete an entity together with its version history and relations.",
        inputSchema={
            "type": "object",
            "properties": {"entity": _ENTITY},
            "required": ["entity"],
        },
    ),
    Tool(
        name="get_entity_versions",
        description="Get an entity's property history, newest first.",
        inputSchema={
            "type": "object",
            "properties": {"entity": _ENTITY, "limit": _limit(100)},
            "required": ["entity"],
        },
    ),
    Tool(
        name="create_relation",
        description="Create a directed relation between two entities (e.g. Ada works_on Lang).",
        inputSchema={
            "type": "object",
            "properties": {
                "from": {"type": "string", "description": "Source entity name or ID"},
                "relation": {"type": "string", "description": "Relation type"},
                "to": {"type": "string", "description": "Target entity name or ID"},
                "properties": {"type": "object", "description": "Relation properties"},
            },
            "required": ["from", "relation", "to"],
        },
    ),
    Tool(
        name="get_entity_relations",
        description="Get relations touching an entity. Each result says which side the entity is on.",
        inputSchema={
            "type": "object",
            "properties": {
                "entity": _ENTITY,
                "direction": {
                    "type": "string",
                    "enum": VALID_DIRECTIONS,
                    "description": "from, to or both (default: both)",
                    "default": "both",
                },
                "relation_type": {"type": "string", "description": "Filter by relation type"},
            },
            "required": ["entity"],
        },
    ),
    Tool(
        name="search_entities",
        description="Search entities whose name or properties contain the given text.",
        inputSchema={
            "type": "object",
            "properties": {
                "search_term": {"type": "string", "description": "Text to search for"},
                "type": {"type": "string", "description": "Filter by entity type"},
                "limit": _limit(100),
            },
            "required": ["search_term"],
        },
    ),
    Tool(
        name="get_entity_timeline",
        description="Get timeline events whose metadata mentions an entity, newest first.",
        inputSchema={
            "type": "object",
            "properties": {"entity": _ENTITY, "limit": _limit(100)},
            "required": ["entity"],
        },
    ),
]

TOOLS = TIMELINE_TOOLS + MEMORY_TOOLS + ENTITY_TOOLS
