"""Handlers for key/value memory tools."""

from typing import Any, Dict, Optional

from chronicle.core import Chronicle
from chronicle.mcp.sanitize import (
    sanitize_optional_string,
    sanitize_string,
    validate_limit,
    validate_number,
)
from chronicle.types import MemoryInput

MAX_BULK_MEMORIES = 1000

# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------


def _key(arguments: Dict[str, Any]) -> Dict[str, Any]:
    return {"key": sanitize_string(arguments.get("key"), "key", 500)}


def _ttl(value: Any, field_name: str = "ttl") -> Optional[float]:
    if value is None:
        return None
    return validate_number(value, field_name, 0)


def validate_store_memory(arguments: Dict[str, Any]) -> Dict[str, Any]:
    sanitized = _key(arguments)
    if "value" not in arguments:
        raise ValueError("value is required")
    sanitized["value"] = arguments["value"]
    sanitized["namespace"] = sanitize_optional_string(arguments.get("namespace"), "namespace", 200)
    sanitized["ttl"] = _ttl(arguments.get("ttl"))
    return sanitized


def validate_list_memories(arguments: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "namespace": sanitize_optional_string(arguments.get("namespace"), "namespace", 200),
        "pattern": sanitize_optional_string(arguments.get("pattern"), "pattern", 500),
    }


def validate_search_memories(arguments: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "search_term": sanitize_string(arguments.get("search_term"), "search_term", 500),
        "namespace": sanitize_optional_string(arguments.get("namespace"), "namespace", 200),
        "limit": validate_limit(arguments.get("limit"), 100),
    }


def validate_bulk_store_memories(arguments: Dict[str, Any]) -> Dict[str, Any]:
    memories = arguments.get("memories")
    if not isinstance(memories, list):
        raise ValueError("memories must be an array")
    if len(memories) > MAX_BULK_MEMORIES:
        raise ValueError(f"memories too many items (max {MAX_BULK_MEMORIES}, got {len(memories)})")

    entries = []
    for i, item in enumerate(memories):
        if not isinstance(item, dict):
            raise ValueError(f"memories[{i}] must be an object")
        try:
            entry = validate_store_memory(item)
        except ValueError as e:
            raise ValueError(f"memories[{i}]: {e}") from e
        entries.append(entry)
    return {"memories": entries}


def validate_bulk_delete_memories(arguments: Dict[str, Any]) -> Dict[str, Any]:
    return {"pattern": sanitize_string(arguments.get("pattern"), "pattern", 500)}


def validate_update_memory_ttl(arguments: Dict[str, Any]) -> Dict[str, Any]:
    sanitized = _key(arguments)
    sanitized["ttl"] = _ttl(arguments.get("ttl"))
    return sanitized


def validate_no_args(arguments: Dict[str, Any]) -> Dict[str, Any]:
    return {}


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def handle_store_memory(args: Dict[str, Any], c: Chronicle) -> Any:
    memory = c.memories.set(args["key"], args["value"], args.get("namespace"), args.get("ttl"))
    return {"stored": True, "key": memory.key, "expires_at": memory.expires_at}


def handle_retrieve_memory(args: Dict[str, Any], c: Chronicle) -> Any:
    return c.memories.get(args["key"])


def handle_delete_memory(args: Dict[str, Any], c: Chronicle) -> Any:
    return {"deleted": c.memories.delete(args["key"]), "key": args["key"]}


def handle_list_memories(args: Dict[str, Any], c: Chronicle) -> Any:
    memories = c.memories.list(args.get("namespace"), args.get("pattern"))
    return {"memories": memories, "count": len(memories)}


def handle_search_memories(args: Dict[str, Any], c: Chronicle) -> Any:
    memories = c.memories.search(args["search_term"], args.get("namespace"), args.get("limit"))
    return {"memories": memories, "count": len(memories)}


def handle_bulk_store_memories(args: Dict[str, Any], c: Chronicle) -> Any:
    entries = [
        MemoryInput(
            key=m["key"], value=m["value"], namespace=m.get("namespace"), ttl_seconds=m.get("ttl")
        )
        for m in args["memories"]
    ]
    return {"stored": c.memories.bulk_set(entries)}


def handle_bulk_delete_memories(args: Dict[str, Any], c: Chronicle) -> Any:
    return {"deleted": c.memories.bulk_delete(args["pattern"])}


def handle_has_memory(args: Dict[str, Any], c: Chronicle) -> Any:
    return {"exists": c.memories.exists(args["key"]), "key": args["key"]}


def handle_update_memory_ttl(args: Dict[str, Any], c: Chronicle) -> Any:
    return {"updated": c.memories.update_ttl(args["key"], args.get("ttl")), "key": args["key"]}


def handle_get_memory_stats(args: Dict[str, Any], c: Chronicle) -> Any:
    return c.memories.stats()


def handle_clean_expired_memories(args: Dict[str, Any], c: Chronicle) -> Any:
    return {"deleted": c.memories.sweep_expired()}


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

HANDLERS = {
    "store_memory": handle_store_memory,
    "retrieve_memory": handle_retrieve_memory,
    "delete_memory": handle_delete_memory,
    "list_memories": handle_list_memories,
    "search_memories": handle_search_memories,
    "bulk_store_memories": handle_bulk_store_memories,
    "bulk_delete_memories": handle_bulk_delete_memories,
    "has_memory": handle_has_memory,
    "update_memory_ttl": handle_update_memory_ttl,
    "get_memory_stats": handle_get_memory_stats,
    "clean_expired_memories": handle_clean_expired_memories,
}

VALIDATORS = {
    "store_memory": validate_store_memory,
    "retrieve_memory": _key,
    "delete_memory": _key,
    "list_memories": validate_list_memories,
    "search_memories": validate_search_memories,
    "bulk_store_memories": validate_bulk_store_memories,
    "bulk_delete_memories": validate_bulk_delete_memories,
    "has_memory": _key,
    "update_memory_ttl": validate_update_memory_ttl,
    "get_memory_stats": validate_no_args,
    "clean_expired_memories": validate_no_args,
}
