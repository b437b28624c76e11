"""Handlers for timeline tools: events, details, summaries."""

from typing import Any, Dict

from chronicle.core import Chronicle
from chronicle.mcp.sanitize import (
    sanitize_optional_string,
    sanitize_string,
    validate_date,
    validate_enum,
    validate_limit,
    validate_object,
    validate_timestamp,
)
from chronicle.mcp.tool_definitions import VALID_GRANULARITIES

UPDATABLE_FIELDS = ("title", "metadata", "namespace", "timestamp")

# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------


def _event_id(arguments: Dict[str, Any]) -> Dict[str, Any]:
    return {"event_id": sanitize_string(arguments.get("event_id"), "event_id", 200)}


def validate_store_timeline_event(arguments: Dict[str, Any]) -> Dict[str, Any]:
    sanitized: Dict[str, Any] = {}
    sanitized["timestamp"] = validate_timestamp(arguments.get("timestamp"))
    sanitized["type"] = sanitize_string(arguments.get("type"), "type", 100)
    sanitized["title"] = sanitize_optional_string(arguments.get("title"), "title", 1000)
    sanitized["metadata"] = validate_object(arguments.get("metadata"), "metadata")
    sanitized["namespace"] = sanitize_optional_string(arguments.get("namespace"), "namespace", 200)
    return sanitized


def validate_get_timeline(arguments: Dict[str, Any]) -> Dict[str, Any]:
    sanitized: Dict[str, Any] = {}
    sanitized["date"] = validate_date(arguments.get("date"))
    sanitized["type"] = sanitize_optional_string(arguments.get("type"), "type", 100)
    sanitized["limit"] = validate_limit(arguments.get("limit"), 1000)
    return sanitized


def validate_expand_event(arguments: Dict[str, Any]) -> Dict[str, Any]:
    sanitized = _event_id(arguments)
    sanitized["full_data"] = validate_object(arguments.get("full_data"), "full_data", required=True)
    return sanitized


def validate_get_timeline_range(arguments: Dict[str, Any]) -> Dict[str, Any]:
    sanitized: Dict[str, Any] = {}
    sanitized["start_date"] = validate_date(arguments.get("start_date"), "start_date")
    sanitized["end_date"] = validate_date(arguments.get("end_date"), "end_date")
    sanitized["type"] = sanitize_optional_string(arguments.get("type"), "type", 100)
    sanitized["limit"] = validate_limit(arguments.get("limit"), 10000)
    return sanitized


def validate_update_event(arguments: Dict[str, Any]) -> Dict[str, Any]:
    sanitized = _event_id(arguments)
    updates = validate_object(arguments.get("updates"), "updates", required=True)
    unknown = sorted(set(updates) - set(UPDATABLE_FIELDS))
    if unknown:
        raise ValueError(f"updates has unknown field(s): {', '.join(unknown)}")

    changes: Dict[str, Any] = {}
    if "title" in updates:
        changes["title"] = sanitize_optional_string(updates["title"], "title", 1000)
    if "metadata" in updates:
        changes["metadata"] = validate_object(updates["metadata"], "metadata")
    if "namespace" in updates:
        changes["namespace"] = sanitize_optional_string(updates["namespace"], "namespace", 200)
    if "timestamp" in updates:
        changes["timestamp"] = validate_timestamp(updates["timestamp"])
    sanitized["updates"] = changes
    return sanitized


def validate_get_timeline_summary(arguments: Dict[str, Any]) -> Dict[str, Any]:
    return {"date": validate_date(arguments.get("date"))}


def validate_no_args(arguments: Dict[str, Any]) -> Dict[str, Any]:
    return {}


def validate_get_activity(arguments: Dict[str, Any]) -> Dict[str, Any]:
    sanitized: Dict[str, Any] = {}
    sanitized["start_date"] = validate_date(arguments.get("start_date"), "start_date")
    sanitized["end_date"] = validate_date(arguments.get("end_date"), "end_date")
    sanitized["granularity"] = validate_enum(
        arguments.get("granularity"), "granularity", VALID_GRANULARITIES, "day"
    )
    sanitized["type"] = sanitize_optional_string(arguments.get("type"), "type", 100)
    return sanitized


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def handle_store_timeline_event(args: Dict[str, Any], c: Chronicle) -> Any:
    event_id = c.events.store(
        args["type"],
        args["timestamp"],
        title=args.get("title"),
        metadata=args.get("metadata"),
        namespace=args.get("namespace"),
    )
    return {"event_id": event_id}


def handle_get_timeline(args: Dict[str, Any], c: Chronicle) -> Any:
    result = c.events.query_by_date(args["date"], args.get("type"), args.get("limit"))
    return {"date": args["date"], **result.to_dict()}


def handle_get_event(args: Dict[str, Any], c: Chronicle) -> Any:
    found = c.details.get_event_with_detail(args["event_id"])
    data = found["event"].to_dict()
    if "detail" in found:
        data["full_data"] = found["detail"]
    return data


def handle_expand_event(args: Dict[str, Any], c: Chronicle) -> Any:
    return c.details.expand(args["event_id"], args["full_data"])


def handle_get_timeline_range(args: Dict[str, Any], c: Chronicle) -> Any:
    result = c.events.query_range(
        args["start_date"], args["end_date"], args.get("type"), args.get("limit")
    )
    return {"start_date": args["start_date"], "end_date": args["end_date"], **result.to_dict()}


def handle_delete_event(args: Dict[str, Any], c: Chronicle) -> Any:
    c.events.delete(args["event_id"])
    return {"deleted": True, "event_id": args["event_id"]}


def handle_update_event(args: Dict[str, Any], c: Chronicle) -> Any:
    return c.events.update(args["event_id"], args["updates"])


def handle_get_timeline_summary(args: Dict[str, Any], c: Chronicle) -> Any:
    return c.events.summary(args["date"])


def handle_get_event_types(args: Dict[str, Any], c: Chronicle) -> Any:
    counts = c.events.event_type_counts()
    return {"types": [{"type": t, "count": n} for t, n in counts.items()]}


def handle_get_activity(args: Dict[str, Any], c: Chronicle) -> Any:
    periods = c.events.activity(
        args["start_date"], args["end_date"], args["granularity"], args.get("type")
    )
    return {"granularity": args["granularity"], "periods": periods}


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

HANDLERS = {
    "store_timeline_event": handle_store_timeline_event,
    "get_timeline": handle_get_timeline,
    "get_event": handle_get_event,
    "expand_event": handle_expand_event,
    "get_timeline_range": handle_get_timeline_range,
    "delete_event": handle_delete_event,
    "update_event": handle_update_event,
    "get_timeline_summary": handle_get_timeline_summary,
    "get_event_types": handle_get_event_types,
    "get_activity": handle_get_activity,
}

VALIDATORS = {
    "store_timeline_event": validate_store_timeline_event,
    "get_timeline": validate_get_timeline,
    "get_event": _event_id,
    "expand_event": validate_expand_event,
    "get_timeline_range": validate_get_timeline_range,
    "delete_event": _event_id,
    "update_event": validate_update_event,
    "get_timeline_summary": validate_get_timeline_summary,
    "get_event_types": validate_no_args,
    "get_activity": validate_get_activity,
}
