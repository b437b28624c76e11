"""Handlers for entity graph tools: entities, versions, relations."""

from typing import Any, Dict

from chronicle.core import Chronicle
from chronicle.mcp.sanitize import (
    sanitize_optional_string,
    sanitize_string,
    validate_enum,
    validate_limit,
    validate_object,
)
from chronicle.mcp.tool_definitions import VALID_DIRECTIONS

# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------


def _entity(arguments: Dict[str, Any]) -> Dict[str, Any]:
    return {"entity": sanitize_string(arguments.get("entity"), "entity", 500)}


def validate_create_entity(arguments: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": sanitize_string(arguments.get("type"), "type", 100),
        "name": sanitize_string(arguments.get("name"), "name", 500),
        "properties": validate_object(arguments.get("properties"), "properties"),
    }


def validate_list_entities(arguments: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": sanitize_optional_string(arguments.get("type"), "type", 100) or "all",
        "limit": validate_limit(arguments.get("limit"), 1000),
    }


def validate_update_entity(arguments: Dict[str, Any]) -> Dict[str, Any]:
    sanitized = _entity(arguments)
    sanitized["properties"] = validate_object(
        arguments.get("properties"), "properties", required=True
    )
    sanitized["changed_by"] = (
        sanitize_optional_string(arguments.get("changed_by"), "changed_by", 200) or "system"
    )
    sanitized["reason"] = sanitize_optional_string(arguments.get("reason"), "reason", 1000)
    return sanitized


def validate_entity_with_limit(arguments: Dict[str, Any]) -> Dict[str, Any]:
    sanitized = _entity(arguments)
    sanitized["limit"] = validate_limit(arguments.get("limit"), 100)
    return sanitized


def validate_create_relation(arguments: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "from": sanitize_string(arguments.get("from"), "from", 500),
        "relation": sanitize_string(arguments.get("relation"), "relation", 100),
        "to": sanitize_string(arguments.get("to"), "to", 500),
        "properties": validate_object(arguments.get("properties"), "properties"),
    }


def validate_get_entity_relations(arguments: Dict[str, Any]) -> Dict[str, Any]:
    sanitized = _entity(arguments)
    sanitized["direction"] = validate_enum(
        arguments.get("direction"), "direction", VALID_DIRECTIONS, "both"
    )
    sanitized["relation_type"] = sanitize_optional_string(
        arguments.get("relation_type"), "relation_type", 100
    )
    return sanitized


def validate_search_entities(arguments: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "search_term": sanitize_string(arguments.get("search_term"), "search_term", 500),
        "type": sanitize_optional_string(arguments.get("type"), "type", 100),
        "limit": validate_limit(arguments.get("limit"), 100),
    }


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def handle_create_entity(args: Dict[str, Any], c: Chronicle) -> Any:
    return c.entities.create(args["type"], args["name"], args.get("properties"))


def handle_get_entity(args: Dict[str, Any], c: Chronicle) -> Any:
    return c.entities.get(args["entity"])


def handle_list_entities(args: Dict[str, Any], c: Chronicle) -> Any:
    entities = c.entities.list_by_type(args["type"], args.get("limit"))
    return {"entities": entities, "count": len(entities)}


def handle_update_entity(args: Dict[str, Any], c: Chronicle) -> Any:
    return c.entities.update(
        args["entity"], args["properties"], args["changed_by"], args.get("reason")
    )


def handle_delete_entity(args: Dict[str, Any], c: Chronicle) -> Any:
    c.entities.delete(args["entity"])
    return {"deleted": True, "entity": args["entity"]}


def handle_get_entity_versions(args: Dict[str, Any], c: Chronicle) -> Any:
    versions = c.entities.versions(args["entity"], args.get("limit"))
    return {"versions": versions, "count": len(versions)}


def handle_create_relation(args: Dict[str, Any], c: Chronicle) -> Any:
    return c.entities.create_relation(
        args["from"], args["relation"], args["to"], args.get("properties")
    )


def handle_get_entity_relations(args: Dict[str, Any], c: Chronicle) -> Any:
    relations = c.entities.relations(
        args["entity"], args["direction"], args.get("relation_type")
    )
    return {"relations": relations, "count": len(relations)}


def handle_search_entities(args: Dict[str, Any], c: Chronicle) -> Any:
    entities = c.entities.search(args["search_term"], args.get("type"), args.get("limit"))
    return {"entities": entities, "count": len(entities)}


def handle_get_entity_timeline(args: Dict[str, Any], c: Chronicle) -> Any:
    events = c.entities.entity_timeline(args["entity"], args.get("limit"))
    return {"events": events, "count": len(events)}


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

HANDLERS = {
    "create_entity": handle_create_entity,
    "get_entity": handle_get_entity,
    "list_entities": handle_list_entities,
    "update_entity": handle_update_entity,
    "delete_entity": handle_delete_entity,
    "get_entity_versions": handle_get_entity_versions,
    "create_relation": handle_create_relation,
    "get_entity_relations": handle_get_entity_relations,
    "search_entities": handle_search_entities,
    "get_entity_timeline": handle_get_entity_timeline,
}

VALIDATORS = {
    "create_entity": validate_create_entity,
    "get_entity": _entity,
    "list_entities": validate_list_entities,
    "update_entity": validate_update_entity,
    "delete_entity": _entity,
    "get_entity_versions": validate_entity_with_limit,
    "create_relation": validate_create_relation,
    "get_entity_relations": validate_get_entity_relations,
    "search_entities": validate_search_entities,
    "get_entity_timeline": validate_entity_with_limit,
}
