"""Entity graph commands for Chronicle CLI."""

from typing import TYPE_CHECKING

from chronicle.cli.commands.helpers import fmt_ms, print_json, validate_input

if TYPE_CHECKING:
    from chronicle import Chronicle


def cmd_entity(args, c: "Chronicle"):
    """Handle entity subcommands."""
    if args.entity_action == "get":
        entity = c.entities.get(validate_input(args.name, "name", 500))
        if args.json:
            print_json({"entity": entity, "relations": c.entities.relations(entity.id)})
            return
        print(f"{entity.name} ({entity.type})")
        print(f"  id: {entity.id}")
        print(f"  updated: {fmt_ms(entity.updated_at)}")
        for key, value in entity.properties.items():
            print(f"  {key}: {value}")
        for r in c.entities.relations(entity.id):
            arrow = f"-[{r.relation_type}]->"
            print(f"  {r.from_entity_name} {arrow} {r.to_entity_name}")
    elif args.entity_action in ("list", "search"):
        if args.entity_action == "list":
            entities = c.entities.list_by_type(args.type or "all", args.limit)
        else:
            entities = c.entities.search(
                validate_input(args.term, "term", 500), args.type, args.limit
            )
        if args.json:
            print_json(entities)
            return
        if not entities:
            print("No entities found.")
        for e in entities:
            print(f"  [{e.type}] {e.name}")
