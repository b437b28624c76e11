"""Key/value memory commands for Chronicle CLI."""

import json
import sys
from typing import TYPE_CHECKING

from chronicle.cli.commands.helpers import fmt_ms, parse_value, print_json, validate_input

if TYPE_CHECKING:
    from chronicle import Chronicle


def cmd_memory(args, c: "Chronicle"):
    """Handle memory subcommands."""
    if args.memory_action == "get":
        memory = c.memories.get(validate_input(args.key, "key", 500))
        if args.json:
            print_json(memory)
        else:
            value = memory.value
            print(value if isinstance(value, str) else json.dumps(value, indent=2))
    elif args.memory_action == "set":
        key = validate_input(args.key, "key", 500)
        namespace = validate_input(args.namespace, "namespace", 200) if args.namespace else None
        memory = c.memories.set(key, parse_value(args.value), namespace, args.ttl)
        expiry = f" (expires {fmt_ms(memory.expires_at)})" if memory.expires_at else ""
        print(f"✓ Stored {key}{expiry}")
    elif args.memory_action == "list":
        memories = c.memories.list(args.namespace, args.pattern)
        if args.json:
            print_json(memories)
            return
        if not memories:
            print("No memories found.")
        for m in memories:
            ns = f"[{m.namespace}] " if m.namespace else ""
            expiry = f"  (expires {fmt_ms(m.expires_at)})" if m.expires_at else ""
            print(f"  {ns}{m.key} = {json.dumps(m.value)[:60]}{expiry}")
    elif args.memory_action == "delete":
        if c.memories.delete(validate_input(args.key, "key", 500)):
            print(f"✓ Deleted {args.key}")
        else:
            print(f"Memory {args.key} not found")
            sys.exit(1)
