"""Shared helper functions for CLI commands."""

import json
import re
from datetime import datetime, timezone
from typing import Any, List, Optional

from chronicle.core import to_jsonable
from chronicle.types import TimelineEvent


def validate_input(value: str, field_name: str, max_length: int = 1000) -> str:
    """Validate and sanitize CLI inputs."""
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")

    if len(value) > max_length:
        raise ValueError(f"{field_name} too long (max {max_length} characters)")

    # Remove null bytes and control characters except newlines
    sanitized = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", value)

    return sanitized


def print_json(data: Any) -> None:
    """Print data as formatted JSON."""
    print(json.dumps(to_jsonable(data), indent=2, default=str))


def parse_value(raw: str) -> Any:
    """JSON if it parses, otherwise the literal string."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def fmt_ms(ms: Optional[int]) -> str:
    if ms is None:
        return "never"
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def print_events(events: List[TimelineEvent]) -> None:
    for e in events:
        time = datetime.fromtimestamp(e.timestamp / 1000, tz=timezone.utc).strftime("%H:%M")
        detail = " [+detail]" if e.detail_key else ""
        print(f"  {e.date} {time}  [{e.type}] {e.title or '(untitled)'}{detail}")
        print(f"      id: {e.id}")
