"""Input checks shared by the stores.

Every store validates caller input at its own boundary and raises
``ValidationError``; the MCP and CLI layers validate again before calling in.
"""

from typing import Any, Dict, Optional

from chronicle.types import ValidationError

MAX_QUERY_LIMIT = 10000


def require_text(value: Any, field_name: str) -> str:
    """A non-blank string, returned unchanged."""
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} is required")
    if not value.strip():
        raise ValidationError(f"{field_name} cannot be empty")
    return value


def optional_text(value: Any, field_name: str) -> Optional[str]:
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string, got {type(value).__name__}")
    return value


def validate_limit(limit: Any, default: int, maximum: int = MAX_QUERY_LIMIT) -> int:
    """Positive integer limit; ``None`` means ``default``, larger values clamp to ``maximum``."""
    if limit is None:
        return default
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise ValidationError("limit must be an integer")
    if limit < 1:
        raise ValidationError(f"limit must be >= 1, got {limit}")
    return min(limit, maximum)


def validate_properties(value: Any, field_name: str = "properties") -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValidationError(f"{field_name} must be an object, got {type(value).__name__}")
    return value
