"""Shared sanitization utilities for MCP layer.

These functions provide input validation and sanitization
for all MCP tools to ensure consistent security handling.
They raise ``ValueError``; the server reports it as a validation error.
"""

import math
import re
from typing import Any, Dict, List, Optional

from chronicle.storage.validation import MAX_QUERY_LIMIT

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def sanitize_string(
    value: Any, field_name: str, max_length: int = 1000, required: bool = True
) -> str:
    """Sanitize and validate string inputs.

    Args:
        value: The value to sanitize.
        field_name: Name of the field for error messages.
        max_length: Maximum allowed string length.
        required: If True, empty strings are rejected.

    Returns:
        Sanitized string ("" when not required and missing).

    Raises:
        ValueError: If validation fails.
    """
    if value is None and not required:
        return ""

    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string, got {type(value).__name__}")

    if required and not value.strip():
        raise ValueError(f"{field_name} cannot be empty")

    if len(value) > max_length:
        raise ValueError(f"{field_name} too long (max {max_length} characters, got {len(value)})")

    # Remove null bytes and control characters except newlines and tabs
    return re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", value)


def sanitize_optional_string(value: Any, field_name: str, max_length: int = 1000) -> Optional[str]:
    """Like sanitize_string but maps missing/empty to None."""
    return sanitize_string(value, field_name, max_length, required=False) or None


def validate_enum(
    value: Any,
    field_name: str,
    valid_values: List[str],
    default: Optional[str] = None,
    required: bool = False,
) -> str:
    """Validate enum values.

    Raises:
        ValueError: If validation fails
    """
    if value is None:
        if required:
            raise ValueError(f"{field_name} is required")
        if default is not None:
            return default
        raise ValueError(f"{field_name} is required")

    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")

    if value not in valid_values:
        raise ValueError(f"{field_name} must be one of {valid_values}, got '{value}'")

    return value


def validate_number(
    value: Any,
    field_name: str,
    min_val: Optional[float] = None,
    max_val: Optional[float] = None,
    default: Optional[float] = None,
) -> float:
    """Validate numeric values, rejecting booleans, NaN and Infinity.

    Raises:
        ValueError: If validation fails
    """
    if value is None:
        if default is not None:
            return default
        raise ValueError(f"{field_name} is required")

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{field_name} must be a number, got {type(value).__name__}")

    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        raise ValueError(f"{field_name} must be a finite number, got {value}")

    if min_val is not None and value < min_val:
        raise ValueError(f"{field_name} must be >= {min_val}, got {value}")

    if max_val is not None and value > max_val:
        raise ValueError(f"{field_name} must be <= {max_val}, got {value}")

    return float(value)


def validate_limit(value: Any, default: int, max_val: int = MAX_QUERY_LIMIT) -> int:
    return int(validate_number(value, "limit", 1, max_val, default))


def validate_date(value: Any, field_name: str = "date") -> str:
    if not isinstance(value, str) or not _DATE_RE.match(value):
        raise ValueError(f"{field_name} must be in YYYY-MM-DD format")
    return value


def validate_object(value: Any, field_name: str, required: bool = False) -> Optional[Dict[str, Any]]:
    if value is None:
        if required:
            raise ValueError(f"{field_name} is required")
        return None
    if not isinstance(value, dict):
        raise ValueError(f"{field_name} must be an object, got {type(value).__name__}")
    return value


def validate_timestamp(value: Any, field_name: str = "timestamp") -> Any:
    """Milliseconds since epoch or a date/time string; parsing happens in the store."""
    if value is None:
        raise ValueError(f"{field_name} is required")
    if isinstance(value, str):
        return sanitize_string(value, field_name, 100)
    validate_number(value, field_name)
    return int(value)
