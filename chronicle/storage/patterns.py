"""LIKE pattern construction.

Every caller-supplied string that reaches a LIKE goes through here first.
Patterns built by these helpers must be used with ``ESCAPE '\\'``.
"""

LIKE_ESCAPE = "\\"


def escape_like_pattern(pattern: str) -> str:
    """Escape LIKE pattern special characters to prevent pattern injection."""
    return pattern.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def contains_pattern(term: str) -> str:
    """LIKE pattern matching ``term`` as a literal substring."""
    return f"%{escape_like_pattern(term)}%"


def glob_to_like(pattern: str) -> str:
    """Translate a glob (``*`` any run, ``?`` one char) into a LIKE pattern.

    Literal ``%``, ``_`` and backslashes in the glob are escaped first, so
    only the glob wildcards act as wildcards.
    """
    return escape_like_pattern(pattern).replace("*", "%").replace("?", "_")
