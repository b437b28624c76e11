"""Configuration and path resolution for chronicle.

Values come from environment variables; explicit arguments always win.
"""

import logging
import os
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_BUSY_TIMEOUT_MS = 5000
MAX_BUSY_TIMEOUT_MS = 60000


def get_chronicle_home() -> Path:
    """Data directory: CHRONICLE_DATA_DIR, or ~/.chronicle."""
    env_dir = os.environ.get("CHRONICLE_DATA_DIR")
    if env_dir:
        return Path(env_dir).expanduser()
    return Path.home() / ".chronicle"


def resolve_db_path(db_path: Optional[Union[str, Path]] = None) -> Path:
    """Resolve the database file path.

    Resolution order:
    1. Explicit db_path argument
    2. CHRONICLE_DB_PATH environment variable
    3. <data dir>/chronicle.db
    """
    if db_path is not None:
        return Path(db_path).expanduser()
    env_path = os.environ.get("CHRONICLE_DB_PATH")
    if env_path:
        return Path(env_path).expanduser()
    return get_chronicle_home() / "chronicle.db"


def resolve_busy_timeout(busy_timeout_ms: Optional[int] = None) -> int:
    """Resolve the write-lock wait in milliseconds, clamped to 1..60000."""
    if busy_timeout_ms is None:
        raw = os.environ.get("CHRONICLE_BUSY_TIMEOUT_MS")
        if raw:
            try:
                busy_timeout_ms = int(raw)
            except ValueError:
                logger.warning(
                    f"Ignoring non-integer CHRONICLE_BUSY_TIMEOUT_MS={raw!r}, "
                    f"using {DEFAULT_BUSY_TIMEOUT_MS}"
                )
                busy_timeout_ms = DEFAULT_BUSY_TIMEOUT_MS
        else:
            busy_timeout_ms = DEFAULT_BUSY_TIMEOUT_MS
    return max(1, min(int(busy_timeout_ms), MAX_BUSY_TIMEOUT_MS))
