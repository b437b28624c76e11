"""Logging setup for chronicle.

Modules log through ``logging.getLogger(__name__)``; this attaches a dated
file handler to the package logger so a long-running host (MCP server,
scheduler running the expiry sweep) leaves a trail on disk.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from chronicle.utils import get_chronicle_home

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_chronicle_logging(level: int = logging.INFO, log_dir: Optional[Path] = None) -> logging.Logger:
    """Attach a ``local-YYYY-MM-DD.log`` file handler to the ``chronicle`` logger.

    Calling it again does not add a second file handler.

    Args:
        level: Level for the package logger.
        log_dir: Directory for log files (default: <data dir>/logs).

    Returns:
        The ``chronicle`` logger.
    """
    logger = logging.getLogger("chronicle")
    logger.setLevel(level)

    log_dir = log_dir or (get_chronicle_home() / "logs")
    log_dir.mkdir(parents=True, exist_ok=True)
    day = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    log_file = (log_dir / f"local-{day}.log").resolve()

    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler) and Path(handler.baseFilename) == log_file:
            return logger

    handler = logging.FileHandler(log_file, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    return logger
