"""
Chronicle - personal memory store for AI agents.

Timeline events, lazily-loaded details, a versioned entity graph and an
expiring key/value scratchpad in one SQLite file.
"""

from .core import Chronicle, error_envelope, success_envelope
from .storage import Engine

try:
    from importlib.metadata import version

    __version__ = version("chronicle-memory")
except Exception:
    __version__ = "0.0.0"

__all__ = ["Chronicle", "Engine", "error_envelope", "success_envelope"]
