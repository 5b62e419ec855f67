"""Game session storage abstraction layer.

Configuration:
    SESSION_STORE_BACKEND=memory (default)
"""

import logging
import os

from mismatched.storage.backend import SessionBackend
from mismatched.storage.memory import InMemorySessionBackend

logger = logging.getLogger(__name__)

__all__ = ["SessionBackend", "InMemorySessionBackend", "create_backend"]


def create_backend() -> SessionBackend:
    """Create a session backend based on environment configuration.

    Only the in-memory backend ships today; unknown values fall back to it
    with a warning so a misconfigured deployment still starts.
    """
    backend_type = os.getenv("SESSION_STORE_BACKEND", "memory").lower().strip()

    if backend_type != "memory":
        logger.warning("Unknown SESSION_STORE_BACKEND=%s, using memory", backend_type)

    return InMemorySessionBackend()
