"""Utility modules for memocache.

- **errors** -- Exception hierarchy rooted at MemoCacheError.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
"""

from memocache.utils.errors import (
    ConfigurationError,
    DurableCacheError,
    KeyDerivationError,
    MemoCacheError,
)
from memocache.utils.logging import configure_logging, get_logger

__all__ = [
    "ConfigurationError",
    "DurableCacheError",
    "KeyDerivationError",
    "MemoCacheError",
    "configure_logging",
    "get_logger",
]
