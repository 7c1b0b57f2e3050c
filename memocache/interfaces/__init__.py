"""Public interface definitions for the engine's collaborators.

    Interface        →  Concrete implementations (in memocache/providers/)
    ─────────────────────────────────────────────────────────────────────
    IDurableCache    →  MemoryDurableCache, SQLiteDurableCache
    IErrorReporter   →  StructlogErrorReporter
"""

from memocache.interfaces.durable_cache import IDurableCache
from memocache.interfaces.error_reporter import ErrorContext, IErrorReporter

__all__ = [
    "ErrorContext",
    "IDurableCache",
    "IErrorReporter",
]
