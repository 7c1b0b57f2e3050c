"""Durable cache providers.

MemoryDurableCache is a dict-based per-entry TTL cache: fast but not shared
across processes.  SQLiteDurableCache persists entries to disk so they
survive restarts.  Either can be swapped for a Redis adapter implementing
IDurableCache without changing the engine.
"""

from memocache.providers.cache.memory_cache import MemoryDurableCache
from memocache.providers.cache.sqlite_cache import SQLiteDurableCache

__all__ = ["MemoryDurableCache", "SQLiteDurableCache"]
