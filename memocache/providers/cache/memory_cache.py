"""In-memory durable cache provider using cachetools.TLRUCache.

Simple, fast cache suitable for development and single-process deployments.
Unlike a uniform ``TTLCache``, ``TLRUCache`` computes an expiry per entry,
so each ``get_or_compute`` call can request its own time-to-live.
"""

from __future__ import annotations

import math
import threading
import time
from typing import Any, Callable, NamedTuple, TypeVar

import structlog
from cachetools import TLRUCache

from memocache.interfaces.durable_cache import IDurableCache
from memocache.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


class _StoredValue(NamedTuple):
    value: Any
    ttl: int | None


def _time_to_use(_key: str, stored: _StoredValue, now: float) -> float:
    if stored.ttl is None:
        return math.inf
    return now + stored.ttl


class MemoryDurableCache(IDurableCache):
    """Per-entry TTL cache backed by ``cachetools.TLRUCache``.

    Parameters
    ----------
    max_size:
        Maximum number of entries before the least-recently-used entry
        is evicted.  Entries stored with ``ttl=None`` never expire but are
        still subject to eviction.
    timer:
        Monotonic clock used for expiry.  Tests inject a fake clock.
    """

    def __init__(
        self,
        max_size: int = 1024,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._cache: TLRUCache[str, _StoredValue] = TLRUCache(
            maxsize=max_size, ttu=_time_to_use, timer=timer
        )
        # Held across compute so concurrent callers for a key compute once.
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # IDurableCache implementation
    # ------------------------------------------------------------------

    def get_or_compute(self, key: str, ttl: int | None, compute: Callable[[], _T]) -> _T:
        """Return the unexpired value for *key*, or compute and store it."""
        with self._lock:
            stored = self._cache.get(key)
            if stored is not None:
                _logger.debug("durable_hit", key=key)
                return stored.value

            _logger.debug("durable_miss", key=key, ttl=ttl)
            value = compute()
            if ttl is None or ttl > 0:
                self._cache[key] = _StoredValue(value, ttl)
            return value

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._cache.clear()
        _logger.debug("durable_cleared", provider=self.get_provider_name())

    def __len__(self) -> int:
        with self._lock:
            self._cache.expire()
            return len(self._cache)

    def get_provider_name(self) -> str:
        return "memory"
