"""Abstract base class for durable cache providers.

Defines the contract the memoization engine uses for its persistent tier.
Implementations may store entries in process memory, SQLite, Redis, or any
other backend that can honour a per-entry time-to-live.  The engine only
ever talks to this interface, so the backend can be swapped without
touching the caching logic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, TypeVar

_T = TypeVar("_T")


class IDurableCache(ABC):
    """Contract for expiring get-or-compute caches.

    Calls are synchronous.  Any exception raised by the backend itself is
    treated by the engine as a cache failure; exceptions raised by
    ``compute`` must propagate unchanged.
    """

    @abstractmethod
    def get_or_compute(self, key: str, ttl: int | None, compute: Callable[[], _T]) -> _T:
        """Return the value cached under *key*, computing it on a miss.

        Parameters
        ----------
        key:
            The cache key.
        ttl:
            Lifetime in seconds of an entry stored by this call.  ``None``
            stores it without expiry; zero or less returns the result
            without storing it.
        compute:
            Zero-argument callable invoked on a miss or expired entry.  Its
            result is stored with an expiration of *ttl* seconds from now.

        Returns
        -------
        The cached or freshly computed value.
        """

    @abstractmethod
    def clear(self) -> None:
        """Remove every entry from the cache."""

    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""
        return type(self).__name__
