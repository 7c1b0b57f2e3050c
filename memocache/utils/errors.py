"""Custom exception hierarchy for memocache.

All package exceptions inherit from :class:`MemoCacheError`, which carries
an optional ``provider_name`` so error reports can identify which adapter
(e.g. "memory", "sqlite") caused the failure.

    MemoCacheError  (base -- catch-all for any memocache error)
    +-- KeyDerivationError   (closure introspection or serialisation failed)
    +-- DurableCacheError    (durable backend lookup/store failed)
    +-- ConfigurationError   (invalid settings at startup)

Errors raised by a memoized computation itself are never wrapped in this
hierarchy; they reach the caller unchanged.
"""


class MemoCacheError(Exception):
    """Base exception for all memocache errors.

    The ``__str__`` method prefixes the provider name in brackets for
    structured log output, e.g. ``[sqlite] database is locked``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


class KeyDerivationError(MemoCacheError):
    """Raised when a cache key cannot be derived from a computation."""

    def __init__(
        self,
        message: str = "Could not derive a cache key from the computation",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DurableCacheError(MemoCacheError):
    """Raised when the durable cache backend fails to read or store an entry.

    The engine catches every backend failure (not only this class) and falls
    back to running the computation uncached; adapters raise this to attach
    their provider name to the report.
    """

    def __init__(
        self,
        message: str = "Durable cache operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(MemoCacheError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
