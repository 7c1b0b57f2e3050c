"""memocache: compute once, serve from cache afterwards.

Public surface::

    from memocache import EPHEMERAL, MemoizationEngine, memoize

    engine = MemoizationEngine()
    value = engine.cache(lambda: expensive(x))        # transient tier
    value = engine.cache(lambda: expensive(x), ttl=60)  # durable tier, if configured
"""

from memocache.engine import (
    EPHEMERAL,
    MemoizationEngine,
    TransientEntry,
    derive_key,
    memoize,
)
from memocache.interfaces import ErrorContext, IDurableCache, IErrorReporter

__all__ = [
    "EPHEMERAL",
    "ErrorContext",
    "IDurableCache",
    "IErrorReporter",
    "MemoizationEngine",
    "TransientEntry",
    "derive_key",
    "memoize",
]
