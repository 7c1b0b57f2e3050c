"""Memoization engine: run a computation once per identity, serve it after.

The engine keeps two tiers:

* **Transient** -- a process-local mapping of key → :class:`TransientEntry`.
  Used when the caller passes ``ttl=EPHEMERAL`` (the default) or when no
  durable cache is configured.  Entries never expire; each retrieval bumps
  the entry's hit counter.
* **Durable** -- an injected :class:`IDurableCache` asked to
  ``get_or_compute(key, ttl, computation)``.  If the backend fails, the
  failure is reported and the computation runs uncached, so a broken cache
  never breaks the caller.

Keys are either supplied by the caller or derived from the values the
computation closes over (see :func:`derive_key`).  Errors raised by the
computation itself always reach the caller unchanged.

Typical use::

    engine = MemoizationEngine(durable_cache=MemoryDurableCache())
    rates = engine.cache(lambda: fetch_rates(currency), ttl=300)
"""

from __future__ import annotations

import datetime
import decimal
import hashlib
import pickle
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Generic, Iterable, TypeVar

import structlog

from memocache.interfaces.durable_cache import IDurableCache
from memocache.interfaces.error_reporter import ErrorContext, IErrorReporter
from memocache.utils.errors import KeyDerivationError
from memocache.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


class _Ephemeral:
    """Sentinel type for "no durable persistence requested"."""

    _instance: ClassVar[_Ephemeral | None] = None

    def __new__(cls) -> _Ephemeral:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "EPHEMERAL"

    def __reduce__(self) -> str:
        return "EPHEMERAL"


EPHEMERAL = _Ephemeral()

# ``None`` asks the durable tier to keep the entry without expiry.
Ttl = int | None | _Ephemeral

_SCALAR_TYPES = (
    type(None),
    bool,
    int,
    float,
    complex,
    str,
    bytes,
    decimal.Decimal,
    datetime.date,
    datetime.time,
    datetime.timedelta,
)

_PICKLE_PROTOCOL = 4
_KEY_DIGEST_SIZE = 16


@dataclass
class TransientEntry(Generic[_T]):
    """A value held by the transient tier and how often it was served.

    ``pinned`` keeps alive any captured object whose identity is part of the
    entry's key, so its address cannot be handed to another object.
    """

    value: _T
    hit_count: int = 0
    pinned: tuple[Any, ...] = field(default=(), repr=False, compare=False)


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------


def _sort_key(item: Any) -> bytes:
    return pickle.dumps(item, protocol=_PICKLE_PROTOCOL)


def _canonical(value: Any) -> Any:
    """Rebuild built-in containers so equal contents pickle to equal bytes."""
    if isinstance(value, _SCALAR_TYPES):
        return value
    if type(value) in (tuple, list):
        return (type(value).__name__, tuple(_canonical(item) for item in value))
    if type(value) is dict:
        pairs = [(_canonical(k), _canonical(v)) for k, v in value.items()]
        return ("dict", tuple(sorted(pairs, key=_sort_key)))
    if type(value) in (set, frozenset):
        items = [_canonical(item) for item in value]
        return (type(value).__name__, tuple(sorted(items, key=_sort_key)))
    return value


def _encode(value: Any) -> bytes:
    return pickle.dumps(_canonical(value), protocol=_PICKLE_PROTOCOL)


def _captured_values(computation: Callable[..., Any]) -> list[tuple[str, Any]]:
    """Return ``(name, value)`` pairs for everything *computation* closes over."""
    code = getattr(computation, "__code__", None)
    if code is None:
        raise KeyDerivationError(
            f"{type(computation).__name__!r} object exposes no code to introspect"
        )

    cells = getattr(computation, "__closure__", None) or ()
    captured: list[tuple[str, Any]] = []
    for name, cell in zip(code.co_freevars, cells):
        try:
            captured.append((name, cell.cell_contents))
        except ValueError:
            # Free variable not yet bound in the enclosing scope.
            captured.append((name, None))

    bound_self = getattr(computation, "__self__", None)
    if bound_self is not None:
        captured.append(("self", bound_self))
    return captured


def _identity(computation: Callable[..., Any]) -> tuple[str, str]:
    return (
        getattr(computation, "__module__", None) or "",
        getattr(computation, "__qualname__", None) or type(computation).__qualname__,
    )


def _derive(
    computation: Callable[..., Any],
    inputs: Iterable[Any] | None,
    pin_unserialisable: bool,
) -> tuple[str, tuple[Any, ...]]:
    """Return the key for *computation* and the objects it was keyed by identity.

    Values are keyed by their pickled content.  A value that cannot be
    pickled raises :class:`KeyDerivationError`, unless *pin_unserialisable*
    is set, in which case it is keyed by identity and returned for the
    caller to keep alive.
    """
    if inputs is not None:
        try:
            named = [(str(index), value) for index, value in enumerate(inputs)]
        except TypeError as exc:
            raise KeyDerivationError(f"inputs are not iterable: {exc}") from exc
        tag = "inputs"
    else:
        named = _captured_values(computation)
        tag = "closure"

    parts: list[tuple[str, Any]] = []
    pinned: list[Any] = []
    for name, value in named:
        try:
            parts.append((name, _encode(value)))
        except Exception as exc:
            if not pin_unserialisable:
                raise KeyDerivationError(
                    f"captured value {name!r} could not be serialised: {exc}"
                ) from exc
            parts.append((name, ("ref", type(value).__module__, type(value).__qualname__, id(value))))
            pinned.append(value)

    payload = pickle.dumps((_identity(computation), tag, tuple(parts)), protocol=_PICKLE_PROTOCOL)
    return hashlib.blake2b(payload, digest_size=_KEY_DIGEST_SIZE).hexdigest(), tuple(pinned)


def derive_key(
    computation: Callable[..., Any],
    inputs: Iterable[Any] | None = None,
) -> str:
    """Hash a computation's bound inputs into a cache key.

    When *inputs* is given those values are hashed and the computation is not
    introspected; otherwise its captured free variables are used.  Values are
    hashed by content, so the key is stable across processes.  Raises
    :class:`KeyDerivationError` when a value cannot be serialised or the
    computation cannot be introspected.
    """
    key, _ = _derive(computation, inputs, pin_unserialisable=False)
    return key


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _raised_by(exc: BaseException, computation: Callable[..., Any]) -> bool:
    """Return True if *computation*'s own frame is in *exc*'s traceback."""
    code = getattr(computation, "__code__", None)
    if code is None:
        return False
    tb = exc.__traceback__
    while tb is not None:
        if tb.tb_frame.f_code is code:
            return True
        tb = tb.tb_next
    return False


@dataclass
class _KeyLock:
    lock: threading.RLock = field(default_factory=threading.RLock)
    waiters: int = 0


class MemoizationEngine:
    """Two-tier memoization of zero-argument computations.

    Parameters
    ----------
    durable_cache:
        Optional persistent tier.  Without it every call uses the transient
        tier regardless of ``ttl``.
    error_reporter:
        Optional sink for caching failures the engine recovered from.
    """

    _instance: ClassVar[MemoizationEngine | None] = None
    _instance_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(
        self,
        durable_cache: IDurableCache | None = None,
        error_reporter: IErrorReporter | None = None,
    ) -> None:
        self._durable_cache = durable_cache
        self._error_reporter = error_reporter
        self._transient: dict[str, TransientEntry[Any]] = {}
        self._lock = threading.RLock()
        self._key_locks: dict[str, _KeyLock] = {}

    # ------------------------------------------------------------------
    # Process-wide instance
    # ------------------------------------------------------------------

    @classmethod
    def instance(cls) -> MemoizationEngine:
        """Return the process-wide engine, creating a default one on first use.

        This is process-global mutable state.  Prefer constructing an engine
        and passing it to the code that needs it; this accessor exists for
        call sites that cannot take one.
        """
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    @classmethod
    def install(cls, engine: MemoizationEngine) -> MemoizationEngine:
        """Make *engine* the process-wide instance and return it."""
        with cls._instance_lock:
            cls._instance = engine
        return engine

    @classmethod
    def reset_instance(cls) -> None:
        """Forget the process-wide instance; the next access builds a new one."""
        with cls._instance_lock:
            cls._instance = None

    # ------------------------------------------------------------------
    # Caching
    # ------------------------------------------------------------------

    def cache(
        self,
        computation: Callable[[], _T],
        key: str | None = None,
        ttl: Ttl = EPHEMERAL,
        *,
        inputs: Iterable[Any] | None = None,
    ) -> _T:
        """Return the memoized result of *computation*.

        Parameters
        ----------
        computation:
            Zero-argument callable producing the result.
        key:
            Explicit cache key.  Derived from *inputs* or from the
            computation's captured variables when omitted.
        ttl:
            Seconds to keep the result in the durable tier, ``None`` to keep
            it without expiry, or :data:`EPHEMERAL` to use the transient tier.
        inputs:
            Values identifying the computation, hashed instead of
            introspecting its closure.
        """
        durable_cache = self._durable_cache
        transient = ttl is EPHEMERAL or durable_cache is None

        pinned: tuple[Any, ...] = ()
        if key is None:
            # Identity keys die with the process, so only the transient tier takes them.
            derived = self._derive_or_report(computation, inputs, pin_unserialisable=transient)
            if derived is None:
                return computation()
            key, pinned = derived

        if transient:
            return self._cache_transient(key, computation, pinned)
        return self._cache_durable(durable_cache, key, ttl, computation)

    def derive_key(
        self,
        computation: Callable[..., Any],
        inputs: Iterable[Any] | None = None,
    ) -> str | None:
        """Derive a content key for *computation*, or ``None`` if it must not be cached."""
        derived = self._derive_or_report(computation, inputs, pin_unserialisable=False)
        return derived[0] if derived is not None else None

    def _derive_or_report(
        self,
        computation: Callable[..., Any],
        inputs: Iterable[Any] | None,
        pin_unserialisable: bool,
    ) -> tuple[str, tuple[Any, ...]] | None:
        try:
            return _derive(computation, inputs, pin_unserialisable)
        except KeyDerivationError as exc:
            self._report(
                "Memo cache could not derive a key for the computation; "
                "the result has not been cached.",
                exc,
            )
            return None

    def _cache_transient(
        self,
        key: str,
        computation: Callable[[], _T],
        pinned: tuple[Any, ...],
    ) -> _T:
        with self._lock:
            entry = self._hit(key)
            if entry is not None:
                return entry.value
            key_lock = self._key_locks.setdefault(key, _KeyLock())
            key_lock.waiters += 1

        try:
            # Concurrent callers for the same key wait here for the first one.
            with key_lock.lock:
                with self._lock:
                    entry = self._hit(key)
                    if entry is not None:
                        return entry.value

                _logger.debug("transient_miss", key=key)
                value = computation()

                with self._lock:
                    self._transient[key] = TransientEntry(value, pinned=pinned)
                return value
        finally:
            with self._lock:
                key_lock.waiters -= 1
                if key_lock.waiters == 0:
                    self._key_locks.pop(key, None)

    def _hit(self, key: str) -> TransientEntry[Any] | None:
        entry = self._transient.get(key)
        if entry is not None:
            entry.hit_count += 1
            _logger.debug("transient_hit", key=key, hits=entry.hit_count)
        return entry

    def _cache_durable(
        self,
        durable_cache: IDurableCache,
        key: str,
        ttl: int | None,
        computation: Callable[[], _T],
    ) -> _T:
        try:
            return durable_cache.get_or_compute(key, ttl, computation)
        except Exception as exc:
            # The computation's own errors are the caller's, not the cache's.
            if _raised_by(exc, computation):
                raise
            self._report(f"Exception thrown when using {type(self).__name__}: {exc}.", exc)
            _logger.warning("durable_fallback", key=key, ttl=ttl)
            return computation()

    def _report(self, message: str, exc: BaseException) -> None:
        if self._error_reporter is None:
            return
        self._error_reporter.report_error(
            message,
            ErrorContext(source=type(self).__name__, detail=str(exc), cause=exc),
        )

    # ------------------------------------------------------------------
    # Management
    # ------------------------------------------------------------------

    def clear_transient_cache(self) -> MemoizationEngine:
        """Empty the transient tier.  Returns the engine for chaining."""
        with self._lock:
            self._transient.clear()
        _logger.debug("transient_cleared")
        return self

    def clear_durable_cache(self) -> MemoizationEngine:
        """Clear the durable tier if one is configured.  Returns the engine."""
        if self._durable_cache is not None:
            self._durable_cache.clear()
            _logger.info("durable_cache_cleared", provider=self._durable_cache.get_provider_name())
        return self

    def get_entry(self, key: str) -> TransientEntry[Any] | None:
        """Return the transient entry for *key* without counting a hit."""
        with self._lock:
            return self._transient.get(key)

    def hits(self, key: str) -> int:
        """Return how many times *key* was served from the transient tier."""
        entry = self.get_entry(key)
        return entry.hit_count if entry is not None else 0

    @property
    def transient_size(self) -> int:
        with self._lock:
            return len(self._transient)

    @property
    def durable_cache(self) -> IDurableCache | None:
        return self._durable_cache

    @property
    def error_reporter(self) -> IErrorReporter | None:
        return self._error_reporter


def memoize(
    computation: Callable[[], _T],
    key: str | None = None,
    ttl: Ttl = EPHEMERAL,
    *,
    inputs: Iterable[Any] | None = None,
) -> _T:
    """Memoize *computation* with the process-wide engine."""
    return MemoizationEngine.instance().cache(computation, key, ttl, inputs=inputs)
