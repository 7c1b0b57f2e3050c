"""Composition root: build a configured MemoizationEngine.

Wires the durable cache and error reporter selected by :class:`Settings`
into an engine.  Applications construct the engine once at startup and pass
it to the code that needs it; ``install=True`` additionally makes it the
process-wide instance used by :func:`memocache.memoize`.
"""

from __future__ import annotations

import structlog

from memocache.config.loader import load_config, settings_from_config
from memocache.config.settings import Settings
from memocache.engine import MemoizationEngine
from memocache.interfaces.durable_cache import IDurableCache
from memocache.interfaces.error_reporter import IErrorReporter
from memocache.providers.cache.memory_cache import MemoryDurableCache
from memocache.providers.cache.sqlite_cache import SQLiteDurableCache
from memocache.providers.reporting.structlog_reporter import StructlogErrorReporter
from memocache.utils.errors import ConfigurationError
from memocache.utils.logging import configure_logging, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


def build_durable_cache(settings: Settings) -> IDurableCache | None:
    """Instantiate the durable cache named by ``settings.durable_backend``.

    Returns ``None`` for ``"none"``.
    """
    backend = settings.durable_backend
    if backend == "none":
        return None
    if backend == "memory":
        return MemoryDurableCache(max_size=settings.memory_max_size)
    if backend == "sqlite":
        cache = SQLiteDurableCache(
            db_path=settings.sqlite_db_path,
            table_name=settings.sqlite_table,
        )
        cache.initialize()
        return cache
    raise ConfigurationError(
        message=f"Unknown durable cache backend: {backend!r}",
        provider_name=str(backend),
    )


def build_error_reporter(settings: Settings) -> IErrorReporter | None:
    """Return a structlog-backed reporter, or ``None`` when reporting is off."""
    if not settings.report_errors:
        return None
    return StructlogErrorReporter()


def build_engine(settings: Settings | None = None, install: bool = False) -> MemoizationEngine:
    """Assemble an engine from *settings* (read from the environment if omitted)."""
    settings = settings or Settings()
    engine = MemoizationEngine(
        durable_cache=build_durable_cache(settings),
        error_reporter=build_error_reporter(settings),
    )
    _logger.info(
        "memoization_engine_built",
        durable_backend=settings.durable_backend,
        report_errors=settings.report_errors,
        installed=install,
    )
    if install:
        MemoizationEngine.install(engine)
    return engine


def bootstrap(config_path: str = "config/config.yaml") -> MemoizationEngine:
    """Load configuration, configure logging, and install a process-wide engine."""
    settings = settings_from_config(load_config(config_path))
    configure_logging(
        log_level=settings.log_level,
        json_output=(settings.app_env == "production"),
    )
    return build_engine(settings, install=True)
