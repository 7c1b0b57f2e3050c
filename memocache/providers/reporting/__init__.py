"""Error reporter providers."""

from memocache.providers.reporting.structlog_reporter import StructlogErrorReporter

__all__ = ["StructlogErrorReporter"]
