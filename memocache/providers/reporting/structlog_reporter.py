"""Error reporter that writes recovered-from failures to structlog."""

from __future__ import annotations

import structlog

from memocache.interfaces.error_reporter import ErrorContext, IErrorReporter
from memocache.utils.logging import get_logger


class StructlogErrorReporter(IErrorReporter):
    """Log each reported error as a structured ``error``-level event.

    Parameters
    ----------
    logger:
        Logger to write to.  Defaults to this module's named logger.
    """

    def __init__(self, logger: structlog.BoundLogger | None = None) -> None:
        self._logger = logger or get_logger(__name__)

    def report_error(self, message: str, context: ErrorContext) -> None:
        self._logger.error(
            message,
            source=context.source,
            detail=context.detail,
            exc_info=context.cause,
        )
