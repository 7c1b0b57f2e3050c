"""Abstract base class for error reporting sinks.

The engine recovers from its own infrastructure failures (key derivation,
durable backend errors) and hands a description of each one to an
:class:`IErrorReporter`.  The default implementation logs through
structlog; applications may forward to Sentry, metrics, or a test spy.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ErrorContext:
    """Structured details accompanying a reported error.

    Attributes
    ----------
    source:
        Name of the component that recovered from the error.
    detail:
        Human-readable description, usually the exception message.
    cause:
        The original exception, if one was raised.
    """

    source: str
    detail: str
    cause: BaseException | None = None


class IErrorReporter(ABC):
    """Contract for sinks receiving recovered-from errors."""

    @abstractmethod
    def report_error(self, message: str, context: ErrorContext) -> None:
        """Record an error the caller has already recovered from.

        Implementations must not raise.
        """
