"""structlog setup for applications embedding memocache.

memocache modules only ever *fetch* loggers through :func:`get_logger`;
they never configure logging on import, so the host application's
structlog and ``logging`` setup stays untouched.  An application that has
no logging of its own can call :func:`configure_logging` once at startup
(``memocache.main.bootstrap`` does).

The configured pipeline renders events with a colourful console renderer
during development and as JSON lines when ``APP_ENV=production`` or
``json_output=True``.  Standard-library records are routed through the same
processors so both streams look alike.
"""

import logging
import os
import sys

import structlog

# Marks the stdlib handler installed here so reconfiguring replaces only it.
_HANDLER_NAME = "memocache"


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> structlog.BoundLogger:
    """Install memocache's structlog pipeline and stdlib bridge.

    Args:
        log_level: Minimum level name, e.g. ``"DEBUG"`` or ``"WARNING"``.
        json_output: Render JSON regardless of ``APP_ENV``.

    Returns:
        A logger from the freshly configured pipeline.
    """
    use_json = json_output or os.environ.get("APP_ENV", "development") == "production"
    level = log_level.upper()

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer()
        if use_json
        else structlog.dev.ConsoleRenderer(colors=True)
    )

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *shared_processors,
                renderer,
            ],
        )
    )

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a structlog logger bound to *name*.

    Uses whatever structlog configuration is active when the logger is
    first used; nothing is configured here.
    """
    return structlog.get_logger(logger_name=name)
