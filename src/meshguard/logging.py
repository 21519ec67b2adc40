"""Structured logging helpers with trace IDs.

MeshGuard is a library: its loggers emit through stdlib ``logging`` under the
``meshguard`` namespace, which carries a ``NullHandler``. Nothing is written
until the host application configures logging, either through its own
``logging`` setup or with :func:`configure_logging`.
"""

from __future__ import annotations

import logging
from typing import cast

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars

LOGGER_NAMESPACE = "meshguard"

logging.getLogger(LOGGER_NAMESPACE).addHandler(logging.NullHandler())


def configure_logging(level: str, *, json_output: bool = True) -> None:
    """Configure structlog and the ``meshguard`` logger for applications.

    Args:
        level: Standard logging level name, e.g. ``"info"``. Unknown names
            fall back to INFO.
        json_output: Render JSON lines when True, human-readable console
            output otherwise.
    """
    level_name = level.upper()
    numeric_level = logging.getLevelNamesMapping().get(level_name, logging.INFO)

    logging.basicConfig(format="%(message)s", level=numeric_level)
    logging.getLogger(LOGGER_NAMESPACE).setLevel(numeric_level)

    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_trace_id(trace_id: str) -> None:
    """Bind a MeshGuard trace ID into the logging context."""
    bind_contextvars(trace_id=trace_id)


def clear_logging_context() -> None:
    """Clear bound context variables after a command completes."""
    clear_contextvars()


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structured logger backed by the stdlib logger ``name``.

    Level filtering and output are decided by stdlib ``logging``, so an
    unconfigured host sees nothing. Processors come from the structlog
    configuration in effect when the logger is first used.
    """
    return cast(
        structlog.stdlib.BoundLogger,
        structlog.wrap_logger(
            logging.getLogger(name or LOGGER_NAMESPACE),
            wrapper_class=structlog.stdlib.BoundLogger,
        ),
    )
