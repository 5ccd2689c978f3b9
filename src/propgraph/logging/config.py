"""Logging configuration for propgraph."""

from __future__ import annotations

import logging
import sys

import structlog

# Track if logging has been configured
_configured = False


def configure_logging(
    *,
    level: str = "INFO",
    json_output: bool = False,
    colors: bool | None = None,
) -> None:
    """Configure stdlib logging and structlog.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR)
        json_output: Use JSON output for production/log aggregation
        colors: Enable console colors (auto-detect TTY if None)
    """
    global _configured

    if colors is None:
        colors = sys.stderr.isatty()

    _configure_stdlib_logging(level)

    if json_output:
        renderer: structlog.typing.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=colors, pad_event=30)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso" if json_output else "%H:%M:%S"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    _configured = True


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance."""
    if not _configured:
        configure_logging()
    return structlog.get_logger(name)


def _configure_stdlib_logging(level: str) -> None:
    """Route stdlib logging through a single stderr handler."""
    root = logging.getLogger()
    root.setLevel(level.upper())
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)

    # SQL echo is controlled by the engine, keep the driver quiet otherwise
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
