"""Structured logging setup for the runner.

Diagnostics go to stderr so that the child's echoed output on stdout stays clean.
JSON lines when stderr is not a terminal, console rendering otherwise.
"""

import logging
import sys
from typing import cast

import structlog


def configure_logging(level: str = "INFO", run_name: str | None = None) -> None:
    """Configure structlog and route stdlib logging through it.

    Args:
        level: Log level ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')
        run_name: Optional label bound to every entry (usually the --msg prefix)
    """
    log_level = getattr(logging, level.upper())
    is_tty = sys.stderr.isatty()

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    structlog.configure(
        processors=shared_processors
        + [
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer: structlog.types.Processor = (
        structlog.dev.ConsoleRenderer() if is_tty else structlog.processors.JSONRenderer()
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processor=renderer,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    root_logger = logging.getLogger()
    if root_logger.hasHandlers():
        root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(log_level, logging.WARNING))

    if run_name:
        structlog.contextvars.bind_contextvars(run=run_name)


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a logger instance."""
    return cast(structlog.BoundLogger, structlog.get_logger(name))
