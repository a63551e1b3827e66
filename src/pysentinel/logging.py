"""Structlog configuration.

Console output goes to stderr through structlog's console renderer. When a
log file is configured, records are written there as JSON lines instead so
they do not collide with a full-screen TUI.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from pysentinel.config import LoggingConfig


def _resolve_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {name!r}")
    return level


def configure(config: LoggingConfig) -> None:
    """Route structlog through stdlib logging to stderr or a JSON file.

    Args:
        config: Logging section of the application config
    """
    level = _resolve_level(config.level)

    if config.file:
        handler: logging.Handler = logging.FileHandler(config.file, encoding="utf-8")
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        handler = logging.StreamHandler(sys.stderr)
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=[
                structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
                structlog.processors.add_log_level,
            ],
        )
    )

    stdlib_root = logging.getLogger()
    stdlib_root.handlers.clear()
    stdlib_root.addHandler(handler)
    stdlib_root.setLevel(level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
            structlog.processors.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
