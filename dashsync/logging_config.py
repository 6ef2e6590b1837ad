"""Structured logging for dashsync.

All modules log through structlog with snake_case event names and
key/value context (component_id, type, id, ...). Output goes through the
stdlib root logger so host applications keep control of handlers.
"""

from __future__ import annotations

import logging
import sys
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from dashsync.errors import ConfigurationError

if TYPE_CHECKING:
    from dashsync.container import SyncContext

LOG_FILE_NAME = "dashsync.log"
LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _enum_values(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Render EventType/Priority/ComponentType members as their plain values."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
    return event_dict


def _handler(log_file: Path | None) -> logging.Handler:
    if log_file is None:
        return logging.StreamHandler(sys.stderr)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(log_file, encoding="utf-8")


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Path | None = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        level: One of DEBUG, INFO, WARNING, ERROR, CRITICAL
        json_output: Render one JSON object per line instead of console text
        log_file: Append to this file instead of stderr

    Raises:
        ConfigurationError: If level is not a known level name
    """
    level = level.upper()
    if level not in LEVELS:
        raise ConfigurationError(f"Unknown log level: {level!r}")

    handler = _handler(log_file)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logging.basicConfig(handlers=[handler], level=getattr(logging, level), force=True)

    processors: list[structlog.types.Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _enum_values,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        # colors only when writing to a terminal
        colors = log_file is None and sys.stderr.isatty()
        processors.append(structlog.dev.ConsoleRenderer(colors=colors))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger (name is typically __name__)."""
    return structlog.get_logger(name)


def configure_from_context(context: SyncContext, verbose: bool = False) -> None:
    """Apply the logging settings of a SyncContext.

    Args:
        context: Resolved configuration (log_level, log_json, log_dir)
        verbose: Force DEBUG regardless of context.log_level
    """
    log_file = context.log_dir / LOG_FILE_NAME if context.log_dir is not None else None
    configure_logging(
        level="DEBUG" if verbose else context.log_level,
        json_output=context.log_json,
        log_file=log_file,
    )
