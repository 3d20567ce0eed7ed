"""Structured logging configuration for Procforge.

This module configures structlog with support for:
- JSON and console output formats
- File rotation based on size
- A run identifier attached to every event of one pipeline run

The logging system integrates structlog with Python's stdlib logging
for handlers (file rotation), while using structlog exclusively for
actual log emission.

Example usage:
    >>> from procforge.config import LoggingConfig
    >>> from procforge.logging import setup_logging, get_logger, bind_run_context
    >>>
    >>> setup_logging(LoggingConfig(level="INFO", format="json"))
    >>> logger = get_logger(__name__)
    >>> bind_run_context(run_id="3f2a", target="camunda")
    >>> logger.info("generation_started")
"""

from __future__ import annotations

import contextvars
import logging
import logging.handlers
import sys
from typing import Any

import structlog

from procforge.config import LoggingConfig

_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("run_id", default=None)


def add_run_id(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Add run_id to the log event if set in context.

    Args:
        logger: Logger instance (unused, required by structlog protocol)
        method_name: Log method name (unused, required by structlog protocol)
        event_dict: Current event dictionary to augment

    Returns:
        Event dictionary with run_id added if available
    """
    run_id = _run_id.get()
    if run_id is not None:
        event_dict["run_id"] = run_id
    return event_dict


def set_run_id(run_id: str | None) -> None:
    """Set the run ID for the current context."""
    _run_id.set(run_id)


def get_run_id() -> str | None:
    """Get the current run ID, or None if not set."""
    return _run_id.get()


def bind_run_context(run_id: str, target: str | None = None) -> None:
    """Bind the run identifier, and optionally the backend target, to all subsequent logs.

    Args:
        run_id: Pipeline run identifier
        target: Backend currently generating, if any
    """
    set_run_id(run_id)
    if target is None:
        structlog.contextvars.unbind_contextvars("target")
    else:
        structlog.contextvars.bind_contextvars(target=target)


def setup_logging(config: LoggingConfig) -> None:
    """Configure structlog with the given configuration.

    Args:
        config: Logging configuration from ProcforgeConfig
    """
    log_level = getattr(logging, config.level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    if config.file is not None:
        config.file.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.handlers.RotatingFileHandler(
            filename=config.file,
            maxBytes=config.rotation_size_mb * 1024 * 1024,
            backupCount=config.retention_count,
            encoding="utf-8",
        )
    else:
        handler = logging.StreamHandler(sys.stderr)

    handler.setLevel(log_level)
    root_logger.addHandler(handler)

    if config.format == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.contextvars.merge_contextvars,
            add_run_id,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Configured structlog BoundLogger instance
    """
    return structlog.get_logger(name)
