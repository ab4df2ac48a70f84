"""Logging configuration and utilities."""

import logging
from typing import Any

import structlog


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure structlog processors for the SGAI client.

    Args:
        level: Minimum log level name
        json_output: Render JSON lines instead of the console renderer
    """
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
    )


def get_context_logger(name: str) -> structlog.BoundLogger:
    """Get a context-aware logger.

    Args:
        name: Logger name

    Returns:
        Structured logger instance
    """
    return structlog.get_logger(name)


class AdBreakContext:
    """Context manager binding ad break fields to the logging context."""

    def __init__(self, **context: Any):
        """Initialize with context variables.

        Args:
            **context: Context key-value pairs
        """
        self.context = context

    def __enter__(self):
        structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        structlog.contextvars.unbind_contextvars(*self.context.keys())


def update_playback_progress(**kwargs: Any) -> None:
    """Update ad playback progress in logging context.

    Args:
        **kwargs: Progress metrics to update
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def set_playback_context(**kwargs: Any) -> None:
    """Set playback context in logging.

    Args:
        **kwargs: Context key-value pairs
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_playback_context(*keys: str) -> None:
    """Remove playback keys from the logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


__all__ = [
    "configure_logging",
    "get_context_logger",
    "AdBreakContext",
    "update_playback_progress",
    "set_playback_context",
    "clear_playback_context",
]
