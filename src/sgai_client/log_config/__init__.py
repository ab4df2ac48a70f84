"""Logging configuration package."""

from .main import (
    AdBreakContext,
    clear_playback_context,
    configure_logging,
    get_context_logger,
    set_playback_context,
    update_playback_progress,
)


__all__ = [
    "configure_logging",
    "get_context_logger",
    "AdBreakContext",
    "update_playback_progress",
    "set_playback_context",
    "clear_playback_context",
]
