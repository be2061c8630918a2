"""Observability module for Idea Canvas.

Provides structured logging.
"""

from ideacanvas.observability.logging import (
    close_file_logging,
    configure_logging,
    get_logger,
    session_context,
)

__all__ = [
    "close_file_logging",
    "configure_logging",
    "get_logger",
    "session_context",
]
