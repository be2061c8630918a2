"""Structured logging for the engine and the CLI.

Engine modules log snake_case events with key-value context through
:func:`get_logger`. Output goes to two places:
- the console (rich, stderr), at WARNING, INFO or DEBUG depending on ``-v``
- optionally ``<log_dir>/debug.jsonl``, one JSON object per event at every
  level; the CLI puts ``log_dir`` next to the session file it edits
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from structlog.typing import Processor

LOG_FILENAME = "debug.jsonl"

_CONSOLE_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)

_configured = False
_file_handler: JsonLinesHandler | None = None


class JsonLinesHandler(logging.FileHandler):
    """Append each record as a JSON line, lifting structlog context to top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
        }
        if isinstance(record.msg, dict):
            # wrap_for_formatter hands over the event dict unrendered
            context = {
                k: v for k, v in record.msg.items() if k not in ("level", "timestamp")
            }
            entry["message"] = context.pop("event", "")
            entry.update(context)
        else:
            entry["message"] = record.getMessage()
        return json.dumps(entry, default=str)


def _console_handler(verbosity: int) -> RichHandler:
    level = _CONSOLE_LEVELS[min(max(verbosity, 0), len(_CONSOLE_LEVELS) - 1)]
    return RichHandler(
        console=Console(stderr=True),
        level=level,
        markup=False,
        show_time=verbosity >= 1,
        show_path=verbosity >= 2,
        rich_tracebacks=True,
    )


def configure_logging(
    verbosity: int = 0,
    log_to_file: bool = False,
    log_dir: Path | None = None,
) -> None:
    """Configure logging. Safe to call again; a previous log file is closed first.

    Args:
        verbosity: 0=WARNING (default), 1=INFO, 2+=DEBUG on the console.
        log_to_file: Also append every event to ``log_dir/debug.jsonl``.
        log_dir: Directory for the log file. Required if log_to_file=True.

    Raises:
        ValueError: If log_to_file=True but log_dir is not provided.
    """
    global _configured, _file_handler

    if log_to_file and log_dir is None:
        raise ValueError("log_dir is required when log_to_file=True")

    close_file_logging()
    handlers: list[logging.Handler] = [_console_handler(verbosity)]
    if log_to_file and log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        _file_handler = JsonLinesHandler(log_dir / LOG_FILENAME, mode="a", encoding="utf-8")
        _file_handler.setLevel(logging.DEBUG)
        handlers.append(_file_handler)

    # The file handler wants everything; the console handler filters by its own level
    root_level = logging.DEBUG if (verbosity > 0 or log_to_file) else logging.WARNING
    logging.basicConfig(level=root_level, format="%(message)s", handlers=handlers, force=True)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]
    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str | None = None) -> structlog.typing.FilteringBoundLogger:
    """Bound logger for *name* (typically ``__name__``), configuring defaults on first use."""
    if not _configured:
        configure_logging()
    logger: structlog.typing.FilteringBoundLogger = structlog.get_logger(name)
    return logger


def close_file_logging() -> None:
    """Flush and close the JSONL log file, if one is open."""
    global _file_handler
    if _file_handler is not None:
        _file_handler.close()
        _file_handler = None


@contextmanager
def session_context(document: str | Path, **context: Any) -> Iterator[None]:
    """Bind the session document (and any extra context) to every log event.

    Args:
        document: Session document path or storage slot being worked on.
        **context: Additional key-value pairs to bind.

    Yields:
        None; the context stays bound for the duration of the ``with`` block.
    """
    with structlog.contextvars.bound_contextvars(document=str(document), **context):
        yield
