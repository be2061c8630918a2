"""Tests for structured logging configuration."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import pytest
from rich.logging import RichHandler

from ideacanvas.observability import (
    close_file_logging,
    configure_logging,
    get_logger,
    session_context,
)

if TYPE_CHECKING:
    from pathlib import Path


def _entries(log_file: Path) -> list[dict[str, object]]:
    with log_file.open() as f:
        return [json.loads(line) for line in f]


def test_configure_logging_sets_level_warning() -> None:
    """Default verbosity (0) sets WARNING level."""
    configure_logging(verbosity=0)

    assert logging.getLogger().level == logging.WARNING


def test_configure_logging_verbose_opens_root_level() -> None:
    """verbosity=1 lets everything through to the handlers, which filter."""
    configure_logging(verbosity=1)

    assert logging.getLogger().level == logging.DEBUG


@pytest.mark.parametrize(
    ("verbosity", "expected"),
    [(0, logging.WARNING), (1, logging.INFO), (2, logging.DEBUG), (5, logging.DEBUG)],
)
def test_console_level_follows_verbosity(verbosity: int, expected: int) -> None:
    configure_logging(verbosity=verbosity)

    consoles = [h for h in logging.getLogger().handlers if isinstance(h, RichHandler)]
    assert [h.level for h in consoles] == [expected]


def test_get_logger_auto_configures() -> None:
    """get_logger configures logging if not already done."""
    import ideacanvas.observability.logging as log_module

    log_module._configured = False

    logger = get_logger("test")

    assert log_module._configured is True
    assert hasattr(logger, "warning")


def test_file_logging_creates_log_dir(tmp_path: Path) -> None:
    log_dir = tmp_path / "logs"
    configure_logging(verbosity=0, log_to_file=True, log_dir=log_dir)

    assert (log_dir / "debug.jsonl").exists()
    close_file_logging()


def test_file_logging_requires_log_dir() -> None:
    with pytest.raises(ValueError, match="log_dir is required"):
        configure_logging(verbosity=0, log_to_file=True, log_dir=None)


def test_reconfiguration_closes_handler(tmp_path: Path) -> None:
    """Reconfiguring logging closes the previous file handler."""
    import ideacanvas.observability.logging as log_module

    configure_logging(verbosity=0, log_to_file=True, log_dir=tmp_path)
    first_handler = log_module._file_handler
    assert first_handler is not None

    configure_logging(verbosity=0, log_to_file=True, log_dir=tmp_path)

    assert first_handler.stream is None or first_handler.stream.closed
    assert log_module._file_handler is not None
    close_file_logging()
    assert log_module._file_handler is None


def test_jsonl_file_handler_writes_structlog_context(tmp_path: Path) -> None:
    """Event name and key-value context land as top-level JSONL fields."""
    configure_logging(verbosity=2, log_to_file=True, log_dir=tmp_path)

    logger = get_logger("test.context")
    logger.info("node_added", node_id="7", rank=3)
    close_file_logging()

    entry = next(e for e in _entries(tmp_path / "debug.jsonl") if e["message"] == "node_added")
    assert entry["node_id"] == "7"
    assert entry["level"] == "INFO"
    assert entry["logger"] == "test.context"


def test_session_context_binds_document(tmp_path: Path) -> None:
    """Events inside the block carry the document and extra context."""
    configure_logging(verbosity=2, log_to_file=True, log_dir=tmp_path)

    logger = get_logger("test.session")
    with session_context(tmp_path / "canvas.json", command="move"):
        logger.info("inside_session")
    logger.info("outside_session")
    close_file_logging()

    entries = {e["message"]: e for e in _entries(tmp_path / "debug.jsonl")}
    assert entries["inside_session"]["document"] == str(tmp_path / "canvas.json")
    assert entries["inside_session"]["command"] == "move"
    assert "document" not in entries["outside_session"]
