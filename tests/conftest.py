"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from tests.fixtures.canvas import FakeClock


@pytest.fixture(autouse=True)
def clear_engine_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep IDEACANVAS_* overrides from the developer's shell out of test runs."""
    for name in (
        "IDEACANVAS_MOVEMENT_CONSTRAINT",
        "IDEACANVAS_STRICT_DUPLICATES",
        "IDEACANVAS_HISTORY_LIMIT",
        "IDEACANVAS_CONFIG",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def clock() -> FakeClock:
    """A clock frozen at 0 until the test advances it."""
    return FakeClock()


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent
