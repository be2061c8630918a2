"""Tests for the command-line interface."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest
from typer.testing import CliRunner

from ideacanvas import __version__
from ideacanvas.cli import app
from tests.fixtures.canvas import sample_document

runner = CliRunner()

SESSION = "canvas.json"


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run commands from an empty directory so no stray config is picked up."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def session_file(workdir: Path) -> Path:
    """A session file holding the built-in three-node diagram."""
    result = runner.invoke(app, ["new", SESSION])
    assert result.exit_code == 0, result.output
    return workdir / SESSION


def _read(path: Path) -> dict[str, Any]:
    return json.loads(path.read_text(encoding="utf-8"))


def _node(document: dict[str, Any], node_id: str) -> dict[str, Any]:
    return next(n for n in document["nodes"] if n["id"] == node_id)


class TestVersion:
    def test_version(self) -> None:
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert f"v{__version__}" in result.output

    def test_no_args_shows_help(self) -> None:
        result = runner.invoke(app, [])
        assert "Usage" in result.output


class TestNew:
    def test_creates_default_diagram(self, session_file: Path) -> None:
        document = _read(session_file)
        assert [n["data"]["label"] for n in document["nodes"]] == [
            "Project Vision",
            "Milestone A",
            "Milestone B",
        ]
        assert len(document["edges"]) == 2
        assert document["nextId"] == 4

    def test_refuses_to_overwrite(self, session_file: Path) -> None:
        result = runner.invoke(app, ["new", SESSION])
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_force_empty(self, session_file: Path) -> None:
        result = runner.invoke(app, ["new", SESSION, "--empty", "--force"])
        assert result.exit_code == 0
        assert _read(session_file)["nodes"] == []


class TestShow:
    def test_lists_nodes_and_edges(self, session_file: Path) -> None:
        result = runner.invoke(app, ["show", SESSION])
        assert result.exit_code == 0
        assert "Project Vision" in result.output
        assert "Executive" in result.output
        assert "e1-2" in result.output

    def test_missing_file(self, workdir: Path) -> None:
        result = runner.invoke(app, ["show", "absent.json"])
        assert result.exit_code == 1
        assert "not found" in result.output


class TestEditCommands:
    def test_add_node(self, session_file: Path) -> None:
        result = runner.invoke(
            app, ["add-node", SESSION, "--label", "Idea", "--level", "3", "--x", "10", "--y", "20"]
        )
        assert result.exit_code == 0, result.output
        assert "Added node 4" in result.output
        node = _node(_read(session_file), "4")
        assert node["data"] == {"label": "Idea", "level": 3}
        assert node["position"] == {"x": 10.0, "y": 20.0}

    def test_add_node_invalid_level(self, session_file: Path) -> None:
        result = runner.invoke(app, ["add-node", SESSION, "--level", "9"])
        assert result.exit_code == 1
        assert "Invalid level: 9" in result.output
        assert len(_read(session_file)["nodes"]) == 3

    def test_connect_resolves_handles(self, session_file: Path) -> None:
        """Milestone A sits directly right of Milestone B at the same rank."""
        result = runner.invoke(app, ["connect", SESSION, "2", "3"])
        assert result.exit_code == 0, result.output
        edge = _read(session_file)["edges"][-1]
        assert (edge["source"], edge["target"]) == ("2", "3")
        assert (edge["sourceHandle"], edge["targetHandle"]) == ("w", "e")

    def test_connect_self_loop(self, session_file: Path) -> None:
        result = runner.invoke(app, ["connect", SESSION, "1", "1"])
        assert result.exit_code == 1
        assert "connected to itself" in result.output

    def test_move_blocked_above_senior(self, session_file: Path) -> None:
        result = runner.invoke(app, ["move", SESSION, "2", "400", "0"])
        assert result.exit_code == 1
        assert "Move blocked" in result.output
        assert _node(_read(session_file), "2")["position"] == {"x": 400.0, "y": 200.0}

    def test_move_allowed(self, session_file: Path) -> None:
        result = runner.invoke(app, ["move", SESSION, "2", "450", "300"])
        assert result.exit_code == 0, result.output
        assert _node(_read(session_file), "2")["position"] == {"x": 450.0, "y": 300.0}

    def test_move_with_constraint_disabled_by_config(
        self, session_file: Path, workdir: Path
    ) -> None:
        config = workdir / "relaxed.yaml"
        config.write_text("constraints:\n  movement: false\n", encoding="utf-8")
        result = runner.invoke(app, ["--config", str(config), "move", SESSION, "2", "400", "0"])
        assert result.exit_code == 0, result.output
        assert _node(_read(session_file), "2")["position"]["y"] == 0.0

    def test_invalid_config_file(self, session_file: Path, workdir: Path) -> None:
        config = workdir / "broken.yaml"
        config.write_text("history:\n  limit: 5\n", encoding="utf-8")
        result = runner.invoke(app, ["--config", str(config), "show", SESSION])
        assert result.exit_code == 1
        assert "Failed to load config" in result.output

    def test_label(self, session_file: Path) -> None:
        result = runner.invoke(app, ["label", SESSION, "1", "North Star"])
        assert result.exit_code == 0, result.output
        assert _node(_read(session_file), "1")["data"]["label"] == "North Star"

    def test_set_level(self, session_file: Path) -> None:
        result = runner.invoke(app, ["set-level", SESSION, "3", "5"])
        assert result.exit_code == 0, result.output
        assert _node(_read(session_file), "3")["data"]["level"] == 5

    def test_set_level_unknown_node(self, session_file: Path) -> None:
        result = runner.invoke(app, ["set-level", SESSION, "42", "2"])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_delete_cascades(self, session_file: Path) -> None:
        result = runner.invoke(app, ["delete", SESSION, "1"])
        assert result.exit_code == 0, result.output
        assert "1 node(s) and 2 edge(s)" in result.output
        document = _read(session_file)
        assert [n["id"] for n in document["nodes"]] == ["2", "3"]
        assert document["edges"] == []

    def test_delete_edge_only(self, session_file: Path) -> None:
        result = runner.invoke(app, ["delete", SESSION, "--edge", "e1-3"])
        assert result.exit_code == 0, result.output
        assert [e["id"] for e in _read(session_file)["edges"]] == ["e1-2"]

    def test_delete_nothing(self, session_file: Path) -> None:
        result = runner.invoke(app, ["delete", SESSION])
        assert result.exit_code == 1
        assert "Nothing to delete" in result.output


class TestValidate:
    def test_valid_document(self, session_file: Path) -> None:
        result = runner.invoke(app, ["validate", SESSION])
        assert result.exit_code == 0
        assert "Document is valid" in result.output

    def test_repairs_reported(self, workdir: Path) -> None:
        document = sample_document()
        document["edges"].append({"id": "x", "source": "1", "target": "9"})
        (workdir / SESSION).write_text(json.dumps(document), encoding="utf-8")
        result = runner.invoke(app, ["validate", SESSION])
        assert result.exit_code == 0
        assert "loads with repairs" in result.output

    def test_malformed_document(self, workdir: Path) -> None:
        (workdir / SESSION).write_text("{oops", encoding="utf-8")
        result = runner.invoke(app, ["validate", SESSION])
        assert result.exit_code == 1
        assert "Invalid:" in result.output

    def test_strict_rejects_invalid_node(self, workdir: Path) -> None:
        document = sample_document()
        document["nodes"].append({"id": "3"})
        (workdir / SESSION).write_text(json.dumps(document), encoding="utf-8")
        assert runner.invoke(app, ["validate", SESSION]).exit_code == 0
        assert runner.invoke(app, ["validate", SESSION, "--strict"]).exit_code == 1
