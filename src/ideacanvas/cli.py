"""Idea Canvas CLI - typer application entry point.

Every editing command loads a session document, runs one engine event on it
and writes the document back, so the same rules apply as in the interactive
canvas (handle resolution, movement constraint, cascading delete).
"""

from __future__ import annotations

import atexit
from collections.abc import Callable
from pathlib import Path
from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from ideacanvas.config import ConfigError, EngineConfig, load_config
from ideacanvas.engine import DiagramEngine, Outcome
from ideacanvas.graph.errors import DiagramError, NotificationLevel
from ideacanvas.graph.models import DEFAULT_LABEL, DEFAULT_LEVEL, Position, Selection
from ideacanvas.observability import (
    close_file_logging,
    configure_logging,
    get_logger,
    session_context,
)
from ideacanvas.persistence.codec import loads
from ideacanvas.persistence.storage import MemoryStore

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="ideacanvas",
    help="Idea Canvas: build hierarchical idea maps from the command line.",
    no_args_is_help=True,
)
console = Console()
log = get_logger(__name__)

NOTIFICATION_STYLES = {
    NotificationLevel.SUCCESS: "green",
    NotificationLevel.WARNING: "yellow",
    NotificationLevel.ERROR: "red",
}

# Global state for logging flags (set by callback, used by commands)
_verbose: int = 0
_log_enabled: bool = False
_config_path: Path | None = None


@app.callback()
def main(
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity: -v for INFO, -vv for DEBUG.",
        ),
    ] = 0,
    log: Annotated[
        bool,
        typer.Option(
            "--log",
            help="Enable file logging to logs/debug.jsonl next to the session file.",
        ),
    ] = False,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Config file or directory containing ideacanvas.yaml (default: ./).",
            envvar="IDEACANVAS_CONFIG",
        ),
    ] = None,
) -> None:
    """Idea Canvas: build hierarchical idea maps from the command line."""
    global _verbose, _log_enabled, _config_path
    _verbose = verbose
    _log_enabled = log
    _config_path = config

    # Configure console logging (file logging configured later when the file is known)
    configure_logging(verbosity=verbose)


def _configure_file_logging(session_file: Path) -> None:
    """Configure file logging if --log flag was set."""
    if _log_enabled:
        configure_logging(
            verbosity=_verbose, log_to_file=True, log_dir=session_file.parent / "logs"
        )
        atexit.register(close_file_logging)


def _load_engine_config() -> EngineConfig:
    try:
        return load_config(_config_path if _config_path is not None else Path())
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None


def _print_notifications(outcome: Outcome) -> None:
    for note in outcome.notifications:
        style = NOTIFICATION_STYLES[note.level]
        console.print(f"[{style}]{note.level.value.capitalize()}:[/{style}] {note.message}")


def _open_session(session_file: Path) -> DiagramEngine:
    """Load *session_file* into a fresh engine, exiting on failure."""
    if not session_file.exists():
        console.print(
            f"[red]Error:[/red] Session file '{session_file}' not found. "
            "Run 'ideacanvas new <file>' first."
        )
        raise typer.Exit(1)

    engine = DiagramEngine(_load_engine_config(), MemoryStore())
    outcome = engine.on_file_chosen(session_file.read_text(encoding="utf-8"))
    if not outcome.ok:
        _print_notifications(outcome)
        raise typer.Exit(1)
    # Only repair warnings are interesting here; the import success toast is not
    outcome.notifications = [
        n for n in outcome.notifications if n.level != NotificationLevel.SUCCESS
    ]
    _print_notifications(outcome)
    return engine


def _write_session(engine: DiagramEngine, session_file: Path) -> None:
    text = engine.on_request_export().value
    session_file.parent.mkdir(parents=True, exist_ok=True)
    session_file.write_text(text + "\n", encoding="utf-8")


def _edit(
    session_file: Path,
    command: str,
    action: Callable[[DiagramEngine], Outcome],
) -> Outcome:
    """Open, apply one event, and save when it took effect."""
    _configure_file_logging(session_file)
    with session_context(session_file, command=command):
        engine = _open_session(session_file)
        try:
            outcome = action(engine)
            _print_notifications(outcome)
            if not outcome.ok:
                raise typer.Exit(1)
            _write_session(engine, session_file)
            log.info("session_file_updated", command=command)
        finally:
            engine.close()
    return outcome


SessionFile = Annotated[Path, typer.Argument(help="Session document (JSON).")]


# =============================================================================
# Commands
# =============================================================================


@app.command()
def version() -> None:
    """Show version information."""
    from ideacanvas import __version__

    console.print(f"Idea Canvas v{__version__}")


@app.command()
def new(
    session_file: SessionFile,
    empty: Annotated[
        bool, typer.Option("--empty", help="Start with no nodes instead of the sample diagram.")
    ] = False,
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Overwrite an existing file.")
    ] = False,
) -> None:
    """Create a new session document."""
    if session_file.exists() and not force:
        console.print(f"[red]Error:[/red] '{session_file}' already exists (use --force)")
        raise typer.Exit(1)

    _configure_file_logging(session_file)
    engine = DiagramEngine(_load_engine_config(), MemoryStore())
    try:
        if not empty:
            engine.restore_on_launch()
        _write_session(engine, session_file)
        node_count = len(engine.graph.nodes)
    finally:
        engine.close()
    console.print(f"[green]Created[/green] {session_file} with {node_count} node(s)")


@app.command()
def show(session_file: SessionFile) -> None:
    """Show the nodes and edges of a session document."""
    engine = _open_session(session_file)
    try:
        node_table = Table(title=f"Nodes: {session_file.name}")
        node_table.add_column("ID", style="cyan")
        node_table.add_column("Label", style="bold")
        node_table.add_column("Level")
        node_table.add_column("Position", style="dim")
        node_table.add_column("Group", style="dim")
        for node in engine.graph.nodes:
            level = engine.hierarchy.get(node.level)
            node_table.add_row(
                node.id,
                node.label,
                f"{node.level} {level.name}",
                f"({node.position.x:g}, {node.position.y:g})",
                node.group_id or "-",
            )

        edge_table = Table(title="Edges")
        edge_table.add_column("ID", style="cyan")
        edge_table.add_column("Source")
        edge_table.add_column("Target")
        edge_table.add_column("Handles", style="dim")
        for edge in engine.graph.edges:
            edge_table.add_row(
                edge.id,
                edge.source,
                edge.target,
                f"{edge.source_handle} -> {edge.target_handle}",
            )

        console.print()
        console.print(node_table)
        console.print(edge_table)
        console.print()
    finally:
        engine.close()


@app.command("add-node")
def add_node(
    session_file: SessionFile,
    label: Annotated[str, typer.Option("--label", "-t", help="Node label.")] = DEFAULT_LABEL,
    level: Annotated[
        int, typer.Option("--level", "-l", help="Hierarchy rank 1..5.")
    ] = DEFAULT_LEVEL,
    x: Annotated[float | None, typer.Option("--x", help="X position.")] = None,
    y: Annotated[float | None, typer.Option("--y", help="Y position.")] = None,
) -> None:
    """Add a node to the diagram."""
    position = Position(x=x or 0.0, y=y or 0.0) if x is not None or y is not None else None
    outcome = _edit(
        session_file, "add-node", lambda engine: engine.on_add_node(level, position, label)
    )
    console.print(f"[green]Added[/green] node {outcome.value.id}")


@app.command()
def connect(
    session_file: SessionFile,
    source: Annotated[str, typer.Argument(help="Source node ID.")],
    target: Annotated[str, typer.Argument(help="Target node ID.")],
    source_handle: Annotated[
        str | None,
        typer.Option("--source-handle", help="Compass handle (used with auto_resolve off)."),
    ] = None,
    target_handle: Annotated[
        str | None,
        typer.Option("--target-handle", help="Compass handle (used with auto_resolve off)."),
    ] = None,
) -> None:
    """Connect two nodes with a directed edge."""

    def action(engine: DiagramEngine) -> Outcome:
        outcome = engine.on_connect_attempt(source, target, source_handle, target_handle)
        if not outcome.ok and not outcome.notifications:
            console.print("[yellow]Warning:[/yellow] A node cannot be connected to itself.")
        return outcome

    outcome = _edit(session_file, "connect", action)
    edge = outcome.value
    console.print(
        f"[green]Connected[/green] {edge.source} -> {edge.target} "
        f"({edge.source_handle} -> {edge.target_handle})"
    )


@app.command()
def move(
    session_file: SessionFile,
    node_id: Annotated[str, typer.Argument(help="Node ID.")],
    x: Annotated[float, typer.Argument(help="New X position.")],
    y: Annotated[float, typer.Argument(help="New Y position.")],
) -> None:
    """Move a node, subject to the movement constraint."""
    _edit(session_file, "move", lambda engine: engine.on_node_drag(node_id, Position(x=x, y=y)))
    console.print(f"[green]Moved[/green] node {node_id}")


@app.command()
def label(
    session_file: SessionFile,
    node_id: Annotated[str, typer.Argument(help="Node ID.")],
    text: Annotated[str, typer.Argument(help="New label.")],
) -> None:
    """Change a node's label."""
    _edit(session_file, "label", lambda engine: engine.on_label_edit(node_id, text))
    console.print(f"[green]Relabeled[/green] node {node_id}")


@app.command("set-level")
def set_level(
    session_file: SessionFile,
    node_id: Annotated[str, typer.Argument(help="Node ID.")],
    rank: Annotated[int, typer.Argument(help="Hierarchy rank 1..5.")],
) -> None:
    """Change a node's hierarchy rank."""
    _edit(session_file, "set-level", lambda engine: engine.on_level_change(node_id, rank))
    console.print(f"[green]Node {node_id}[/green] is now level {rank}")


@app.command()
def delete(
    session_file: SessionFile,
    node_ids: Annotated[list[str] | None, typer.Argument(help="Node IDs to delete.")] = None,
    edge_ids: Annotated[
        list[str] | None, typer.Option("--edge", "-e", help="Edge ID to delete (repeatable).")
    ] = None,
) -> None:
    """Delete nodes (with their edges) and edges."""
    selection = Selection(node_ids=frozenset(node_ids or ()), edge_ids=frozenset(edge_ids or ()))
    if selection.is_empty:
        console.print("[red]Error:[/red] Nothing to delete")
        raise typer.Exit(1)

    def action(engine: DiagramEngine) -> Outcome:
        outcome = engine.on_delete_key(selection)
        if not outcome.ok:
            console.print("[yellow]Warning:[/yellow] No matching nodes or edges.")
        return outcome

    outcome = _edit(session_file, "delete", action)
    nodes_removed, edges_removed = outcome.value
    console.print(
        f"[green]Deleted[/green] {nodes_removed} node(s) and {edges_removed} edge(s)"
    )


@app.command()
def validate(
    session_file: SessionFile,
    strict: Annotated[
        bool, typer.Option("--strict", help="Fail on invalid node entries instead of dropping.")
    ] = False,
) -> None:
    """Check a session document and report what a load would repair."""
    if not session_file.exists():
        console.print(f"[red]Error:[/red] Session file '{session_file}' not found")
        raise typer.Exit(1)

    try:
        result = loads(session_file.read_text(encoding="utf-8"), strict=strict)
    except DiagramError as e:
        console.print(f"[red]Invalid:[/red] {e}")
        raise typer.Exit(1) from None

    table = Table(title=f"Validation: {session_file.name}")
    table.add_column("Check", style="cyan")
    table.add_column("Result")
    table.add_row("Nodes", str(len(result.session.nodes)))
    table.add_row("Edges", str(len(result.session.edges)))
    table.add_row("Next ID", str(result.session.next_id))
    table.add_row("Dropped nodes", str(result.dropped_nodes))
    table.add_row("Dropped edges", str(result.dropped_edges))
    table.add_row("Renumbered IDs", str(len(result.remapped_ids)))
    table.add_row("Re-resolved handles", str(result.reresolved_edges))
    console.print(table)

    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning.to_notification().message}")
    if result.repaired:
        console.print("[yellow]Document loads with repairs[/yellow]")
    else:
        console.print("[green]Document is valid[/green]")
