"""Diagram engine facade.

The engine owns the graph store, the hierarchy registry, the history manager
and the auto-saver, and translates collaborator gestures into operations on
them. Every public event returns an :class:`Outcome` instead of raising, so
the collaborator only decides whether to show the notifications.

Wiring: the store notifies the engine after each committed mutation, which
schedules a debounced history recording and a debounced auto-save. Both run
from :meth:`DiagramEngine.tick`.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ideacanvas.config import EngineConfig
from ideacanvas.graph import display
from ideacanvas.graph.constraints import check_move
from ideacanvas.graph.errors import (
    ConstraintViolationError,
    DiagramError,
    InvalidConnectionError,
    NodeNotFoundError,
    Notification,
    NotificationLevel,
    StorageUnavailableError,
)
from ideacanvas.graph.hierarchy import HierarchyRegistry
from ideacanvas.graph.history import HistoryManager
from ideacanvas.graph.models import (
    DEFAULT_LABEL,
    DEFAULT_LEVEL,
    Edge,
    Handle,
    Node,
    Position,
    Selection,
    Session,
)
from ideacanvas.graph.resolver import resolve_for_nodes, reresolve_edges
from ideacanvas.graph.store import GraphStore
from ideacanvas.observability import get_logger
from ideacanvas.persistence.autosave import AutoSaver
from ideacanvas.persistence.codec import dumps, loads
from ideacanvas.persistence.storage import AUTOSAVE_KEY, SAVE_KEY, MemoryStore, open_store

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from ideacanvas.graph.models import HistorySnapshot
    from ideacanvas.persistence.codec import LoadResult
    from ideacanvas.persistence.storage import KeyValueStore

log = get_logger(__name__)

# Random placement window for nodes added without a position
SPAWN_X = (100.0, 500.0)
SPAWN_Y = (100.0, 400.0)

DEFAULT_NODES: tuple[Node, ...] = (
    Node(id="1", position=Position(x=250, y=50), level=1, label="Project Vision"),
    Node(id="2", position=Position(x=400, y=200), level=2, label="Milestone A"),
    Node(id="3", position=Position(x=100, y=200), level=2, label="Milestone B"),
)
DEFAULT_EDGES: tuple[Edge, ...] = (
    Edge(id="e1-2", source="1", target="2", source_handle=Handle.S, target_handle=Handle.N),
    Edge(id="e1-3", source="1", target="3", source_handle=Handle.S, target_handle=Handle.N),
)


@dataclass
class Outcome:
    """Result of one collaborator event.

    Attributes:
        ok: Whether the event took effect.
        notifications: Messages for the collaborator's toast display.
        value: Event-specific payload (the new node, the export text, ...).
    """

    ok: bool
    notifications: list[Notification] = field(default_factory=list)
    value: Any = None

    @classmethod
    def success(cls, value: Any = None, message: str | None = None) -> Outcome:
        notes = [Notification(NotificationLevel.SUCCESS, message)] if message else []
        return cls(ok=True, notifications=notes, value=value)

    @classmethod
    def failure(cls, error: DiagramError | None = None) -> Outcome:
        notes = [error.to_notification()] if error is not None else []
        return cls(ok=False, notifications=notes)


def _default_session() -> Session:
    return Session(nodes=DEFAULT_NODES, edges=DEFAULT_EDGES, next_id=len(DEFAULT_NODES) + 1)


def _invalid_level(rank: int) -> Outcome:
    return Outcome(False, [Notification(NotificationLevel.ERROR, f"Invalid level: {rank}")])


class DiagramEngine:
    """Event-driven core of the idea canvas.

    Args:
        config: Engine configuration; defaults (with environment overrides)
            when omitted.
        storage: Key-value store for the save and auto-save slots. When
            omitted, the backend named in the config is opened; if that fails
            the engine falls back to an in-memory store.
        clock: Monotonic clock shared by the history and auto-save timers.
        rng: Random source for placing nodes added without a position.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        storage: KeyValueStore | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config or EngineConfig.default()
        self._rng = rng or random.Random()
        self._pending: list[Notification] = []
        self.storage = storage if storage is not None else self._open_storage()

        self.graph = GraphStore(strict_duplicates=self.config.strict_duplicates)
        self.hierarchy = HierarchyRegistry()
        self.history = HistoryManager(
            source=lambda: (self.graph.nodes, self.graph.edges),
            restore=self._restore_snapshot,
            limit=self.config.history.limit,
            debounce=self.config.history.debounce_ms / 1000,
            clock=clock,
        )
        self.autosaver = AutoSaver(
            self.storage,
            self.session,
            key=AUTOSAVE_KEY,
            debounce=self.config.autosave.debounce_ms / 1000,
            interval=self.config.autosave.interval_s,
            clock=clock,
            on_error=self._on_storage_error,
        )
        self._unsubscribe = self.graph.subscribe(self._on_graph_change)
        self.history.record(self.graph.nodes, self.graph.edges)

    def _open_storage(self) -> KeyValueStore:
        storage = self.config.storage
        try:
            return open_store(storage.backend, storage.path)
        except StorageUnavailableError as e:
            log.warning("storage_fallback_to_memory", backend=storage.backend, error=e.reason)
            self._pending.append(e.to_notification())
            return MemoryStore()

    # -------------------------------------------------------------------------
    # Wiring
    # -------------------------------------------------------------------------

    def _on_graph_change(self, _store: GraphStore) -> None:
        self.history.schedule()
        self.autosaver.notify_change()

    def _on_storage_error(self, error: StorageUnavailableError) -> None:
        self._pending.append(error.to_notification())

    def _restore_snapshot(self, snapshot: HistorySnapshot) -> None:
        self.graph.replace(snapshot.nodes, snapshot.edges)

    def session(self) -> Session:
        """The current persisted state."""
        return Session(
            nodes=self.graph.nodes,
            edges=self.graph.edges,
            hierarchy_levels=self.hierarchy.levels,
            show_hierarchy=self.hierarchy.show_hierarchy,
            next_id=self.graph.next_id,
        )

    def _apply_session(self, session: Session, *, reset_history: bool) -> None:
        """Swap a loaded session in as one atomic replacement."""
        self.history.flush()
        with self.history.restoring():
            self.graph.clear_selection()
            self.graph.replace(session.nodes, session.edges, next_id=session.next_id)
        self.hierarchy.reset()
        self.hierarchy.replace(session.hierarchy_levels)
        self.hierarchy.show_hierarchy = session.show_hierarchy
        if reset_history:
            self.history.clear()
        self.history.record(self.graph.nodes, self.graph.edges)

    def _reresolve(self, node_ids: Iterable[str]) -> None:
        if self.config.auto_resolve:
            self.graph.replace_edges(
                reresolve_edges(self.graph.edges, self.graph.node_map(), node_ids)
            )

    # -------------------------------------------------------------------------
    # Graph events
    # -------------------------------------------------------------------------

    def on_add_node(
        self,
        level: int = DEFAULT_LEVEL,
        position: Position | None = None,
        label: str = DEFAULT_LABEL,
    ) -> Outcome:
        """Add a node; without a position it lands at a random spot in view."""
        if position is None:
            position = Position(x=self._rng.uniform(*SPAWN_X), y=self._rng.uniform(*SPAWN_Y))
        try:
            node = self.graph.add_node(level, position, label)
        except ValueError as e:
            log.warning("node_rejected", level=level, error=str(e))
            return _invalid_level(level)
        return Outcome.success(node)

    def on_node_drag(self, node_id: str, proposed: Position) -> Outcome:
        """Accept or reject a proposed position. A rejected move changes nothing."""
        try:
            self.graph.require_node(node_id, context="drag")
            if self.config.movement_constraint:
                check = check_move(node_id, proposed, self.graph.node_map(), self.graph.edges)
                if not check:
                    raise ConstraintViolationError(node_id, list(check.blocking_ids))
        except DiagramError as e:
            log.debug("move_rejected", node_id=node_id, error=str(e))
            return Outcome.failure(e)

        self.graph.update_position(node_id, proposed)
        self._reresolve([node_id])
        return Outcome.success(self.graph.get_node(node_id))

    def on_connect_attempt(
        self,
        source: str,
        target: str,
        source_handle: str | Handle | None = None,
        target_handle: str | Handle | None = None,
    ) -> Outcome:
        """Create an edge from a connect gesture.

        With ``auto_resolve`` on (or when the gesture carries no usable
        handles) the handles come from the resolver. Self-loops are rejected
        without a notification.
        """
        source_h = Handle.parse(source_handle)
        target_h = Handle.parse(target_handle)
        try:
            if source == target:
                raise InvalidConnectionError(source, target, "self_loop")
            src = self.graph.get_node(source)
            tgt = self.graph.get_node(target)
            if src is None or tgt is None:
                raise InvalidConnectionError(source, target, "missing_endpoint")
            if self.config.auto_resolve or source_h is None or target_h is None:
                source_h, target_h = resolve_for_nodes(src, tgt)
            edge = self.graph.connect(source, target, source_h, target_h)
        except InvalidConnectionError as e:
            log.debug("edge_rejected", source=source, target=target, reason=e.reason)
            if e.reason == "self_loop":
                return Outcome.failure()
            return Outcome.failure(e)
        return Outcome.success(edge)

    def on_delete_key(self, selection: Selection | None = None) -> Outcome:
        """Delete the selection (or the given one), cascading to touching edges."""
        removed = self.graph.delete_selected(selection)
        return Outcome(ok=removed != (0, 0), value=removed)

    def on_label_edit(self, node_id: str, text: str) -> Outcome:
        try:
            self.graph.require_node(node_id, context="label edit")
        except NodeNotFoundError as e:
            return Outcome.failure(e)
        self.graph.update_label(node_id, text)
        return Outcome.success(self.graph.get_node(node_id))

    def on_level_change(self, node_id: str, rank: int) -> Outcome:
        """Change a node's rank and re-resolve the edges touching it."""
        try:
            self.graph.require_node(node_id, context="level change")
            self.graph.update_level(node_id, rank)
        except NodeNotFoundError as e:
            return Outcome.failure(e)
        except ValueError:
            return _invalid_level(rank)
        self._reresolve([node_id])
        return Outcome.success(self.graph.get_node(node_id))

    def on_legend_level_click(self, rank: int) -> Outcome:
        """Assign *rank* to every selected node."""
        selected = [nid for nid in self.graph.selection.node_ids if self.graph.has_node(nid)]
        if not selected:
            return Outcome(False, [Notification(NotificationLevel.WARNING, "No nodes selected.")])
        try:
            for node_id in sorted(selected):
                self.graph.update_level(node_id, rank)
        except ValueError:
            return _invalid_level(rank)
        self._reresolve(selected)
        return Outcome.success(len(selected))

    def on_selection_change(
        self, node_ids: Iterable[str] = (), edge_ids: Iterable[str] = ()
    ) -> Outcome:
        self.graph.set_selection(node_ids, edge_ids)
        return Outcome.success(self.graph.selection)

    def on_pane_click(self) -> Outcome:
        self.graph.clear_selection()
        return Outcome.success(self.graph.selection)

    def on_group(self) -> Outcome:
        group = self.graph.group_selected()
        if group is None:
            return Outcome(
                False,
                [Notification(NotificationLevel.WARNING, "Select at least two nodes to group.")],
            )
        return Outcome.success(group)

    def on_ungroup(self, group_id: str | None = None) -> Outcome:
        """Dissolve *group_id*, or every group a selected node belongs to."""
        if group_id is not None:
            targets = {group_id}
        else:
            targets = {
                node.group_id
                for node in self.graph.nodes
                if node.id in self.graph.selection.node_ids and node.group_id is not None
            }
        dissolved = [gid for gid in sorted(targets) if self.graph.ungroup(gid)]
        return Outcome(ok=bool(dissolved), value=dissolved)

    # -------------------------------------------------------------------------
    # Hierarchy events
    # -------------------------------------------------------------------------

    def on_rename_level(
        self,
        rank: int,
        name: str | None = None,
        *,
        color: str | None = None,
        background_color: str | None = None,
    ) -> Outcome:
        try:
            level = self.hierarchy.rename(
                rank, name, color=color, background_color=background_color
            )
        except KeyError:
            return Outcome(
                False, [Notification(NotificationLevel.ERROR, f"Unknown hierarchy level: {rank}")]
            )
        self.autosaver.notify_change()
        return Outcome.success(level)

    def on_toggle_hierarchy(self, show: bool | None = None) -> Outcome:
        self.hierarchy.show_hierarchy = (
            not self.hierarchy.show_hierarchy if show is None else show
        )
        self.autosaver.notify_change()
        return Outcome.success(self.hierarchy.show_hierarchy)

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    def undo(self) -> Outcome:
        snapshot = self.history.undo()
        return Outcome(ok=snapshot is not None, value=snapshot)

    def redo(self) -> Outcome:
        snapshot = self.history.redo()
        return Outcome(ok=snapshot is not None, value=snapshot)

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def on_request_export(self) -> Outcome:
        """Serialize the session to export text."""
        return Outcome.success(dumps(self.session()))

    def on_file_chosen(self, raw_text: str) -> Outcome:
        """Import a document. Nothing changes unless the whole load succeeds."""
        return self._import_text(raw_text, "Canvas imported successfully!")

    def save(self) -> Outcome:
        """Write the explicit save slot."""
        try:
            self.storage.set(SAVE_KEY, dumps(self.session()))
        except StorageUnavailableError as e:
            log.warning("save_failed", key=SAVE_KEY, error=e.reason)
            return Outcome.failure(e)
        log.info("canvas_saved", key=SAVE_KEY, nodes=len(self.graph.nodes))
        return Outcome.success(message="Canvas saved successfully!")

    def load(self) -> Outcome:
        """Load the explicit save slot."""
        try:
            text = self.storage.get(SAVE_KEY)
        except StorageUnavailableError as e:
            return Outcome.failure(e)
        if text is None:
            return Outcome(False, [Notification(NotificationLevel.WARNING, "No saved data found.")])
        return self._import_text(text, "Canvas loaded successfully!")

    def _import_text(
        self, text: str, message: str, *, reset_history: bool = False
    ) -> Outcome:
        try:
            result = loads(text, strict=not self.config.drop_invalid)
        except DiagramError as e:
            log.warning("import_failed", error=str(e))
            return Outcome.failure(e)
        self._apply_session(result.session, reset_history=reset_history)
        notes = [Notification(NotificationLevel.SUCCESS, message)]
        notes.extend(self._load_notices(result))
        return Outcome(ok=True, notifications=notes, value=result)

    @staticmethod
    def _load_notices(result: LoadResult) -> list[Notification]:
        notes = [w.to_notification() for w in result.warnings]
        if result.dropped_nodes or result.dropped_edges:
            notes.append(
                Notification(
                    NotificationLevel.WARNING,
                    f"Dropped {result.dropped_nodes} invalid node(s) and "
                    f"{result.dropped_edges} invalid edge(s) during import.",
                )
            )
        if result.remapped_ids:
            notes.append(
                Notification(
                    NotificationLevel.WARNING,
                    f"Renumbered {len(result.remapped_ids)} duplicate node ID(s).",
                )
            )
        return notes

    def restore_on_launch(self, confirm: Callable[[], bool] | None = None) -> Outcome:
        """Restore the previous session and start auto-saving.

        Tries the auto-save slot (only if *confirm* agrees), then the explicit
        save slot, then the built-in default diagram. History starts fresh
        from whatever was restored.

        Returns:
            Outcome whose value names the source: ``autosave``, ``save`` or
            ``defaults``.
        """
        notes: list[Notification] = list(self._pending)
        self._pending.clear()
        source = "defaults"
        for key, label in ((AUTOSAVE_KEY, "autosave"), (SAVE_KEY, "save")):
            try:
                text = self.storage.get(key)
            except StorageUnavailableError as e:
                notes.append(e.to_notification())
                break
            if text is None:
                continue
            if key == AUTOSAVE_KEY and confirm is not None and not confirm():
                continue
            outcome = self._import_text(text, "Canvas restored.", reset_history=True)
            if outcome.ok:
                notes.extend(outcome.notifications[1:])
                source = label
                break
            log.warning("restore_slot_unusable", key=key)

        if source == "defaults":
            self._apply_session(_default_session(), reset_history=True)
        self.autosaver.mark_saved(self.session())
        if self.config.autosave.enabled:
            self.autosaver.start()
        log.info("session_restored", source=source, nodes=len(self.graph.nodes))
        return Outcome(ok=True, notifications=notes, value=source)

    # -------------------------------------------------------------------------
    # Loop integration
    # -------------------------------------------------------------------------

    def tick(self) -> Outcome:
        """Run due timers. Notifications raised by background saves are returned here."""
        recorded = self.history.tick()
        saved = self.autosaver.tick()
        notes = list(self._pending)
        self._pending.clear()
        return Outcome(ok=True, notifications=notes, value={"recorded": recorded, "saved": saved})

    def render(self) -> dict[str, Any]:
        """Decorated nodes, edges, legend and selection for the drawing surface."""
        return display.render(
            self.graph.nodes, self.graph.edges, self.hierarchy, self.graph.selection
        )

    def close(self) -> None:
        """Stop every timer and detach from the store. The engine is inert afterwards."""
        self.history.close()
        self.autosaver.close()
        self._unsubscribe()
