"""Canonical node/edge collections and selection state.

GraphStore owns the live graph. All mutations funnel through it and follow a
copy-on-write pattern: the node and edge collections are immutable tuples of
frozen models, and every mutation swaps in a new tuple. Anything holding an
earlier tuple (history snapshots, a serializer mid-write) keeps a consistent
view.

Subscribers registered with :meth:`GraphStore.subscribe` are notified once per
committed mutation, never in the middle of one.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ideacanvas.graph.errors import InvalidConnectionError, NodeNotFoundError
from ideacanvas.graph.models import (
    DEFAULT_LABEL,
    Edge,
    Group,
    Node,
    Position,
    Selection,
)
from ideacanvas.observability import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from ideacanvas.graph.models import Handle

log = get_logger(__name__)


def max_numeric_id(node_ids: Iterable[str]) -> int:
    """Largest node ID that parses as an integer, or 0 if none does."""
    best = 0
    for node_id in node_ids:
        try:
            best = max(best, int(node_id))
        except ValueError:
            continue
    return best


class GraphStore:
    """Live diagram graph with selection state and an ID counter.

    Attributes:
        strict_duplicates: Reject edges identical in source, target and both
            handles to an existing edge.
    """

    def __init__(
        self,
        nodes: Iterable[Node] = (),
        edges: Iterable[Edge] = (),
        *,
        next_id: int = 1,
        strict_duplicates: bool = True,
    ) -> None:
        self._nodes: tuple[Node, ...] = tuple(nodes)
        self._edges: tuple[Edge, ...] = tuple(edges)
        self._selection = Selection()
        self._next_id = max(next_id, max_numeric_id(n.id for n in self._nodes) + 1)
        self._next_group = 1
        self._listeners: list[Callable[[GraphStore], None]] = []
        self.strict_duplicates = strict_duplicates

    def __repr__(self) -> str:
        return (
            f"GraphStore(nodes={len(self._nodes)}, edges={len(self._edges)}, "
            f"next_id={self._next_id})"
        )

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    @property
    def nodes(self) -> tuple[Node, ...]:
        return self._nodes

    @property
    def edges(self) -> tuple[Edge, ...]:
        return self._edges

    @property
    def selection(self) -> Selection:
        return self._selection

    @property
    def next_id(self) -> int:
        return self._next_id

    def node_map(self) -> dict[str, Node]:
        return {node.id: node for node in self._nodes}

    def get_node(self, node_id: str) -> Node | None:
        for node in self._nodes:
            if node.id == node_id:
                return node
        return None

    def has_node(self, node_id: str) -> bool:
        return self.get_node(node_id) is not None

    def require_node(self, node_id: str, context: str = "") -> Node:
        """Get a node or raise NodeNotFoundError with the available IDs."""
        node = self.get_node(node_id)
        if node is None:
            raise NodeNotFoundError(
                node_id, available=[n.id for n in self._nodes], context=context
            )
        return node

    def get_edge(self, edge_id: str) -> Edge | None:
        for edge in self._edges:
            if edge.id == edge_id:
                return edge
        return None

    def edges_touching(self, node_id: str) -> list[Edge]:
        """All edges where *node_id* is source or target."""
        return [edge for edge in self._edges if edge.touches(node_id)]

    # -------------------------------------------------------------------------
    # Change notification
    # -------------------------------------------------------------------------

    def subscribe(self, listener: Callable[[GraphStore], None]) -> Callable[[], None]:
        """Register a change listener. Returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(
        self,
        nodes: tuple[Node, ...] | None = None,
        edges: tuple[Edge, ...] | None = None,
    ) -> None:
        """Swap in new collections, prune stale selection, then notify."""
        if nodes is not None:
            self._nodes = nodes
        if edges is not None:
            self._edges = edges
        node_ids = {n.id for n in self._nodes}
        edge_ids = {e.id for e in self._edges}
        if not (self._selection.node_ids <= node_ids and self._selection.edge_ids <= edge_ids):
            self._selection = Selection(
                node_ids=self._selection.node_ids & node_ids,
                edge_ids=self._selection.edge_ids & edge_ids,
            )
        for listener in list(self._listeners):
            listener(self)

    # -------------------------------------------------------------------------
    # Node operations
    # -------------------------------------------------------------------------

    def allocate_id(self) -> str:
        """Take the next ID from the monotonic counter."""
        node_id = str(self._next_id)
        self._next_id += 1
        return node_id

    def add_node(self, level: int, position: Position, label: str = DEFAULT_LABEL) -> Node:
        """Create a node with a fresh ID. Never fails for a valid level."""
        node = Node(id=self.allocate_id(), position=position, level=level, label=label)
        self._commit(nodes=(*self._nodes, node))
        log.debug("node_added", node_id=node.id, level=level)
        return node

    def _replace_node(self, node_id: str, **updates: object) -> bool:
        """Copy-on-write update of one node. False if the node is absent."""
        for index, node in enumerate(self._nodes):
            if node.id == node_id:
                updated = node.model_copy(update=updates)
                if updated == node:
                    return True
                nodes = list(self._nodes)
                nodes[index] = updated
                self._commit(nodes=tuple(nodes))
                return True
        return False

    def update_label(self, node_id: str, text: str) -> bool:
        """Replace a node's label. No-op returning False if the node is absent."""
        return self._replace_node(node_id, label=text)

    def update_level(self, node_id: str, rank: int) -> bool:
        """Replace a node's rank. No-op returning False if the node is absent.

        Raises:
            ValueError: If *rank* is outside 1..5.
        """
        node = self.get_node(node_id)
        if node is None:
            return False
        # model_copy skips validation, so coerce and range-check through the model first
        level = Node(id=node.id, level=rank).level
        return self._replace_node(node_id, level=level)

    def update_position(self, node_id: str, position: Position) -> bool:
        """Move a node. No-op returning False if the node is absent."""
        return self._replace_node(node_id, position=position)

    def replace_edges(self, edges: Iterable[Edge]) -> None:
        """Swap in a new edge collection (e.g. after re-resolving handles)."""
        edges = tuple(edges)
        if edges != self._edges:
            self._commit(edges=edges)

    # -------------------------------------------------------------------------
    # Edge operations
    # -------------------------------------------------------------------------

    def connect(
        self,
        source: str,
        target: str,
        source_handle: Handle,
        target_handle: Handle,
        *,
        edge_id: str | None = None,
    ) -> Edge:
        """Append a new edge between two existing nodes.

        Raises:
            InvalidConnectionError: Self-loop, missing endpoint, or (with
                ``strict_duplicates``) an identical edge already exists.
        """
        if source == target:
            raise InvalidConnectionError(source, target, "self_loop")
        if not (self.has_node(source) and self.has_node(target)):
            raise InvalidConnectionError(source, target, "missing_endpoint")

        edge = Edge(
            id=edge_id or self._edge_id(source, target),
            source=source,
            target=target,
            source_handle=source_handle,
            target_handle=target_handle,
        )
        if self.strict_duplicates and any(e.signature == edge.signature for e in self._edges):
            raise InvalidConnectionError(source, target, "duplicate")

        self._commit(edges=(*self._edges, edge))
        log.debug(
            "edge_added",
            edge_id=edge.id,
            source=source,
            target=target,
            source_handle=str(source_handle),
            target_handle=str(target_handle),
        )
        return edge

    def _edge_id(self, source: str, target: str) -> str:
        base = f"e{source}-{target}"
        existing = {e.id for e in self._edges}
        edge_id = base
        suffix = 1
        while edge_id in existing:
            suffix += 1
            edge_id = f"{base}-{suffix}"
        return edge_id

    # -------------------------------------------------------------------------
    # Deletion
    # -------------------------------------------------------------------------

    def delete_selected(self, selection: Selection | None = None) -> tuple[int, int]:
        """Delete selected nodes and edges, cascading to edges of deleted nodes.

        Runs as one commit: listeners never observe nodes gone while their
        edges remain.

        Args:
            selection: What to delete. Defaults to the current selection.

        Returns:
            ``(nodes_removed, edges_removed)``.
        """
        selection = selection if selection is not None else self._selection
        doomed_nodes = set(selection.node_ids)
        nodes = tuple(n for n in self._nodes if n.id not in doomed_nodes)
        edges = tuple(
            e
            for e in self._edges
            if e.id not in selection.edge_ids
            and e.source not in doomed_nodes
            and e.target not in doomed_nodes
        )
        removed = (len(self._nodes) - len(nodes), len(self._edges) - len(edges))
        if removed == (0, 0):
            return removed

        self._commit(nodes=self._prune_groups(nodes), edges=edges)
        log.debug("selection_deleted", nodes_removed=removed[0], edges_removed=removed[1])
        return removed

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------

    def set_selection(self, node_ids: Iterable[str] = (), edge_ids: Iterable[str] = ()) -> None:
        """Replace the selection. Always succeeds."""
        self._selection = Selection(node_ids=frozenset(node_ids), edge_ids=frozenset(edge_ids))

    def clear_selection(self) -> None:
        self._selection = Selection()

    # -------------------------------------------------------------------------
    # Groups
    # -------------------------------------------------------------------------

    def groups(self) -> list[Group]:
        """Groups derived from node back-references, ordered by ID."""
        members: dict[str, list[Node]] = {}
        for node in self._nodes:
            if node.group_id is not None:
                members.setdefault(node.group_id, []).append(node)
        return [
            Group(
                id=group_id,
                member_node_ids=frozenset(n.id for n in group_nodes),
                centroid=Position(
                    x=sum(n.position.x for n in group_nodes) / len(group_nodes),
                    y=sum(n.position.y for n in group_nodes) / len(group_nodes),
                ),
            )
            for group_id, group_nodes in sorted(members.items())
        ]

    def group_selected(self) -> Group | None:
        """Group the selected nodes. Needs at least two; returns None otherwise.

        Nodes already in another group move to the new one.
        """
        member_ids = {nid for nid in self._selection.node_ids if self.has_node(nid)}
        if len(member_ids) < 2:
            return None

        group_id = self._allocate_group_id()
        nodes = tuple(
            n.model_copy(update={"group_id": group_id}) if n.id in member_ids else n
            for n in self._nodes
        )
        self._commit(nodes=self._prune_groups(nodes))
        log.debug("group_created", group_id=group_id, members=len(member_ids))
        return next(g for g in self.groups() if g.id == group_id)

    def ungroup(self, group_id: str) -> bool:
        """Dissolve a group, clearing every member's back-reference."""
        if not any(n.group_id == group_id for n in self._nodes):
            return False
        self._commit(
            nodes=tuple(
                n.model_copy(update={"group_id": None}) if n.group_id == group_id else n
                for n in self._nodes
            )
        )
        log.debug("group_dissolved", group_id=group_id)
        return True

    def _allocate_group_id(self) -> str:
        existing = {n.group_id for n in self._nodes}
        while f"g{self._next_group}" in existing:
            self._next_group += 1
        group_id = f"g{self._next_group}"
        self._next_group += 1
        return group_id

    @staticmethod
    def _prune_groups(nodes: tuple[Node, ...]) -> tuple[Node, ...]:
        """Clear the back-reference of nodes left alone in their group."""
        counts: dict[str, int] = {}
        for node in nodes:
            if node.group_id is not None:
                counts[node.group_id] = counts.get(node.group_id, 0) + 1
        return tuple(
            n.model_copy(update={"group_id": None})
            if n.group_id is not None and counts[n.group_id] < 2
            else n
            for n in nodes
        )

    # -------------------------------------------------------------------------
    # Whole-graph replacement
    # -------------------------------------------------------------------------

    def replace(
        self,
        nodes: Iterable[Node],
        edges: Iterable[Edge],
        *,
        next_id: int | None = None,
    ) -> None:
        """Atomically replace the whole graph (load, import, undo, redo).

        Without *next_id* (undo, redo) the counter keeps its current value, so
        IDs freed by an undo are not handed out again. Either way it ends up
        above every numeric node ID.
        """
        nodes = tuple(nodes)
        floor = max_numeric_id(n.id for n in nodes) + 1
        self._next_id = max(self._next_id if next_id is None else next_id, floor)
        self._commit(nodes=nodes, edges=tuple(edges))
