"""Movement constraint: junior nodes stay below the senior nodes they link to.

Only direct neighbors are checked, against their positions at the moment of
the proposed move.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from ideacanvas.graph.models import Edge, Node, Position


@dataclass(frozen=True)
class MoveCheck:
    """Result of a movement check. Truthy when the move is allowed.

    Attributes:
        node_id: The node being moved.
        blocking_ids: Senior neighbors the proposed position would rise above.
    """

    node_id: str
    blocking_ids: tuple[str, ...] = field(default=())

    @property
    def allowed(self) -> bool:
        return not self.blocking_ids

    def __bool__(self) -> bool:
        return self.allowed


def senior_neighbors(
    node_id: str,
    nodes: Mapping[str, Node],
    edges: Iterable[Edge],
) -> list[Node]:
    """Directly connected nodes that outrank *node_id* (lower rank number)."""
    node = nodes.get(node_id)
    if node is None:
        return []

    seen: set[str] = set()
    seniors: list[Node] = []
    for edge in edges:
        if not edge.touches(node_id):
            continue
        other_id = edge.target if edge.source == node_id else edge.source
        if other_id in seen:
            continue
        seen.add(other_id)
        other = nodes.get(other_id)
        if other is not None and other.level < node.level:
            seniors.append(other)
    return seniors


def check_move(
    node_id: str,
    proposed: Position,
    nodes: Mapping[str, Node],
    edges: Iterable[Edge],
) -> MoveCheck:
    """Check whether *node_id* may move to *proposed*.

    The move is rejected when the proposed ``y`` is above (smaller than) the
    current ``y`` of any directly connected senior node.

    Args:
        node_id: Node being dragged.
        proposed: Proposed new position.
        nodes: Current nodes by ID.
        edges: Current edges.

    Returns:
        MoveCheck naming the blocking neighbors, empty when allowed.
    """
    blocking = tuple(
        senior.id
        for senior in senior_neighbors(node_id, nodes, edges)
        if proposed.y < senior.position.y
    )
    return MoveCheck(node_id=node_id, blocking_ids=blocking)
