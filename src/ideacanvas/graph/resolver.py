"""Hierarchy-aware connection point resolution.

Picks the compass handles an edge attaches to from the angle between the two
node positions. Charts flow downward from senior to junior: whichever end of
the edge outranks the other always attaches from its lower half.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from ideacanvas.graph.models import Edge, Handle, Position

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from ideacanvas.graph.models import Node

SECTOR_WIDTH = math.pi / 4
TWO_PI = 2 * math.pi


def angle_between(source: Position, target: Position) -> float:
    """Angle from *source* to *target* in ``[0, 2π)``, clockwise on screen."""
    angle = math.atan2(target.y - source.y, target.x - source.x)
    return angle % TWO_PI


def handle_for_angle(angle: float) -> Handle:
    """Quantize an angle into one of the eight compass sectors.

    Sectors are ``π/4`` wide and centred on their direction, so East covers
    ``[-π/8, π/8)``.
    """
    index = math.floor(((angle + SECTOR_WIDTH / 2) % TWO_PI) / SECTOR_WIDTH)
    return Handle.from_index(index)


def downward_handle(dx: float) -> Handle:
    """Lower-half handle facing the side the target lies on."""
    if dx > 0:
        return Handle.SE
    if dx < 0:
        return Handle.SW
    return Handle.S


def resolve_handles(
    source_pos: Position,
    target_pos: Position,
    source_rank: int,
    target_rank: int,
) -> tuple[Handle, Handle]:
    """Compute the source and target handles for an edge.

    Args:
        source_pos: Position of the source node.
        target_pos: Position of the target node.
        source_rank: Hierarchy rank of the source (1 is most senior).
        target_rank: Hierarchy rank of the target.

    Returns:
        ``(source_handle, target_handle)``; the two are always opposite
        compass points, and the senior end (if any) is in the lower half.
    """
    if source_rank < target_rank:
        source_handle = downward_handle(target_pos.x - source_pos.x)
        return source_handle, source_handle.opposite
    if target_rank < source_rank:
        target_handle = downward_handle(source_pos.x - target_pos.x)
        return target_handle.opposite, target_handle
    source_handle = handle_for_angle(angle_between(source_pos, target_pos))
    return source_handle, source_handle.opposite


def resolve_for_nodes(source: Node, target: Node) -> tuple[Handle, Handle]:
    """Convenience wrapper taking the two endpoint nodes."""
    return resolve_handles(source.position, target.position, source.level, target.level)


def reresolve_edges(
    edges: Iterable[Edge],
    nodes: Mapping[str, Node],
    node_ids: Iterable[str],
) -> tuple[Edge, ...]:
    """Recompute handles of the edges touching any of *node_ids*.

    Used after a node's rank or position changes. Edges whose endpoints are
    missing from *nodes* are returned unchanged.
    """
    changed = set(node_ids)
    result: list[Edge] = []
    for edge in edges:
        source = nodes.get(edge.source)
        target = nodes.get(edge.target)
        if source is None or target is None or not (changed & {edge.source, edge.target}):
            result.append(edge)
            continue
        source_handle, target_handle = resolve_for_nodes(source, target)
        if (source_handle, target_handle) == (edge.source_handle, edge.target_handle):
            result.append(edge)
        else:
            result.append(
                edge.model_copy(
                    update={"source_handle": source_handle, "target_handle": target_handle}
                )
            )
    return tuple(result)
