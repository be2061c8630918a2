"""Render model handed to the drawing surface.

Nodes and edges are decorated with the display metadata the surface needs:
level name and colors from the hierarchy table, the handle set, and selection
flags. The output is plain JSON-compatible dicts.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ideacanvas.graph.models import Handle

if TYPE_CHECKING:
    from ideacanvas.graph.hierarchy import HierarchyRegistry
    from ideacanvas.graph.models import Edge, Node, Selection

EDGE_STROKE = "#b1b1b7"
EDGE_STROKE_WIDTH = 2
EDGE_MARKER = "arrowclosed"
NODE_WIDTH = 180

HANDLE_IDS: tuple[str, ...] = tuple(str(h) for h in Handle)


def decorate_node(
    node: Node,
    hierarchy: HierarchyRegistry,
    *,
    selected: bool = False,
) -> dict[str, Any]:
    level = hierarchy.get(node.level)
    return {
        "id": node.id,
        "type": "custom",
        "position": {"x": node.position.x, "y": node.position.y},
        "selected": selected,
        "style": {"width": NODE_WIDTH},
        "data": {
            "label": node.label,
            "level": node.level,
            "levelName": level.name,
            "color": level.color,
            "bgColor": level.background_color,
            "showHierarchy": hierarchy.show_hierarchy,
            "groupId": node.group_id,
            "handles": list(HANDLE_IDS),
        },
    }


def decorate_edge(edge: Edge, *, selected: bool = False) -> dict[str, Any]:
    return {
        "id": edge.id,
        "source": edge.source,
        "target": edge.target,
        "sourceHandle": str(edge.source_handle),
        "targetHandle": str(edge.target_handle),
        "type": "default",
        "selected": selected,
        "markerEnd": {"type": EDGE_MARKER},
        "style": {"stroke": EDGE_STROKE, "strokeWidth": EDGE_STROKE_WIDTH},
    }


def render(
    nodes: tuple[Node, ...],
    edges: tuple[Edge, ...],
    hierarchy: HierarchyRegistry,
    selection: Selection,
) -> dict[str, Any]:
    """Build the full render model, including the legend and selection echo."""
    return {
        "nodes": [
            decorate_node(n, hierarchy, selected=n.id in selection.node_ids) for n in nodes
        ],
        "edges": [decorate_edge(e, selected=e.id in selection.edge_ids) for e in edges],
        "legend": [
            {"rank": level.rank, "name": level.name, "color": level.color}
            for level in hierarchy.levels
        ]
        if hierarchy.show_hierarchy
        else [],
        "selection": {
            "nodes": sorted(selection.node_ids),
            "edges": sorted(selection.edge_ids),
        },
    }
