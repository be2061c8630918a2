"""Versioned session document codec.

Serializes a session (graph, hierarchy table, display flag, ID counter) to the
JSON-shaped export document and rehydrates it, validating structure on the
way in. Loading never partially applies: :func:`deserialize` builds a
complete :class:`LoadResult` which the caller swaps into the store in one
step.

Documents written by older builds are accepted as well: the ``content``
envelope of the first export format and ``"<handle>_target"`` handle IDs.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from ideacanvas.graph.errors import (
    InvalidNodeError,
    MalformedDocumentError,
    VersionMismatchWarning,
)
from ideacanvas.graph.hierarchy import HierarchyRegistry
from ideacanvas.graph.models import (
    DEFAULT_LEVEL,
    MAX_LEVEL,
    MIN_LEVEL,
    Edge,
    Handle,
    Node,
    Position,
    Session,
)
from ideacanvas.graph.resolver import resolve_for_nodes
from ideacanvas.graph.store import max_numeric_id
from ideacanvas.observability import get_logger

if TYPE_CHECKING:
    from ideacanvas.graph.models import HierarchyLevel

log = get_logger(__name__)

FORMAT_VERSION = "1.0.0"
EXPORT_TITLE = "Ideas Canvas Export"


@dataclass
class LoadResult:
    """A fully validated session plus what had to be repaired to get it.

    Attributes:
        session: The rehydrated session.
        warnings: Recoverable problems (currently version mismatches).
        dropped_nodes: Node entries discarded as invalid (lenient mode).
        dropped_edges: Edge entries discarded (dangling, self-loop, malformed).
        remapped_ids: Duplicate node IDs given fresh IDs, old ID to new ID.
        reresolved_edges: Edges whose missing/unknown handles were recomputed.
    """

    session: Session
    warnings: list[VersionMismatchWarning] = field(default_factory=list)
    dropped_nodes: int = 0
    dropped_edges: int = 0
    remapped_ids: dict[str, str] = field(default_factory=dict)
    reresolved_edges: int = 0

    @property
    def repaired(self) -> bool:
        return bool(self.dropped_nodes or self.dropped_edges or self.remapped_ids)


# -----------------------------------------------------------------------------
# Serialization
# -----------------------------------------------------------------------------


def node_to_document(node: Node) -> dict[str, Any]:
    data: dict[str, Any] = {"label": node.label, "level": node.level}
    if node.group_id is not None:
        data["groupId"] = node.group_id
    return {
        "id": node.id,
        "position": {"x": node.position.x, "y": node.position.y},
        "data": data,
    }


def edge_to_document(edge: Edge) -> dict[str, Any]:
    return {
        "id": edge.id,
        "source": edge.source,
        "target": edge.target,
        "sourceHandle": str(edge.source_handle),
        "targetHandle": str(edge.target_handle),
    }


def serialize(session: Session, *, created_at: datetime | None = None) -> dict[str, Any]:
    """Build the export document for *session*.

    Args:
        session: Session to serialize.
        created_at: Creation timestamp to carry over when re-saving a document;
            defaults to now.

    Returns:
        JSON-compatible document dict.
    """
    now = datetime.now(UTC)
    registry = HierarchyRegistry(session.hierarchy_levels)
    return {
        "version": FORMAT_VERSION,
        "metadata": {
            "createdAt": (created_at or now).isoformat(),
            "lastModified": now.isoformat(),
            "title": EXPORT_TITLE,
        },
        "nodes": [node_to_document(n) for n in session.nodes],
        "edges": [edge_to_document(e) for e in session.edges],
        "hierarchyLevels": registry.to_document(),
        "showHierarchy": session.show_hierarchy,
        "nextId": session.next_id,
    }


def dumps(session: Session) -> str:
    """Serialize *session* to indented JSON text."""
    return json.dumps(serialize(session), indent=2, ensure_ascii=False)


# -----------------------------------------------------------------------------
# Deserialization
# -----------------------------------------------------------------------------


def loads(text: str, *, strict: bool = True) -> LoadResult:
    """Parse JSON text and deserialize it.

    Raises:
        MalformedDocumentError: If the text is not valid JSON or the document
            lacks its required structure.
        InvalidNodeError: Strict mode only; see :func:`deserialize`.
    """
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedDocumentError(f"invalid JSON ({e.msg} at line {e.lineno})") from e
    return deserialize(document, strict=strict)


def _unwrap(document: dict[str, Any]) -> dict[str, Any]:
    """Flatten the legacy ``content``/``settings`` envelope into the current shape."""
    content = document.get("content")
    if "nodes" in document or not isinstance(content, dict):
        return document
    flat = dict(document)
    flat.update(content)
    settings = content.get("settings")
    if isinstance(settings, dict) and "showHierarchy" in settings:
        flat["showHierarchy"] = settings["showHierarchy"]
    return flat


def _parse_level(value: Any) -> int:
    """Coerce a stored rank, falling back to the default for unusable values."""
    if isinstance(value, bool):
        return DEFAULT_LEVEL
    try:
        level = int(value)
    except (TypeError, ValueError):
        return DEFAULT_LEVEL
    return level if MIN_LEVEL <= level <= MAX_LEVEL else DEFAULT_LEVEL


def _parse_position(value: Any) -> Position:
    if not isinstance(value, dict):
        return Position()
    try:
        return Position(x=float(value.get("x", 0.0)), y=float(value.get("y", 0.0)))
    except (TypeError, ValueError):
        return Position()


def _node_problem(entry: Any) -> str | None:
    """Why a node entry is unusable, or None if it is fine."""
    if not isinstance(entry, dict):
        return "not an object"
    node_id = entry.get("id")
    if node_id is None or (isinstance(node_id, str) and not node_id.strip()):
        return "missing id"
    if not isinstance(node_id, str | int) or isinstance(node_id, bool):
        return "id must be a string"
    data = entry.get("data")
    if not isinstance(data, dict) or not isinstance(data.get("label"), str):
        return "missing string label"
    return None


def _parse_nodes(
    entries: list[Any],
    *,
    strict: bool,
    declared_next_id: int,
    result_remap: dict[str, str],
) -> tuple[list[Node], int, int]:
    """Build nodes, returning ``(nodes, dropped, next_id)``."""
    valid: list[tuple[str, dict[str, Any]]] = []
    dropped = 0
    for index, entry in enumerate(entries):
        problem = _node_problem(entry)
        if problem is not None:
            if strict:
                raise InvalidNodeError(index, problem)
            dropped += 1
            log.warning("node_dropped", index=index, reason=problem)
            continue
        valid.append((str(entry["id"]), entry))

    next_id = max(declared_next_id, max_numeric_id(nid for nid, _ in valid) + 1)
    seen: set[str] = set()
    nodes: list[Node] = []
    for node_id, entry in valid:
        if node_id in seen:
            fresh = str(next_id)
            next_id += 1
            result_remap[node_id] = fresh
            log.warning("node_id_remapped", old_id=node_id, new_id=fresh)
            node_id = fresh
        seen.add(node_id)
        data = entry["data"]
        group_id = data.get("groupId")
        nodes.append(
            Node(
                id=node_id,
                position=_parse_position(entry.get("position")),
                level=_parse_level(data.get("level", DEFAULT_LEVEL)),
                label=data["label"],
                group_id=str(group_id) if group_id is not None else None,
            )
        )
    return nodes, dropped, next_id


def _parse_edges(entries: list[Any], nodes: dict[str, Node]) -> tuple[list[Edge], int, int]:
    """Build edges, returning ``(edges, dropped, reresolved)``."""
    edges: list[Edge] = []
    edge_ids: set[str] = set()
    dropped = 0
    reresolved = 0
    for entry in entries:
        if not isinstance(entry, dict):
            dropped += 1
            continue
        source = entry.get("source")
        target = entry.get("target")
        source = str(source) if source is not None else None
        target = str(target) if target is not None else None
        if source not in nodes or target not in nodes or source == target:
            dropped += 1
            log.warning("edge_dropped", edge_id=entry.get("id"), source=source, target=target)
            continue

        source_handle = Handle.parse(entry.get("sourceHandle"))
        target_handle = Handle.parse(entry.get("targetHandle"))
        if source_handle is None or target_handle is None:
            source_handle, target_handle = resolve_for_nodes(nodes[source], nodes[target])
            reresolved += 1

        base_id = str(entry.get("id") or f"e{source}-{target}")
        edge_id = base_id
        suffix = 1
        while edge_id in edge_ids:
            suffix += 1
            edge_id = f"{base_id}-{suffix}"
        edge_ids.add(edge_id)

        edges.append(
            Edge(
                id=edge_id,
                source=source,
                target=target,
                source_handle=source_handle,
                target_handle=target_handle,
            )
        )
    return edges, dropped, reresolved


def deserialize(document: Any, *, strict: bool = True) -> LoadResult:
    """Validate and rehydrate a session document.

    Args:
        document: Parsed JSON value.
        strict: When True, an invalid node entry aborts the load with
            InvalidNodeError. When False, invalid entries are dropped and
            counted on the result.

    Returns:
        LoadResult with the session and repair statistics.

    Raises:
        MalformedDocumentError: If *document* is not an object or has no
            ``nodes`` array.
        InvalidNodeError: Strict mode, a node lacks ``id`` or a string label.
    """
    if not isinstance(document, dict):
        raise MalformedDocumentError("document is not an object")
    document = _unwrap(document)
    node_entries = document.get("nodes")
    if not isinstance(node_entries, list):
        raise MalformedDocumentError("missing 'nodes' array")
    edge_entries = document.get("edges") or []
    if not isinstance(edge_entries, list):
        raise MalformedDocumentError("'edges' is not an array")

    warnings: list[VersionMismatchWarning] = []
    version = document.get("version")
    if version != FORMAT_VERSION:
        warnings.append(
            VersionMismatchWarning(
                found=str(version) if version is not None else None, expected=FORMAT_VERSION
            )
        )
        log.warning("version_mismatch", found=version, expected=FORMAT_VERSION)

    declared = document.get("nextId")
    valid_declared = isinstance(declared, int) and not isinstance(declared, bool)
    declared_next_id = declared if valid_declared else 0

    remapped: dict[str, str] = {}
    nodes, dropped_nodes, next_id = _parse_nodes(
        node_entries, strict=strict, declared_next_id=declared_next_id, result_remap=remapped
    )
    edges, dropped_edges, reresolved = _parse_edges(edge_entries, {n.id: n for n in nodes})

    levels: list[HierarchyLevel] = HierarchyRegistry.levels_from_document(
        document.get("hierarchyLevels")
    )
    show = document.get("showHierarchy")

    session = Session(
        nodes=tuple(nodes),
        edges=tuple(edges),
        hierarchy_levels=HierarchyRegistry(levels).levels,
        show_hierarchy=show if isinstance(show, bool) else True,
        next_id=max(next_id, 1),
    )
    log.info(
        "document_loaded",
        nodes=len(nodes),
        edges=len(edges),
        dropped_nodes=dropped_nodes,
        dropped_edges=dropped_edges,
    )
    return LoadResult(
        session=session,
        warnings=warnings,
        dropped_nodes=dropped_nodes,
        dropped_edges=dropped_edges,
        remapped_ids=remapped,
        reresolved_edges=reresolved,
    )
