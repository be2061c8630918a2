"""Graph package - the diagram model and the rules applied to it.

The store owns nodes, edges and selection; the resolver and constraint
enforcer are pure functions consulted by the engine; the history manager keeps
undo/redo snapshots.
"""

from ideacanvas.graph.constraints import MoveCheck, check_move, senior_neighbors
from ideacanvas.graph.errors import (
    ConstraintViolationError,
    DiagramError,
    InvalidConnectionError,
    InvalidNodeError,
    MalformedDocumentError,
    NodeNotFoundError,
    Notification,
    NotificationLevel,
    StorageUnavailableError,
    VersionMismatchWarning,
)
from ideacanvas.graph.hierarchy import DEFAULT_LEVELS, HierarchyRegistry
from ideacanvas.graph.history import HistoryManager
from ideacanvas.graph.models import (
    DEFAULT_LABEL,
    DEFAULT_LEVEL,
    DOWNWARD_HANDLES,
    Edge,
    Group,
    Handle,
    HierarchyLevel,
    HistorySnapshot,
    Node,
    Position,
    Selection,
    Session,
)
from ideacanvas.graph.resolver import resolve_handles, reresolve_edges
from ideacanvas.graph.store import GraphStore

__all__ = [
    "DEFAULT_LABEL",
    "DEFAULT_LEVEL",
    "DEFAULT_LEVELS",
    "DOWNWARD_HANDLES",
    "ConstraintViolationError",
    "DiagramError",
    "Edge",
    "GraphStore",
    "Group",
    "Handle",
    "HierarchyLevel",
    "HierarchyRegistry",
    "HistoryManager",
    "HistorySnapshot",
    "InvalidConnectionError",
    "InvalidNodeError",
    "MalformedDocumentError",
    "MoveCheck",
    "Node",
    "NodeNotFoundError",
    "Notification",
    "NotificationLevel",
    "Position",
    "Selection",
    "Session",
    "StorageUnavailableError",
    "VersionMismatchWarning",
    "check_move",
    "reresolve_edges",
    "resolve_handles",
    "senior_neighbors",
]
