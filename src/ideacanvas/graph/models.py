"""Pydantic models for the diagram graph.

Every model is frozen: mutations go through ``model_copy(update=...)`` so a
change always produces a new value. Snapshots taken by the history manager can
therefore hold references to live nodes without any risk of a later edit
rewriting them.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

MIN_LEVEL = 1
MAX_LEVEL = 5
DEFAULT_LEVEL = 4
DEFAULT_LABEL = "New Idea"


class Handle(StrEnum):
    """Compass attachment points, in clockwise screen order starting at East."""

    E = "e"
    SE = "se"
    S = "s"
    SW = "sw"
    W = "w"
    NW = "nw"
    N = "n"
    NE = "ne"

    @property
    def ordinal(self) -> int:
        return _HANDLE_ORDER.index(self)

    @property
    def opposite(self) -> Handle:
        """The diametrically opposite compass point."""
        return _HANDLE_ORDER[(self.ordinal + 4) % 8]

    @classmethod
    def from_index(cls, index: int) -> Handle:
        return _HANDLE_ORDER[index % 8]

    @classmethod
    def parse(cls, value: object) -> Handle | None:
        """Parse a stored handle id, accepting the legacy ``"<id>_target"`` form.

        Returns None for anything that is not a compass id.
        """
        if isinstance(value, Handle):
            return value
        if not isinstance(value, str):
            return None
        raw = value.strip().lower().removesuffix("_target")
        try:
            return cls(raw)
        except ValueError:
            return None


_HANDLE_ORDER: tuple[Handle, ...] = tuple(Handle)

DOWNWARD_HANDLES = frozenset({Handle.SE, Handle.S, Handle.SW})


class Position(BaseModel):
    """Canvas coordinates. ``y`` grows downward, as on screen."""

    model_config = ConfigDict(frozen=True)

    x: float = 0.0
    y: float = 0.0

    def offset(self, dx: float, dy: float) -> Position:
        return Position(x=self.x + dx, y=self.y + dy)


class Node(BaseModel):
    """A labeled idea placed on the canvas."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    position: Position = Field(default_factory=Position)
    level: int = Field(default=DEFAULT_LEVEL, ge=MIN_LEVEL, le=MAX_LEVEL)
    label: str = DEFAULT_LABEL
    group_id: str | None = None


class Edge(BaseModel):
    """A directed connection between two nodes."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    source: str
    target: str
    source_handle: Handle
    target_handle: Handle

    def touches(self, node_id: str) -> bool:
        return node_id in (self.source, self.target)

    @property
    def signature(self) -> tuple[str, str, Handle, Handle]:
        """Identity used by the strict duplicate-edge check."""
        return (self.source, self.target, self.source_handle, self.target_handle)


class HierarchyLevel(BaseModel):
    """Display definition of one rank in the hierarchy."""

    model_config = ConfigDict(frozen=True)

    rank: int = Field(ge=MIN_LEVEL, le=MAX_LEVEL)
    name: str
    color: str
    background_color: str


class Group(BaseModel):
    """A set of nodes grouped together, with the centroid of their positions."""

    model_config = ConfigDict(frozen=True)

    id: str
    member_node_ids: frozenset[str]
    centroid: Position


class Selection(BaseModel):
    """Transient selection state; never persisted."""

    model_config = ConfigDict(frozen=True)

    node_ids: frozenset[str] = frozenset()
    edge_ids: frozenset[str] = frozenset()

    @property
    def is_empty(self) -> bool:
        return not self.node_ids and not self.edge_ids


class HistorySnapshot(BaseModel):
    """Full copy of the node and edge collections at one point in time."""

    model_config = ConfigDict(frozen=True)

    nodes: tuple[Node, ...]
    edges: tuple[Edge, ...]
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def same_state(self, nodes: tuple[Node, ...], edges: tuple[Edge, ...]) -> bool:
        """Structural equality with the given collections, ignoring the timestamp."""
        return self.nodes == nodes and self.edges == edges


class Session(BaseModel):
    """Everything that is persisted for one canvas."""

    model_config = ConfigDict(frozen=True)

    nodes: tuple[Node, ...] = ()
    edges: tuple[Edge, ...] = ()
    hierarchy_levels: tuple[HierarchyLevel, ...] = ()
    show_hierarchy: bool = True
    next_id: int = 1
