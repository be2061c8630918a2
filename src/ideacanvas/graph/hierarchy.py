"""Hierarchy level definitions and the show/hide flag.

The rank set is fixed at 1..5; only names and colors change. The registry is
the single owner of the table and is handed to consumers by reference.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ideacanvas.graph.models import MAX_LEVEL, MIN_LEVEL, HierarchyLevel
from ideacanvas.observability import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping

log = get_logger(__name__)

DEFAULT_LEVELS: tuple[HierarchyLevel, ...] = (
    HierarchyLevel(rank=1, name="Executive", color="#ff6b6b", background_color="#ffe0e0"),
    HierarchyLevel(rank=2, name="Management", color="#4ecdc4", background_color="#e0fffe"),
    HierarchyLevel(rank=3, name="Team Lead", color="#45b7d1", background_color="#e0f4ff"),
    HierarchyLevel(rank=4, name="Individual", color="#96ceb4", background_color="#f0fff4"),
    HierarchyLevel(rank=5, name="Task", color="#feca57", background_color="#fff8e1"),
)

RANKS = range(MIN_LEVEL, MAX_LEVEL + 1)


class HierarchyRegistry:
    """Ordered table of the five hierarchy levels plus the display toggle."""

    def __init__(
        self,
        levels: Iterable[HierarchyLevel] = DEFAULT_LEVELS,
        *,
        show_hierarchy: bool = True,
    ) -> None:
        self._levels: dict[int, HierarchyLevel] = {level.rank: level for level in DEFAULT_LEVELS}
        for level in levels:
            self._levels[level.rank] = level
        self.show_hierarchy = show_hierarchy

    def __iter__(self) -> Iterator[HierarchyLevel]:
        return iter(self.levels)

    def __len__(self) -> int:
        return len(self._levels)

    @property
    def levels(self) -> tuple[HierarchyLevel, ...]:
        """Levels ordered from most senior (1) to most junior (5)."""
        return tuple(self._levels[rank] for rank in RANKS)

    def get(self, rank: int) -> HierarchyLevel:
        """Level definition for *rank*; unknown ranks fall back to the default rank."""
        return self._levels.get(rank, self._levels[4])

    def rename(
        self,
        rank: int,
        name: str | None = None,
        *,
        color: str | None = None,
        background_color: str | None = None,
    ) -> HierarchyLevel:
        """Update the name and/or colors of an existing rank.

        Raises:
            KeyError: If *rank* is not one of 1..5.
        """
        if rank not in self._levels:
            raise KeyError(f"Unknown hierarchy rank: {rank}")
        updates: dict[str, Any] = {}
        if name is not None:
            updates["name"] = name
        if color is not None:
            updates["color"] = color
        if background_color is not None:
            updates["background_color"] = background_color
        level = self._levels[rank].model_copy(update=updates)
        self._levels[rank] = level
        log.debug("hierarchy_level_updated", rank=rank, **updates)
        return level

    def replace(self, levels: Iterable[HierarchyLevel]) -> None:
        """Adopt the given definitions; ranks not mentioned keep their current value."""
        for level in levels:
            self._levels[level.rank] = level

    def reset(self) -> None:
        self._levels = {level.rank: level for level in DEFAULT_LEVELS}
        self.show_hierarchy = True

    # -------------------------------------------------------------------------
    # Document form
    # -------------------------------------------------------------------------

    def to_document(self) -> dict[str, dict[str, str]]:
        """``{"<rank>": {"name", "color", "bgColor"}}`` as stored in session files."""
        return {
            str(level.rank): {
                "name": level.name,
                "color": level.color,
                "bgColor": level.background_color,
            }
            for level in self.levels
        }

    @staticmethod
    def levels_from_document(data: Mapping[str, Any] | None) -> list[HierarchyLevel]:
        """Parse the stored level table, skipping unknown ranks and bad entries.

        Missing fields fall back to the default definition of that rank.
        """
        if not isinstance(data, dict):
            return []
        defaults = {level.rank: level for level in DEFAULT_LEVELS}
        levels: list[HierarchyLevel] = []
        for key, entry in data.items():
            try:
                rank = int(key)
            except (TypeError, ValueError):
                continue
            if rank not in defaults or not isinstance(entry, dict):
                continue
            base = defaults[rank]
            levels.append(
                HierarchyLevel(
                    rank=rank,
                    name=str(entry.get("name", base.name)),
                    color=str(entry.get("color", base.color)),
                    background_color=str(entry.get("bgColor", base.background_color)),
                )
            )
        return levels
