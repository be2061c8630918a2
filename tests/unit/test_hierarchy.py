"""Tests for the hierarchy level registry."""

from __future__ import annotations

import pytest

from ideacanvas.graph.hierarchy import DEFAULT_LEVELS, HierarchyRegistry
from ideacanvas.graph.models import HierarchyLevel


class TestDefaults:
    def test_five_ranks_in_order(self) -> None:
        registry = HierarchyRegistry()
        assert [level.rank for level in registry] == [1, 2, 3, 4, 5]
        assert len(registry) == 5

    def test_default_names_and_colors(self) -> None:
        registry = HierarchyRegistry()
        assert registry.get(1).name == "Executive"
        assert registry.get(1).color == "#ff6b6b"
        assert registry.get(5).background_color == "#fff8e1"

    def test_unknown_rank_falls_back_to_default_level(self) -> None:
        assert HierarchyRegistry().get(42).rank == 4


class TestRename:
    """Names and colors change; the rank set does not."""

    def test_rename_updates_name_only(self) -> None:
        registry = HierarchyRegistry()
        level = registry.rename(2, "Directors")
        assert level.name == "Directors"
        assert level.color == "#4ecdc4"
        assert registry.get(2).name == "Directors"

    def test_rename_colors(self) -> None:
        registry = HierarchyRegistry()
        registry.rename(3, color="#000000", background_color="#ffffff")
        assert registry.get(3).name == "Team Lead"
        assert registry.get(3).color == "#000000"
        assert registry.get(3).background_color == "#ffffff"

    def test_unknown_rank_raises(self) -> None:
        with pytest.raises(KeyError):
            HierarchyRegistry().rename(6, "Nope")

    def test_reset_restores_defaults(self) -> None:
        registry = HierarchyRegistry(show_hierarchy=False)
        registry.rename(1, "Board")
        registry.reset()
        assert registry.levels == DEFAULT_LEVELS
        assert registry.show_hierarchy is True

    def test_replace_keeps_unmentioned_ranks(self) -> None:
        registry = HierarchyRegistry()
        registry.replace(
            [HierarchyLevel(rank=5, name="Chore", color="#111111", background_color="#eeeeee")]
        )
        assert registry.get(5).name == "Chore"
        assert registry.get(4).name == "Individual"


class TestDocumentForm:
    def test_to_document(self) -> None:
        document = HierarchyRegistry().to_document()
        assert set(document) == {"1", "2", "3", "4", "5"}
        assert document["4"] == {"name": "Individual", "color": "#96ceb4", "bgColor": "#f0fff4"}

    def test_levels_from_document_fills_missing_fields(self) -> None:
        levels = HierarchyRegistry.levels_from_document({"2": {"name": "Directors"}})
        assert len(levels) == 1
        assert levels[0].name == "Directors"
        assert levels[0].color == "#4ecdc4"

    def test_levels_from_document_skips_bad_entries(self) -> None:
        data = {"0": {"name": "x"}, "9": {"name": "y"}, "abc": {}, "3": "not a dict"}
        assert HierarchyRegistry.levels_from_document(data) == []
        assert HierarchyRegistry.levels_from_document(None) == []
