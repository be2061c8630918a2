"""Tests for snapshot-based undo/redo."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from ideacanvas.graph.history import HistoryManager
from ideacanvas.graph.models import Handle, Position, Selection
from ideacanvas.graph.store import GraphStore
from tests.fixtures.canvas import make_node

if TYPE_CHECKING:
    from tests.fixtures.canvas import FakeClock


def _wired(clock: FakeClock, limit: int = 20) -> tuple[GraphStore, HistoryManager]:
    """A store whose changes schedule debounced recordings, as the engine wires it."""
    store = GraphStore([make_node("1", level=1), make_node("2", level=2, x=100, y=100)])
    history = HistoryManager(
        source=lambda: (store.nodes, store.edges),
        restore=lambda snap: store.replace(snap.nodes, snap.edges),
        limit=limit,
        clock=clock,
    )
    store.subscribe(lambda _s: history.schedule())
    history.record(store.nodes, store.edges)
    return store, history


class TestRecord:
    def test_empty_history(self) -> None:
        history = HistoryManager()
        assert history.index == -1
        assert history.current is None
        assert not history.can_undo
        assert not history.can_redo
        assert history.undo() is None
        assert history.redo() is None

    def test_identical_state_not_recorded(self) -> None:
        history = HistoryManager()
        nodes = (make_node("1"),)
        assert history.record(nodes, ())
        assert not history.record(nodes, ())
        assert len(history) == 1

    def test_limit_drops_oldest(self) -> None:
        history = HistoryManager(limit=20)
        for i in range(25):
            history.record((make_node(str(i + 1)),), ())
        assert len(history) == 20
        assert history.index == 19
        assert history.snapshots[0].nodes[0].id == "6"

    @pytest.mark.parametrize("limit", [19, 51])
    def test_limit_range_enforced(self, limit: int) -> None:
        with pytest.raises(ValueError):
            HistoryManager(limit=limit)

    def test_record_after_undo_prunes_redo_branch(self) -> None:
        history = HistoryManager()
        for node_id in ("1", "2", "3"):
            history.record((make_node(node_id),), ())
        history.undo()
        history.undo()
        history.record((make_node("9"),), ())
        assert len(history) == 2
        assert not history.can_redo
        assert [s.nodes[0].id for s in history.snapshots] == ["1", "9"]


class TestUndoRedo:
    def test_connect_delete_undo_scenario(self, clock: FakeClock) -> None:
        """Connect, then delete node 2; two undos land on the single-edge graph."""
        store, history = _wired(clock)
        history.clear()

        store.connect("1", "2", Handle.SE, Handle.NW)
        history.record(store.nodes, store.edges)
        store.delete_selected(Selection(node_ids=frozenset({"2"})))
        assert store.edges == ()
        history.record(store.nodes, store.edges)

        history.undo()
        history.undo()
        assert history.index == 0
        assert len(store.nodes) == 2
        assert [(e.source, e.target) for e in store.edges] == [("1", "2")]

    def test_undo_then_redo_round_trip(self, clock: FakeClock) -> None:
        store, history = _wired(clock)
        store.update_label("1", "Vision")
        history.flush()
        store.update_position("2", Position(x=300, y=300))
        history.flush()
        before = (store.nodes, store.edges)

        history.undo()
        assert store.nodes != before[0]
        history.redo()
        assert (store.nodes, store.edges) == before

    def test_terminal_states_are_noops(self, clock: FakeClock) -> None:
        store, history = _wired(clock)
        assert history.undo() is None
        assert history.redo() is None
        assert history.index == 0

    def test_restoration_is_not_recorded(self, clock: FakeClock) -> None:
        """The re-entrancy guard keeps undo from scheduling a new entry."""
        store, history = _wired(clock)
        store.update_label("1", "Vision")
        history.flush()
        history.undo()
        assert not history.pending
        clock.advance(10)
        assert not history.tick()
        assert history.can_redo


class TestDebounce:
    def test_keystrokes_collapse_into_one_entry(self, clock: FakeClock) -> None:
        store, history = _wired(clock)
        for text in ("V", "Vi", "Vis", "Visi", "Visio", "Vision"):
            store.update_label("1", text)
            clock.advance(0.1)
            history.tick()
        assert len(history) == 1
        clock.advance(1)
        assert history.tick()
        assert len(history) == 2
        assert history.current.nodes[0].label == "Vision"

    def test_undo_flushes_pending_edit(self, clock: FakeClock) -> None:
        """Undo right after an edit returns to the state before the edit."""
        store, history = _wired(clock)
        store.update_label("1", "Vision")
        assert history.pending
        history.undo()
        assert store.get_node("1").label == "New Idea"
        assert history.can_redo

    def test_close_cancels_pending(self, clock: FakeClock) -> None:
        store, history = _wired(clock)
        store.update_label("1", "Vision")
        history.close()
        clock.advance(5)
        assert not history.tick()
        assert len(history) == 1
