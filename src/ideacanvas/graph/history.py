"""Snapshot-based undo/redo.

The history is a bounded list of full graph snapshots plus a cursor. Recording
after an undo discards the redo branch. Recording is debounced so a burst of
edits (every keystroke of a label) collapses into one entry taken when the
editing pauses.

Restoring a snapshot changes the store, which would normally schedule a new
recording; the ``restoring`` guard suppresses that so undo and redo never
write history themselves.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from ideacanvas.graph.models import HistorySnapshot
from ideacanvas.observability import get_logger
from ideacanvas.timers import Debouncer

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

    from ideacanvas.graph.models import Edge, Node

log = get_logger(__name__)

DEFAULT_LIMIT = 20
MIN_LIMIT = 20
MAX_LIMIT = 50
DEFAULT_DEBOUNCE_SECONDS = 0.75


class HistoryManager:
    """Bounded undo/redo history over graph snapshots.

    Args:
        source: Returns the current ``(nodes, edges)``; used by debounced
            recording. Optional for callers that only use :meth:`record`.
        restore: Applies a snapshot to the live graph on undo/redo.
        limit: Maximum number of snapshots kept (20..50).
        debounce: Quiet period in seconds before a scheduled recording runs.
        clock: Monotonic clock for the debounce timer.
    """

    def __init__(
        self,
        source: Callable[[], tuple[Iterable[Node], Iterable[Edge]]] | None = None,
        restore: Callable[[HistorySnapshot], None] | None = None,
        *,
        limit: int = DEFAULT_LIMIT,
        debounce: float = DEFAULT_DEBOUNCE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not MIN_LIMIT <= limit <= MAX_LIMIT:
            raise ValueError(f"history limit must be between {MIN_LIMIT} and {MAX_LIMIT}")
        self.limit = limit
        self._source = source
        self._restore = restore
        self._snapshots: list[HistorySnapshot] = []
        self._index = -1
        self._restoring = False
        self._debouncer = Debouncer(debounce, self._record_current, clock=clock)

    def __len__(self) -> int:
        return len(self._snapshots)

    def __repr__(self) -> str:
        return f"HistoryManager(index={self._index}, size={len(self._snapshots)})"

    @property
    def index(self) -> int:
        """Cursor position; -1 while the history is empty."""
        return self._index

    @property
    def snapshots(self) -> tuple[HistorySnapshot, ...]:
        return tuple(self._snapshots)

    @property
    def current(self) -> HistorySnapshot | None:
        if self._index < 0:
            return None
        return self._snapshots[self._index]

    @property
    def can_undo(self) -> bool:
        return self._index > 0

    @property
    def can_redo(self) -> bool:
        return self._index < len(self._snapshots) - 1

    @property
    def pending(self) -> bool:
        """Whether a debounced recording is waiting to run."""
        return self._debouncer.pending

    # -------------------------------------------------------------------------
    # Recording
    # -------------------------------------------------------------------------

    def record(self, nodes: Iterable[Node], edges: Iterable[Edge]) -> bool:
        """Append a snapshot of the given state.

        Discarded when identical to the snapshot at the cursor. Otherwise the
        redo branch is pruned, the snapshot appended, and the oldest entries
        dropped beyond the limit.

        Returns:
            True if a snapshot was appended.
        """
        nodes = tuple(nodes)
        edges = tuple(edges)
        current = self.current
        if current is not None and current.same_state(nodes, edges):
            return False

        del self._snapshots[self._index + 1 :]
        self._snapshots.append(HistorySnapshot(nodes=nodes, edges=edges))
        overflow = len(self._snapshots) - self.limit
        if overflow > 0:
            del self._snapshots[:overflow]
        self._index = len(self._snapshots) - 1
        log.debug("history_recorded", index=self._index, size=len(self._snapshots))
        return True

    def schedule(self) -> None:
        """Request a debounced recording of the current state.

        Ignored while a snapshot is being restored.
        """
        if self._restoring or self._source is None:
            return
        self._debouncer.trigger()

    def tick(self) -> bool:
        """Run a due debounced recording. Returns True if one ran."""
        return self._debouncer.tick()

    def flush(self) -> bool:
        """Run a pending debounced recording now."""
        return self._debouncer.flush()

    def _record_current(self) -> None:
        if self._source is None:
            return
        nodes, edges = self._source()
        self.record(nodes, edges)

    # -------------------------------------------------------------------------
    # Undo / redo
    # -------------------------------------------------------------------------

    def undo(self) -> HistorySnapshot | None:
        """Step the cursor back and restore that snapshot.

        Pending edits are recorded first, so undo returns to the state before
        them. No-op at the oldest entry.

        Returns:
            The restored snapshot, or None if nothing changed.
        """
        self.flush()
        if not self.can_undo:
            return None
        self._index -= 1
        return self._apply(self._snapshots[self._index])

    def redo(self) -> HistorySnapshot | None:
        """Step the cursor forward and restore that snapshot. No-op at the newest entry."""
        self.flush()
        if not self.can_redo:
            return None
        self._index += 1
        return self._apply(self._snapshots[self._index])

    @contextmanager
    def restoring(self) -> Iterator[None]:
        """Suppress scheduling for the duration of a restoration."""
        previous = self._restoring
        self._restoring = True
        try:
            yield
        finally:
            self._restoring = previous

    def _apply(self, snapshot: HistorySnapshot) -> HistorySnapshot:
        if self._restore is not None:
            with self.restoring():
                self._restore(snapshot)
        log.debug("history_restored", index=self._index)
        return snapshot

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def clear(self) -> None:
        """Forget all snapshots and any pending recording."""
        self._debouncer.cancel()
        self._snapshots.clear()
        self._index = -1

    def close(self) -> None:
        """Cancel the debounce timer for good."""
        self._debouncer.close()
