"""Automatic saving into the auto-save slot.

Two triggers write the slot: a debounce after each change and a periodic
sweep. Neither runs before :meth:`AutoSaver.start` (nothing is saved while a
session is still being restored) or after :meth:`AutoSaver.close`.
"""

from __future__ import annotations

import json
import time
from typing import TYPE_CHECKING

from ideacanvas.graph.errors import StorageUnavailableError
from ideacanvas.observability import get_logger
from ideacanvas.persistence.codec import serialize
from ideacanvas.persistence.storage import AUTOSAVE_KEY
from ideacanvas.timers import Debouncer, IntervalTimer

if TYPE_CHECKING:
    from collections.abc import Callable

    from ideacanvas.graph.models import Session
    from ideacanvas.persistence.storage import KeyValueStore

log = get_logger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 1.0
DEFAULT_INTERVAL_SECONDS = 30.0


class AutoSaver:
    """Debounced and periodic writer of the auto-save slot.

    Args:
        store: Storage backend.
        snapshot: Returns the session to save.
        key: Slot to write; distinct from the explicit save slot.
        debounce: Quiet period after a change before saving.
        interval: Period of the background sweep.
        clock: Monotonic clock shared by both timers.
        on_error: Called with the failure when the store is unavailable.
    """

    def __init__(
        self,
        store: KeyValueStore,
        snapshot: Callable[[], Session],
        *,
        key: str = AUTOSAVE_KEY,
        debounce: float = DEFAULT_DEBOUNCE_SECONDS,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        on_error: Callable[[StorageUnavailableError], None] | None = None,
    ) -> None:
        self.key = key
        self._store = store
        self._snapshot = snapshot
        self._on_error = on_error
        self._debouncer = Debouncer(debounce, self.save_now, clock=clock)
        self._interval = IntervalTimer(interval, self.save_now, clock=clock)
        self._active = False
        self._last_saved: Session | None = None
        self.last_error: StorageUnavailableError | None = None

    @property
    def active(self) -> bool:
        return self._active

    def start(self) -> None:
        """Begin reacting to changes and start the periodic sweep."""
        self._active = True
        self._interval.start()

    def notify_change(self) -> None:
        if self._active:
            self._debouncer.trigger()

    def tick(self) -> bool:
        """Run whichever timer is due. Returns True if a save was attempted."""
        fired = self._debouncer.tick()
        return self._interval.tick() or fired

    def save_now(self) -> bool:
        """Write the current session unless it matches the last write.

        Returns:
            True if the slot was written.
        """
        if not self._active:
            return False
        session = self._snapshot()
        if session == self._last_saved:
            return False
        try:
            self._store.set(self.key, json.dumps(serialize(session)))
        except StorageUnavailableError as e:
            self.last_error = e
            log.warning("autosave_failed", key=self.key, error=e.reason)
            if self._on_error is not None:
                self._on_error(e)
            return False
        self._last_saved = session
        self.last_error = None
        log.debug("autosave_written", key=self.key, nodes=len(session.nodes))
        return True

    def mark_saved(self, session: Session) -> None:
        """Treat *session* as already written (e.g. it was just restored from the slot)."""
        self._last_saved = session

    def close(self) -> None:
        """Cancel both timers permanently."""
        self._active = False
        self._debouncer.close()
        self._interval.close()
