"""Tick-driven timers for coalescing side effects.

The engine is single-threaded: the collaborator's event loop calls ``tick()``
and any timer that has come due fires synchronously inside that call. Both
timers take an injectable monotonic clock so tests control time directly.

A closed timer never fires again, which makes a timer that outlives its
owning view harmless.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable


class Debouncer:
    """Run *action* once, *delay* seconds after the last ``trigger()``.

    Every trigger pushes the deadline back, so a burst of triggers produces a
    single call after the burst goes quiet.
    """

    def __init__(
        self,
        delay: float,
        action: Callable[[], None],
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if delay < 0:
            raise ValueError("delay must be non-negative")
        self.delay = delay
        self._action = action
        self._clock = clock
        self._deadline: float | None = None
        self._closed = False

    @property
    def pending(self) -> bool:
        return self._deadline is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def trigger(self) -> None:
        """Schedule (or reschedule) the action."""
        if self._closed:
            return
        self._deadline = self._clock() + self.delay

    def tick(self) -> bool:
        """Fire the action if its deadline has passed. Returns True if it fired."""
        if self._deadline is None or self._closed:
            return False
        if self._clock() < self._deadline:
            return False
        return self.flush()

    def flush(self) -> bool:
        """Fire a pending action immediately. Returns True if it fired."""
        if self._deadline is None or self._closed:
            return False
        self._deadline = None
        self._action()
        return True

    def cancel(self) -> None:
        """Drop a pending action without running it."""
        self._deadline = None

    def close(self) -> None:
        """Cancel and refuse all future triggers."""
        self.cancel()
        self._closed = True


class IntervalTimer:
    """Run *action* every *interval* seconds while started."""

    def __init__(
        self,
        interval: float,
        action: Callable[[], None],
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        self._action = action
        self._clock = clock
        self._next_run: float | None = None
        self._closed = False

    @property
    def running(self) -> bool:
        return self._next_run is not None

    def start(self) -> None:
        if self._closed:
            return
        self._next_run = self._clock() + self.interval

    def tick(self) -> bool:
        """Fire if the interval has elapsed. Returns True if it fired.

        Missed periods are not replayed: one late tick fires once and the next
        run is scheduled a full interval from now.
        """
        if self._next_run is None or self._closed:
            return False
        now = self._clock()
        if now < self._next_run:
            return False
        self._next_run = now + self.interval
        self._action()
        return True

    def stop(self) -> None:
        self._next_run = None

    def close(self) -> None:
        self.stop()
        self._closed = True
