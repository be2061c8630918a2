"""Tests for the tick-driven debounce and interval timers."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from ideacanvas.timers import Debouncer, IntervalTimer

if TYPE_CHECKING:
    from tests.fixtures.canvas import FakeClock


class TestDebouncer:
    def test_fires_once_after_quiet_period(self, clock: FakeClock) -> None:
        calls: list[int] = []
        debouncer = Debouncer(1.0, lambda: calls.append(1), clock=clock)
        debouncer.trigger()
        clock.advance(0.5)
        assert not debouncer.tick()
        clock.advance(0.5)
        assert debouncer.tick()
        assert calls == [1]
        assert not debouncer.tick()

    def test_trigger_pushes_deadline_back(self, clock: FakeClock) -> None:
        """A burst of triggers collapses into one call."""
        calls: list[int] = []
        debouncer = Debouncer(1.0, lambda: calls.append(1), clock=clock)
        for _ in range(5):
            debouncer.trigger()
            clock.advance(0.9)
            debouncer.tick()
        assert calls == []
        clock.advance(0.2)
        debouncer.tick()
        assert calls == [1]

    def test_flush_and_cancel(self, clock: FakeClock) -> None:
        calls: list[int] = []
        debouncer = Debouncer(1.0, lambda: calls.append(1), clock=clock)
        debouncer.trigger()
        assert debouncer.pending
        assert debouncer.flush()
        assert calls == [1]
        debouncer.trigger()
        debouncer.cancel()
        clock.advance(5)
        assert not debouncer.tick()
        assert calls == [1]

    def test_closed_never_fires(self, clock: FakeClock) -> None:
        calls: list[int] = []
        debouncer = Debouncer(1.0, lambda: calls.append(1), clock=clock)
        debouncer.trigger()
        debouncer.close()
        debouncer.trigger()
        clock.advance(5)
        assert not debouncer.tick()
        assert not debouncer.flush()
        assert debouncer.closed
        assert calls == []

    def test_negative_delay_rejected(self) -> None:
        with pytest.raises(ValueError):
            Debouncer(-1, lambda: None)


class TestIntervalTimer:
    def test_fires_every_interval(self, clock: FakeClock) -> None:
        calls: list[float] = []
        timer = IntervalTimer(30.0, lambda: calls.append(clock()), clock=clock)
        timer.start()
        clock.advance(29)
        assert not timer.tick()
        clock.advance(1)
        assert timer.tick()
        clock.advance(30)
        assert timer.tick()
        assert calls == [30.0, 60.0]

    def test_missed_periods_not_replayed(self, clock: FakeClock) -> None:
        calls: list[int] = []
        timer = IntervalTimer(10.0, lambda: calls.append(1), clock=clock)
        timer.start()
        clock.advance(100)
        assert timer.tick()
        assert not timer.tick()
        assert calls == [1]

    def test_not_started_does_nothing(self, clock: FakeClock) -> None:
        timer = IntervalTimer(1.0, lambda: None, clock=clock)
        clock.advance(10)
        assert not timer.running
        assert not timer.tick()

    def test_close_is_permanent(self, clock: FakeClock) -> None:
        calls: list[int] = []
        timer = IntervalTimer(1.0, lambda: calls.append(1), clock=clock)
        timer.start()
        timer.close()
        timer.start()
        clock.advance(10)
        assert not timer.tick()
        assert calls == []

    def test_interval_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            IntervalTimer(0, lambda: None)
