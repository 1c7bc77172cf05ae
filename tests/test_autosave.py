"""
Tests for the Auto-Save Scheduler
=================================
"""

from __future__ import annotations

from unittest.mock import MagicMock

from conftest import FakeTimerFactory
from snippet_composer.composer.autosave import AutoSaveScheduler


class TestAutoSaveScheduler:
    """Keyed debounce timers."""

    def test_schedule_starts_daemon_timer(self, timer_factory: FakeTimerFactory) -> None:
        scheduler = AutoSaveScheduler(delay=3.0, timer_factory=timer_factory)
        scheduler.schedule("d-1", MagicMock())

        timer = timer_factory.timers[0]
        assert timer.interval == 3.0
        assert timer.started is True
        assert timer.daemon is True
        assert scheduler.is_pending("d-1")

    def test_rescheduling_coalesces(self, timer_factory: FakeTimerFactory) -> None:
        scheduler = AutoSaveScheduler(delay=3.0, timer_factory=timer_factory)
        first, second = MagicMock(), MagicMock()

        scheduler.schedule("d-1", first)
        scheduler.schedule("d-1", second)

        assert timer_factory.timers[0].cancelled is True
        assert len(timer_factory.live) == 1

        # the superseded timer woke up anyway
        timer_factory.timers[0].fire()
        first.assert_not_called()

        timer_factory.timers[1].fire()
        second.assert_called_once()
        assert not scheduler.is_pending("d-1")

    def test_keys_are_independent(self, timer_factory: FakeTimerFactory) -> None:
        scheduler = AutoSaveScheduler(delay=3.0, timer_factory=timer_factory)
        scheduler.schedule("d-1", MagicMock())
        scheduler.schedule("d-2", MagicMock())

        assert scheduler.cancel("d-1") is True
        assert not scheduler.is_pending("d-1")
        assert scheduler.is_pending("d-2")

    def test_cancel_prevents_callback(self, timer_factory: FakeTimerFactory) -> None:
        scheduler = AutoSaveScheduler(delay=3.0, timer_factory=timer_factory)
        callback = MagicMock()
        scheduler.schedule("d-1", callback)

        assert scheduler.cancel("d-1") is True
        timer_factory.timers[0].fire()

        callback.assert_not_called()
        assert scheduler.cancel("d-1") is False

    def test_cancel_all(self, timer_factory: FakeTimerFactory) -> None:
        scheduler = AutoSaveScheduler(delay=3.0, timer_factory=timer_factory)
        scheduler.schedule("d-1", MagicMock())
        scheduler.schedule("d-2", MagicMock())

        scheduler.cancel_all()

        assert timer_factory.live == []

    def test_failing_callback_is_contained(self, timer_factory: FakeTimerFactory) -> None:
        scheduler = AutoSaveScheduler(delay=3.0, timer_factory=timer_factory)
        scheduler.schedule("d-1", MagicMock(side_effect=RuntimeError("store down")))

        timer_factory.timers[0].fire()

        assert not scheduler.is_pending("d-1")
