"""
Debounced auto-save.

One pending save per key. Scheduling again for the same key
restarts the idle timer; cancelling is explicit and must happen whenever
the composer switches to another draft.
"""

from __future__ import annotations

import itertools
import threading
from typing import Callable, Optional, Protocol

from snippet_composer.logging_config import get_logger

logger = get_logger(__name__)


class TimerLike(Protocol):
    daemon: bool

    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[..., TimerLike]


class AutoSaveScheduler:
    """
    Cancellable, keyed debounce timers.

    Example:
        >>> scheduler = AutoSaveScheduler(delay=3.0)
        >>> scheduler.schedule("draft-1", lambda: save("draft-1"))
        >>> scheduler.cancel("draft-1")
        True
    """

    def __init__(
        self,
        delay: float,
        timer_factory: Optional[TimerFactory] = None
    ) -> None:
        self._delay = delay
        self._timer_factory: TimerFactory = timer_factory or threading.Timer
        self._lock = threading.Lock()
        self._tokens = itertools.count(1)
        self._pending: dict[str, tuple[int, TimerLike]] = {}

    def schedule(self, key: str, callback: Callable[[], None]) -> None:
        """(Re)start the idle timer for ``key``."""
        with self._lock:
            self._cancel_locked(key)
            token = next(self._tokens)
            timer = self._timer_factory(self._delay, self._fire, args=(key, token, callback))
            timer.daemon = True
            self._pending[key] = (token, timer)
            timer.start()

    def cancel(self, key: str) -> bool:
        """Drop the pending save for ``key``. Returns whether one existed."""
        with self._lock:
            return self._cancel_locked(key)

    def cancel_all(self) -> None:
        with self._lock:
            for key in list(self._pending):
                self._cancel_locked(key)

    def is_pending(self, key: str) -> bool:
        with self._lock:
            return key in self._pending

    def _cancel_locked(self, key: str) -> bool:
        entry = self._pending.pop(key, None)
        if entry is None:
            return False
        entry[1].cancel()
        return True

    def _fire(self, key: str, token: int, callback: Callable[[], None]) -> None:
        with self._lock:
            entry = self._pending.get(key)
            # superseded or cancelled after the timer thread already woke up
            if entry is None or entry[0] != token:
                return
            del self._pending[key]

        try:
            callback()
        except Exception:
            # timer threads have no caller to report to
            logger.exception("Auto-save callback failed", draft_key=key)
