"""Deferred-call abstraction used for debouncing.

The core never sleeps; it asks a `Scheduler` to run a callback later and keeps
the returned handle so that it can cancel it when a newer request arrives.
"""

from __future__ import annotations

import heapq
import itertools
import threading
from typing import Any, Callable, Protocol


class ScheduledCall(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, fn: Callable[[], Any]) -> ScheduledCall: ...


class ThreadingScheduler:
    """Runs callbacks on `threading.Timer` threads."""

    def call_later(self, delay: float, fn: Callable[[], Any]) -> threading.Timer:
        timer = threading.Timer(max(0.0, float(delay)), fn)
        timer.daemon = True
        timer.start()
        return timer


class _QtCall:
    def __init__(self, timer: Any, owner: QtScheduler) -> None:
        self._timer = timer
        self._owner = owner

    def cancel(self) -> None:
        self._owner._release(self._timer)
        try:
            self._timer.stop()
            self._timer.deleteLater()
        except RuntimeError:
            # underlying C++ object already gone
            pass


class QtScheduler:
    """Runs callbacks on the Qt event loop via single-shot `QTimer`s.

    Must be used from the thread that owns the event loop. Timers are kept
    referenced until they fire or are cancelled.
    """

    def __init__(self, parent: Any = None) -> None:
        self._parent = parent
        self._timers: set[Any] = set()

    def _release(self, timer: Any) -> None:
        self._timers.discard(timer)

    def call_later(self, delay: float, fn: Callable[[], Any]) -> _QtCall:
        from PySide6.QtCore import QTimer

        timer = QTimer(self._parent)
        timer.setSingleShot(True)

        def _fire() -> None:
            self._release(timer)
            timer.deleteLater()
            fn()

        timer.timeout.connect(_fire)
        self._timers.add(timer)
        timer.start(int(max(0.0, float(delay)) * 1000))
        return _QtCall(timer, self)


class _ManualCall:
    __slots__ = ("cancelled", "due", "fn")

    def __init__(self, due: float, fn: Callable[[], Any]) -> None:
        self.due = due
        self.fn = fn
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Virtual clock; callbacks run only inside `advance()`.

    Useful for hosts that drive their own loop and for deterministic tests.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: list[tuple[float, int, _ManualCall]] = []
        self._seq = itertools.count()
        self._lock = threading.Lock()

    def call_later(self, delay: float, fn: Callable[[], Any]) -> _ManualCall:
        with self._lock:
            call = _ManualCall(self.now + max(0.0, float(delay)), fn)
            heapq.heappush(self._queue, (call.due, next(self._seq), call))
        return call

    def pending(self) -> int:
        with self._lock:
            return sum(1 for _, _, c in self._queue if not c.cancelled)

    def advance(self, seconds: float = 0.0) -> int:
        """Move the clock forward and run every call that became due. Returns how many ran."""
        return self._run_until(self.now + max(0.0, float(seconds)))

    def _run_until(self, target: float) -> int:
        ran = 0
        while True:
            with self._lock:
                if not self._queue or self._queue[0][0] > target:
                    break
                due, _, call = heapq.heappop(self._queue)
                self.now = max(self.now, due)
            if call.cancelled:
                continue
            call.fn()
            ran += 1
        self.now = target
        return ran

    def run_all(self) -> int:
        """Run until nothing is queued, including calls scheduled by other calls."""
        ran = 0
        while True:
            with self._lock:
                if not self._queue:
                    return ran
                last = max(due for due, _, _ in self._queue)
            ran += self._run_until(max(last, self.now))


__all__ = ["ManualScheduler", "QtScheduler", "ScheduledCall", "Scheduler", "ThreadingScheduler"]
