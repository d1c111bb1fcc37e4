"""Counters and duration statistics for the editor core.

Durations are aggregated per key (count, total, max) with only the most
recent samples kept, so a long editing session does not grow memory.

    from pixel_editor.image_engine.metrics import metrics
    metrics.inc("export.single")
    with metrics.timed("export.bundle_duration"):
        ...
    metrics.snapshot()["timings"]["export.bundle_duration"]["count"]
"""

from __future__ import annotations

import time
from collections import Counter, deque
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import Lock
from typing import Any

RECENT_SAMPLES = 64


@dataclass
class DurationStats:
    count: int = 0
    total: float = 0.0
    max: float = 0.0
    recent: deque[float] = field(default_factory=lambda: deque(maxlen=RECENT_SAMPLES))

    def add(self, seconds: float) -> None:
        self.count += 1
        self.total += seconds
        self.max = max(self.max, seconds)
        self.recent.append(seconds)

    def as_dict(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "total": self.total,
            "mean": self.total / self.count if self.count else 0.0,
            "max": self.max,
            "recent": list(self.recent),
        }


class EditorMetrics:
    def __init__(self) -> None:
        self._counters: Counter[str] = Counter()
        self._durations: dict[str, DurationStats] = {}
        self._lock = Lock()

    def inc(self, key: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[key] += int(amount)

    def count(self, key: str) -> int:
        with self._lock:
            return self._counters[key]

    def observe(self, key: str, seconds: float) -> None:
        with self._lock:
            self._durations.setdefault(key, DurationStats()).add(float(seconds))

    @contextmanager
    def timed(self, key: str) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            self.observe(key, time.perf_counter() - start)

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "counters": dict(self._counters),
                "timings": {k: v.as_dict() for k, v in self._durations.items()},
            }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._durations.clear()


metrics = EditorMetrics()

__all__ = ["DurationStats", "EditorMetrics", "RECENT_SAMPLES", "metrics"]
