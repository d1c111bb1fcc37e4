"""Debounced "did the derived image change?" check.

`detect_changes` coalesces bursts of requests: every call re-arms one timer,
and when it fires a single comparison runs against the most recent arguments.
All futures handed out during the burst resolve with that one result.

Dimensions and filter fingerprints are compared exactly. Pixel data is
only sampled at a fixed stride, so an edit that touches no sampled pixel
and changes neither dimensions nor filter state is reported as unchanged.
"""

from __future__ import annotations

import enum
import functools
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any

import numpy as np

from pixel_editor.config import DEFAULT_CONFIG, EditorConfig
from pixel_editor.image_engine.buffer import RGBA_CHANNELS, PixelBuffer
from pixel_editor.image_engine.metrics import metrics
from pixel_editor.logger import get_logger

from .scheduler import ScheduledCall, Scheduler, ThreadingScheduler

_logger = get_logger("change_detector")

FilterState = dict[str, dict[str, Any]]


class DetectorState(enum.Enum):
    IDLE = "idle"
    PENDING = "pending"
    COMPARING = "comparing"
    UNCHANGED = "unchanged"
    CHANGED = "changed"


@dataclass
class _Snapshot:
    dimensions: tuple[int, int]
    filters: FilterState
    pixels: np.ndarray  # (N, 4) copy


def _copy_filter_state(state: FilterState | None) -> FilterState:
    return {name: dict(fp) for name, fp in (state or {}).items()}


class ChangeDetector:
    _CONFIGURABLE = ("debounce_ms", "pixel_tolerance", "dimension_tolerance", "auto_detection", "sample_target")

    def __init__(self, config: EditorConfig = DEFAULT_CONFIG, scheduler: Scheduler | None = None) -> None:
        self.debounce_ms = int(config.debounce_ms)
        self.pixel_tolerance = int(config.pixel_tolerance)
        self.dimension_tolerance = int(config.dimension_tolerance)
        self.auto_detection = bool(config.auto_detection)
        self.sample_target = int(config.sample_target)
        self.scheduler: Scheduler = scheduler or ThreadingScheduler()

        self.state = DetectorState.IDLE
        self.last_result: bool | None = None
        self.evaluations = 0

        self._previous: _Snapshot | None = None
        self._lock = threading.RLock()
        self._pending: ScheduledCall | None = None
        self._token = 0
        self._waiters: list[Future] = []
        self._latest: tuple[PixelBuffer, tuple[int, int] | None, FilterState | None] | None = None

    # ---- debounced entry point ----
    def detect_changes(
        self,
        buffer: PixelBuffer,
        dimensions: tuple[int, int] | None = None,
        filter_state: FilterState | None = None,
    ) -> Future:
        """Schedule a comparison after the quiet period; returns a Future[bool]."""
        fut: Future = Future()
        with self._lock:
            if self._pending is not None:
                self._pending.cancel()
                metrics.inc("detector.coalesced")
            self._token += 1
            self._latest = (buffer, dimensions, _copy_filter_state(filter_state))
            self._waiters.append(fut)
            self.state = DetectorState.PENDING
            self._pending = self.scheduler.call_later(
                self.debounce_ms / 1000.0, functools.partial(self._fire, self._token)
            )
        return fut

    def _fire(self, token: int) -> None:
        with self._lock:
            # a newer request re-armed the timer after this one was already running
            if token != self._token or self._latest is None:
                return
            args = self._latest
            waiters = self._waiters
            self._latest = None
            self._waiters = []
            self._pending = None
        try:
            result = self.evaluate(*args)
        except Exception as e:
            _logger.exception("change detection failed")
            with self._lock:
                self.state = DetectorState.IDLE
            for w in waiters:
                if not w.done():
                    w.set_exception(e)
            return
        for w in waiters:
            if not w.done():
                w.set_result(result)
        with self._lock:
            if self._latest is None:
                self.state = DetectorState.IDLE

    # ---- comparison ----
    def evaluate(
        self,
        buffer: PixelBuffer,
        dimensions: tuple[int, int] | None = None,
        filter_state: FilterState | None = None,
    ) -> bool:
        """Compare against the previous snapshot and record the new one.

        The first call only records a baseline and reports no change.
        """
        dims = tuple(dimensions) if dimensions is not None else buffer.dimensions
        filters = _copy_filter_state(filter_state)
        with self._lock:
            self.state = DetectorState.COMPARING
            self.evaluations += 1
            snapshot = _Snapshot(dims, filters, self._sample_source(buffer))

            previous = self._previous
            self._previous = snapshot
            if previous is None:
                _logger.debug("baseline recorded (%dx%d)", dims[0], dims[1])
                self.last_result = False
                self.state = DetectorState.IDLE
                return False

            changed = (
                self._dimensions_changed(previous.dimensions, dims)
                or self._filters_changed(previous.filters, filters)
                or (self.auto_detection and self._pixels_changed(previous.pixels, snapshot.pixels))
            )
            self.state = DetectorState.CHANGED if changed else DetectorState.UNCHANGED
            metrics.inc("detector.changed" if changed else "detector.unchanged")
            self.last_result = changed
            return changed

    def _sample_source(self, buffer: PixelBuffer) -> np.ndarray:
        return buffer.pixels.reshape(-1, RGBA_CHANNELS).copy()

    def _dimensions_changed(self, before: tuple[int, int], after: tuple[int, int]) -> bool:
        tol = self.dimension_tolerance
        return abs(before[0] - after[0]) > tol or abs(before[1] - after[1]) > tol

    def _filters_changed(self, before: FilterState, after: FilterState) -> bool:
        for name, fp in after.items():
            if before.get(name) != fp:
                return True
        return False

    def sample_stride(self, byte_length: int) -> int:
        """Pixels skipped between samples for a buffer of `byte_length` bytes."""
        return max(1, byte_length // max(1, self.sample_target))

    def _pixels_changed(self, before: np.ndarray, after: np.ndarray) -> bool:
        if before.shape != after.shape:
            return True
        stride = self.sample_stride(after.size)
        a = before[::stride].astype(np.int16)
        b = after[::stride].astype(np.int16)
        return bool(np.any(np.abs(a - b) > self.pixel_tolerance))

    # ---- lifecycle ----
    def has_previous_state(self) -> bool:
        return self._previous is not None

    def reset(self) -> None:
        with self._lock:
            if self._pending is not None:
                self._pending.cancel()
            self._pending = None
            self._token += 1
            waiters = self._waiters
            self._waiters = []
            self._latest = None
            self._previous = None
            self.last_result = None
            self.state = DetectorState.IDLE
        for w in waiters:
            w.cancel()

    def configure(self, **overrides: Any) -> None:
        for key, value in overrides.items():
            if key not in self._CONFIGURABLE:
                _logger.warning("configure: unknown option %s", key)
                continue
            setattr(self, key, type(getattr(self, key))(value))

    def info(self) -> dict[str, Any]:
        prev = self._previous
        return {
            "state": self.state.value,
            "has_previous_state": prev is not None,
            "previous_dimensions": prev.dimensions if prev is not None else None,
            "pending": len(self._waiters),
            "evaluations": self.evaluations,
            "last_result": self.last_result,
            "config": {k: getattr(self, k) for k in self._CONFIGURABLE},
        }


__all__ = ["ChangeDetector", "DetectorState", "FilterState"]
