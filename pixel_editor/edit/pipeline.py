"""Ordered filter chain with per-filter failure isolation.

`apply_all` always starts from the given original: a run never feeds on the
output of a previous run. A filter that raises is skipped for this run (the
chain continues with the buffer it received) and the failure is recorded in
`last_errors`.
"""

from __future__ import annotations

import threading
from collections.abc import Generator, Iterable
from typing import Any

from pixel_editor.config import DEFAULT_CONFIG, EditorConfig
from pixel_editor.errors import FilterError
from pixel_editor.filters import FILTER_TYPES, Filter, create_default_filters, create_filter
from pixel_editor.image_engine.buffer import PixelBuffer
from pixel_editor.image_engine.metrics import metrics
from pixel_editor.logger import get_logger

_logger = get_logger("pipeline")

PipelineStep = tuple[str, PixelBuffer]


class FilterPipeline:
    def __init__(self, filters: Iterable[Filter] | None = None, config: EditorConfig = DEFAULT_CONFIG) -> None:
        self.config = config
        self.filters: dict[str, Filter] = {}
        self.order: list[str] = []
        self.is_processing = False
        self.last_errors: list[FilterError] = []
        self.runs = 0
        self._lock = threading.Lock()
        for f in create_default_filters(config) if filters is None else filters:
            self.register_filter(f)

    # ---- registration ----
    def register_filter(self, flt: Filter) -> None:
        if flt.name in self.filters:
            _logger.debug("replacing filter %s", flt.name)
        else:
            self.order.append(flt.name)
        self.filters[flt.name] = flt

    def get_filter(self, name: str) -> Filter | None:
        return self.filters.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self.filters

    def __iter__(self):
        return (self.filters[n] for n in self.order)

    # ---- application ----
    def iter_apply(self, original: PixelBuffer) -> Generator[PipelineStep, None, PixelBuffer]:
        """Apply enabled filters one at a time, yielding (name, buffer) after each.

        The generator's return value is the final buffer. While a run is in
        progress, a second run returns `original` immediately without yielding.
        """
        with self._lock:
            if self.is_processing:
                _logger.warning("pipeline busy; returning original unchanged")
                metrics.inc("pipeline.rejected_busy")
                return original
            self.is_processing = True

        try:
            self.last_errors = []
            self.runs += 1
            metrics.inc("pipeline.runs")
            current = original.clone()
            for name in list(self.order):
                flt = self.filters.get(name)
                if flt is None or not flt.enabled:
                    continue
                try:
                    current = flt.apply(current)
                except Exception as e:
                    err = e if isinstance(e, FilterError) else FilterError(name, e)
                    self.last_errors.append(err)
                    metrics.inc("pipeline.filter_failures")
                    _logger.debug("filter %s failed", name, exc_info=True)
                yield name, current

            if self.last_errors:
                _logger.warning(
                    "%d filter(s) failed and were skipped: %s",
                    len(self.last_errors),
                    "; ".join(str(e) for e in self.last_errors),
                )
            return current
        finally:
            with self._lock:
                self.is_processing = False

    def apply_all(self, original: PixelBuffer) -> PixelBuffer:
        with metrics.timed("pipeline.apply_duration"):
            steps = self.iter_apply(original)
            while True:
                try:
                    next(steps)
                except StopIteration as stop:
                    return stop.value

    # ---- state changes ----
    def toggle(self, name: str) -> bool | None:
        flt = self.filters.get(name)
        if flt is None:
            _logger.warning("toggle: unknown filter %s", name)
            return None
        return flt.toggle()

    def enable(self, name: str) -> bool:
        flt = self.filters.get(name)
        if flt is None:
            _logger.warning("enable: unknown filter %s", name)
            return False
        flt.enable()
        return True

    def disable(self, name: str) -> bool:
        flt = self.filters.get(name)
        if flt is None:
            _logger.warning("disable: unknown filter %s", name)
            return False
        flt.disable()
        return True

    def set_value(self, name: str, value: Any) -> bool:
        flt = self.filters.get(name)
        if flt is None:
            _logger.warning("set_value: unknown filter %s", name)
            return False
        flt.set_value(value)
        return True

    def active_filters(self) -> list[Filter]:
        return [self.filters[n] for n in self.order if self.filters[n].enabled]

    def has_active_filters(self) -> bool:
        return any(f.enabled for f in self.filters.values())

    def disable_all(self) -> None:
        for f in self.filters.values():
            f.disable()

    def reset_all(self) -> None:
        for f in self.filters.values():
            f.reset()

    def reorder(self, names: list[str]) -> bool:
        """Replace the application order. Only an exact permutation of the current names is accepted."""
        names = list(names)
        if len(names) != len(self.order) or set(names) != set(self.filters) or len(set(names)) != len(names):
            _logger.warning("rejected filter order %s (have %s)", names, self.order)
            return False
        self.order = names
        return True

    # ---- persistence ----
    def export_config(self) -> dict[str, Any]:
        return {
            "order": list(self.order),
            "filters": {n: self.filters[n].serialize() for n in self.order},
        }

    def import_config(self, data: dict[str, Any]) -> bool:
        try:
            for name, state in (data.get("filters") or {}).items():
                flt = self.filters.get(name)
                if flt is None:
                    if name not in FILTER_TYPES:
                        _logger.warning("import_config: skipping unknown filter %s", name)
                        continue
                    flt = create_filter(name, self.config)
                    self.register_filter(flt)
                flt.load(state)
            order = data.get("order")
            if order:
                self.reorder(order)
            return True
        except (AttributeError, TypeError, ValueError) as e:
            _logger.error("import_config failed: %s", e)
            return False

    def filter_state(self) -> dict[str, dict[str, Any]]:
        """Fingerprint of every filter, keyed by name, for change detection."""
        return {n: self.filters[n].fingerprint() for n in self.order}

    def stats(self) -> dict[str, Any]:
        return {
            "total": len(self.filters),
            "active": len(self.active_filters()),
            "order": list(self.order),
            "runs": self.runs,
            "is_processing": self.is_processing,
            "last_errors": [str(e) for e in self.last_errors],
        }

    def cleanup(self) -> None:
        self.reset_all()
        self.last_errors = []
        with self._lock:
            self.is_processing = False


__all__ = ["FilterPipeline", "PipelineStep"]
