"""Per-document editing state and the registry that owns it.

Every open image gets its own `DocumentContext`: an immutable original, a
private filter pipeline and change detector, and the last derived buffer.
Nothing is shared between documents, so toggling a filter on one never
touches another.
"""

from __future__ import annotations

import re
import threading
import time
from collections.abc import Generator
from typing import Any

from pixel_editor.config import DEFAULT_CONFIG, EditorConfig
from pixel_editor.errors import ExportBusyError
from pixel_editor.image_engine.buffer import PixelBuffer
from pixel_editor.logger import get_logger

from .change_detector import ChangeDetector
from .pipeline import FilterPipeline, PipelineStep
from .scheduler import Scheduler

_logger = get_logger("documents")

_ID_UNSAFE = re.compile(r"[^a-zA-Z0-9_]")


class DocumentContext:
    def __init__(
        self,
        doc_id: str,
        original: PixelBuffer,
        name: str | None = None,
        config: EditorConfig = DEFAULT_CONFIG,
        scheduler: Scheduler | None = None,
        size: int | None = None,
        mime: str | None = None,
    ) -> None:
        self.id = doc_id
        self.name = name
        self.size = size
        self.mime = mime
        self.original: PixelBuffer | None = original.clone().freeze()
        self.pipeline = FilterPipeline(config=config)
        self.detector = ChangeDetector(config, scheduler)
        self.derived: PixelBuffer | None = None
        self.is_dirty = False
        self.last_modified = time.time()
        self.export_in_flight: str | None = None
        self._export_lock = threading.Lock()

    @property
    def stem(self) -> str:
        base = self.name or self.id
        return base.rsplit(".", 1)[0] if "." in base else base

    def iter_recompute(self) -> Generator[PipelineStep, None, PixelBuffer | None]:
        """Stepwise rebuild of the derived buffer, one filter per step.

        Returns the new derived buffer, or None without yielding when the
        pipeline is already running.
        """
        if self.original is None:
            raise ValueError(f"document {self.id} has been cleaned up")
        if self.pipeline.is_processing:
            _logger.warning("document %s: pipeline busy, recompute dropped", self.id)
            return None
        derived = yield from self.pipeline.iter_apply(self.original)
        self.derived = derived
        self.is_dirty = True
        self.last_modified = time.time()
        return derived

    def recompute_derived(self) -> PixelBuffer:
        """Rebuild the derived buffer from the original through the pipeline."""
        steps = self.iter_recompute()
        while True:
            try:
                next(steps)
            except StopIteration as stop:
                return stop.value if stop.value is not None else self.current_buffer()

    def current_buffer(self) -> PixelBuffer:
        if self.derived is not None:
            return self.derived
        if self.original is None:
            raise ValueError(f"document {self.id} has been cleaned up")
        return self.original

    def restore_original(self) -> None:
        if self.original is None:
            return
        self.derived = None
        self.is_dirty = False
        self.last_modified = time.time()

    def mark_saved(self) -> None:
        self.is_dirty = False

    def has_unsaved_changes(self) -> bool:
        return self.is_dirty

    # ---- export bookkeeping ----
    def begin_export(self, correlation_id: str) -> None:
        with self._export_lock:
            if self.export_in_flight is not None:
                raise ExportBusyError(f"document {self.id} already exporting ({self.export_in_flight})")
            self.export_in_flight = correlation_id

    def end_export(self, correlation_id: str) -> None:
        with self._export_lock:
            if self.export_in_flight == correlation_id:
                self.export_in_flight = None

    def info(self) -> dict[str, Any]:
        current = self.derived or self.original
        return {
            "id": self.id,
            "name": self.name,
            "size": self.size,
            "mime": self.mime,
            "last_modified": self.last_modified,
            "is_dirty": self.is_dirty,
            "has_original": self.original is not None,
            "has_derived": self.derived is not None,
            "dimensions": current.dimensions if current is not None else None,
            "active_filters": len(self.pipeline.active_filters()),
            "export_in_flight": self.export_in_flight,
        }

    def cleanup(self) -> None:
        self.pipeline.cleanup()
        self.detector.reset()
        self.original = None
        self.derived = None
        self.is_dirty = False

    def __repr__(self) -> str:
        return f"<DocumentContext {self.id} dirty={self.is_dirty}>"


class DocumentRegistry:
    def __init__(self, config: EditorConfig = DEFAULT_CONFIG, scheduler: Scheduler | None = None) -> None:
        self.config = config
        self.scheduler = scheduler
        self._contexts: dict[str, DocumentContext] = {}
        self._active_id: str | None = None
        self._lock = threading.RLock()

    def create_context(self, doc_id: str, buffer: PixelBuffer, name: str | None = None, **kwargs: Any) -> DocumentContext:
        with self._lock:
            existing = self._contexts.get(doc_id)
            if existing is not None:
                _logger.warning("context already exists for %s", doc_id)
                return existing
            ctx = DocumentContext(doc_id, buffer, name, self.config, self.scheduler, **kwargs)
            self._contexts[doc_id] = ctx
        _logger.debug("context created: %s", doc_id)
        return ctx

    def get(self, doc_id: str) -> DocumentContext | None:
        with self._lock:
            return self._contexts.get(doc_id)

    def has(self, doc_id: str) -> bool:
        with self._lock:
            return doc_id in self._contexts

    def __contains__(self, doc_id: object) -> bool:
        return self.has(doc_id)  # type: ignore[arg-type]

    def __len__(self) -> int:
        with self._lock:
            return len(self._contexts)

    def set_active(self, doc_id: str) -> bool:
        with self._lock:
            if doc_id not in self._contexts:
                _logger.warning("no context for %s; active document unchanged", doc_id)
                return False
            self._active_id = doc_id
        _logger.debug("active context: %s", doc_id)
        return True

    @property
    def active_id(self) -> str | None:
        return self._active_id

    def get_active(self) -> DocumentContext | None:
        with self._lock:
            if self._active_id is None:
                return None
            return self._contexts.get(self._active_id)

    def remove_context(self, doc_id: str) -> bool:
        with self._lock:
            ctx = self._contexts.pop(doc_id, None)
            if ctx is None:
                return False
            if self._active_id == doc_id:
                self._active_id = None
        ctx.cleanup()
        _logger.debug("context removed: %s", doc_id)
        return True

    def clear(self) -> None:
        with self._lock:
            contexts = list(self._contexts.values())
            self._contexts.clear()
            self._active_id = None
        for ctx in contexts:
            ctx.cleanup()

    def ids(self) -> list[str]:
        with self._lock:
            return list(self._contexts)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "total": len(self._contexts),
                "active_id": self._active_id,
                "has_active": self._active_id is not None,
                "dirty": sum(1 for c in self._contexts.values() if c.is_dirty),
            }

    @staticmethod
    def generate_id(name: str, size: int, mtime: int | float, timestamp: int | None = None) -> str:
        """Identifier of the form ``<ms timestamp>_<size>_<mtime>_<name>`` with unsafe characters as ``_``."""
        ts = int(time.time() * 1000) if timestamp is None else int(timestamp)
        return _ID_UNSAFE.sub("_", f"{ts}_{int(size)}_{int(mtime)}_{name}")


__all__ = ["DocumentContext", "DocumentRegistry"]
