from __future__ import annotations

from collections.abc import Generator, Sequence
from concurrent.futures import Future
from functools import partial
from typing import Any

from PySide6.QtCore import QObject, Signal, Slot

from pixel_editor.edit.documents import DocumentContext, DocumentRegistry
from pixel_editor.edit.scheduler import QtScheduler, Scheduler
from pixel_editor.export.coordinator import ExportCoordinator, ExportResult
from pixel_editor.image_engine.buffer import PixelBuffer
from pixel_editor.logger import get_logger

from .document_state import DocumentState

_logger = get_logger("app")


class DocumentController(QObject):
    """Glue between the document registry, change detection and `DocumentState`.

    A recompute always rebuilds the derived image, but the preview is only
    republished when the detector reports a change. The first recompute of a
    document has no baseline to compare against, so it is published directly.
    """

    # doc_id, changed, buffer; emitted from whatever thread resolved the detection
    _detectionFinished = Signal(str, bool, object)

    def __init__(
        self,
        registry: DocumentRegistry,
        state: DocumentState | None = None,
        coordinator: ExportCoordinator | None = None,
        scheduler: Scheduler | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self.registry = registry
        self.state = state if state is not None else DocumentState(self)
        self.coordinator = coordinator
        self.published = 0
        self._scheduler: Scheduler = scheduler or registry.scheduler or QtScheduler(self)
        self._running: dict[str, Generator] = {}
        self._detectionFinished.connect(self._on_detection_finished)

    # ---- documents ----
    def open(self, doc_id: str, buffer: PixelBuffer, name: str | None = None) -> DocumentContext:
        ctx = self.registry.create_context(doc_id, buffer, name)
        self.activate(doc_id)
        return ctx

    @Slot(str, result=bool)
    def activate(self, doc_id: str) -> bool:
        if not self.registry.set_active(doc_id):
            return False
        ctx = self.registry.get(doc_id)
        if ctx is not None:
            self._publish(ctx, ctx.current_buffer())
        return True

    def close(self, doc_id: str) -> bool:
        removed = self.registry.remove_context(doc_id)
        if removed and self.registry.get_active() is None:
            self.state._set_active_id(None)
            self.state._set_size(0, 0)
            self.state._set_dirty(False)
        return removed

    # ---- filters ----
    def _active(self) -> DocumentContext | None:
        ctx = self.registry.get_active()
        if ctx is None:
            _logger.debug("no active document")
        return ctx

    def set_filter_enabled(self, name: str, enabled: bool) -> Future | None:
        ctx = self._active()
        if ctx is None:
            return None
        ok = ctx.pipeline.enable(name) if enabled else ctx.pipeline.disable(name)
        return self.recompute() if ok else None

    def set_filter_value(self, name: str, value: Any) -> Future | None:
        ctx = self._active()
        if ctx is None or not ctx.pipeline.set_value(name, value):
            return None
        return self.recompute()

    def recompute(self) -> Future | None:
        """Rebuild the active document's derived image, one filter per scheduler turn.

        Returns a Future[bool] that resolves once change detection has run
        (True right away for the first, directly published recompute). A
        request made while the document is still recomputing is dropped and
        returns None.
        """
        ctx = self._active()
        if ctx is None:
            return None
        if ctx.id in self._running or ctx.pipeline.is_processing:
            _logger.warning("document %s: recompute already running, request dropped", ctx.id)
            return None
        steps = ctx.iter_recompute()
        result: Future = Future()
        self._running[ctx.id] = steps
        self.state._set_processing(True)
        self._scheduler.call_later(0, partial(self._step, ctx, steps, result))
        return result

    def _step(self, ctx: DocumentContext, steps: Generator, result: Future) -> None:
        if self.registry.get(ctx.id) is not ctx:
            steps.close()
            self._end_run(ctx)
            result.cancel()
            return
        try:
            name, _ = next(steps)
        except StopIteration as stop:
            self._end_run(ctx)
            if stop.value is None:
                result.set_result(False)
            else:
                self._detect(ctx, stop.value, result)
            return
        except Exception as e:
            _logger.error("document %s: recompute failed: %s", ctx.id, e)
            self._end_run(ctx)
            result.set_exception(e)
            return
        _logger.debug("document %s: applied %s", ctx.id, name)
        self._scheduler.call_later(0, partial(self._step, ctx, steps, result))

    def _end_run(self, ctx: DocumentContext) -> None:
        self._running.pop(ctx.id, None)
        if not self._running:
            self.state._set_processing(False)

    def _detect(self, ctx: DocumentContext, derived: PixelBuffer, result: Future) -> None:
        filter_state = ctx.pipeline.filter_state()
        if not ctx.detector.has_previous_state():
            ctx.detector.evaluate(derived, derived.dimensions, filter_state)
            self._publish(ctx, derived)
            result.set_result(True)
            return

        fut = ctx.detector.detect_changes(derived, derived.dimensions, filter_state)
        doc_id = ctx.id

        def _done(f: Future) -> None:
            if f.cancelled():
                result.cancel()
                return
            exc = f.exception()
            if exc is not None:
                result.set_exception(exc)
                return
            changed = bool(f.result())
            self._detectionFinished.emit(doc_id, changed, derived)
            result.set_result(changed)

        fut.add_done_callback(_done)

    @Slot(str, bool, object)
    def _on_detection_finished(self, doc_id: str, changed: bool, buffer: PixelBuffer) -> None:
        ctx = self.registry.get(doc_id)
        if ctx is None or not changed:
            return
        if self.registry.active_id != doc_id:
            # switched away meanwhile; activate() republishes on return
            return
        self._publish(ctx, buffer)

    def _publish(self, ctx: DocumentContext, buffer: PixelBuffer) -> None:
        self.published += 1
        self.state._set_active_id(ctx.id)
        self.state._set_size(buffer.width, buffer.height)
        self.state._set_dirty(ctx.is_dirty)
        self.state.bufferChanged.emit(buffer)

    # ---- export ----
    def export_active(self, mime: str, quality: int | None = None) -> ExportResult | None:
        ctx = self._active()
        if ctx is None or self.coordinator is None:
            return None
        self.state._set_processing(True)
        try:
            result = self.coordinator.export_single(ctx, mime, quality)
        finally:
            self.state._set_processing(bool(self._running))
        self.state._set_dirty(ctx.is_dirty)
        return result

    def export_icons(self, sizes: Sequence[int] | None = None) -> ExportResult | None:
        ctx = self._active()
        if ctx is None or self.coordinator is None:
            return None
        self.state._set_processing(True)
        try:
            return self.coordinator.export_bundle(ctx, sizes)
        finally:
            self.state._set_processing(bool(self._running))
