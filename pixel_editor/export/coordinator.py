"""Export orchestration: worker dispatch, fallback, timeout, naming.

Every operation first tries the worker pool (when one is configured and
healthy). Any worker failure falls back to running the same task handler
directly; both paths share one deadline, and a result that arrives after it
is dropped.
"""

from __future__ import annotations

import concurrent.futures
import itertools
import threading
import time
import uuid
from collections.abc import Callable, Sequence
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any

from pixel_editor.config import DEFAULT_CONFIG, EditorConfig
from pixel_editor.edit.documents import DocumentContext
from pixel_editor.errors import ExportError, ExportSizeError, ExportTimeoutError, ValidationError
from pixel_editor.image_engine.buffer import PixelBuffer
from pixel_editor.image_engine.decoder import Codec, VipsCodec
from pixel_editor.image_engine.metrics import metrics
from pixel_editor.logger import get_logger

from .archive import build_zip
from .ico_compat import IcoCompatibility, SizeValidation
from .naming import bundle_archive_name, bundle_entry_name, derived_filename, sanitize_filename
from .tasks import ExportTask, TaskKind, run_task
from .worker_pool import WorkerPool

_logger = get_logger("export")

EXPORT_FAILED = "The image could not be exported."
NO_ICONS = "Could not generate any icon."
NO_SIZES = "No icon sizes were selected."
INVALID_SIZES = "Some icon sizes are not supported."

BatchProgress = Callable[[int, float], None]


@dataclass
class ExportResult:
    filename: str
    data: bytes
    mime: str
    entries: list[str] = field(default_factory=list)
    generated_sizes: list[int] = field(default_factory=list)
    errors: list[ExportSizeError] = field(default_factory=list)
    via_worker: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def is_archive(self) -> bool:
        return self.mime == "application/zip"


class ExportCoordinator:
    def __init__(
        self,
        config: EditorConfig = DEFAULT_CONFIG,
        codec: Codec | None = None,
        worker_pool: WorkerPool | None = None,
    ) -> None:
        self.config = config
        self.codec: Codec = codec if codec is not None else VipsCodec()
        self.worker_pool = worker_pool
        self._sync_ids = itertools.count(1)

    # ---- dispatch ----
    def _run(
        self,
        kind: TaskKind,
        data: dict[str, Any],
        on_progress: Callable[[dict[str, Any]], None] | None = None,
    ) -> tuple[Any, bool]:
        """Run one task; returns (result, via_worker)."""
        deadline = time.monotonic() + float(self.config.export_timeout_s)

        pool = self.worker_pool
        if self.config.worker_enabled and pool is not None and pool.is_available():
            fut: Future | None = None
            try:
                fut = pool.submit(kind, data, on_progress)
                result = fut.result(timeout=max(0.0, deadline - time.monotonic()))
                metrics.inc("export.worker_success")
                return result, True
            except concurrent.futures.TimeoutError:
                if fut is not None:
                    pool.discard(fut.task_id)  # type: ignore[attr-defined]
                metrics.inc("export.timeouts")
                _logger.error("%s timed out after %.1fs on the worker", kind.value, self.config.export_timeout_s)
                raise ExportTimeoutError(f"{kind.value} exceeded {self.config.export_timeout_s}s") from None
            except Exception as e:
                metrics.inc("export.fallbacks")
                _logger.warning("worker failed for %s (%s); running synchronously", kind.value, e)

        return self._run_sync(kind, data, on_progress, deadline), False

    def _run_sync(
        self,
        kind: TaskKind,
        data: dict[str, Any],
        on_progress: Callable[[dict[str, Any]], None] | None,
        deadline: float,
    ) -> Any:
        task = ExportTask(next(self._sync_ids), kind, data, on_progress)
        fut: Future = Future()

        def _target() -> None:
            try:
                fut.set_result(run_task(task, self.codec))
            except Exception as e:
                fut.set_exception(e)

        threading.Thread(target=_target, name="export-sync", daemon=True).start()
        try:
            return fut.result(timeout=max(0.0, deadline - time.monotonic()))
        except concurrent.futures.TimeoutError:
            metrics.inc("export.timeouts")
            _logger.error("%s timed out after %.1fs", kind.value, self.config.export_timeout_s)
            raise ExportTimeoutError(f"{kind.value} exceeded {self.config.export_timeout_s}s") from None

    # ---- operations ----
    def export_single(self, ctx: DocumentContext, mime: str, quality: int | None = None) -> ExportResult:
        """Encode the document's current image (derived, else original)."""
        correlation_id = uuid.uuid4().hex
        ctx.begin_export(correlation_id)
        try:
            buffer = ctx.current_buffer()
            if quality is None:
                quality = self.config.quality_for(mime)
            with metrics.timed("export.single_duration"):
                try:
                    data, via_worker = self._run(TaskKind.COMPRESS, {"buffer": buffer, "mime": mime, "quality": quality})
                except ExportTimeoutError:
                    raise
                except Exception as e:
                    _logger.error("export of %s as %s failed: %s", ctx.id, mime, e)
                    metrics.inc("export.failed")
                    raise ExportError(EXPORT_FAILED) from e
            ctx.mark_saved()
            metrics.inc("export.single")
            return ExportResult(
                filename=derived_filename(ctx.name or ctx.id, mime),
                data=data,
                mime=mime,
                via_worker=via_worker,
            )
        finally:
            ctx.end_export(correlation_id)

    def plan_bundle_sizes(self, ctx: DocumentContext, sizes: Sequence[Any] | None = None) -> SizeValidation:
        """Validate `sizes` against the document's current resolution.

        `sizes=None` selects the default sizes that the resolution supports.
        """
        resolution = float(self.config.max_scale)
        flt = ctx.pipeline.get_filter("resolution")
        if flt is not None and flt.enabled:
            resolution = float(flt.value)
        return IcoCompatibility(self.config, resolution).validate(sizes)

    def export_bundle(self, ctx: DocumentContext, sizes: Sequence[int] | None = None) -> ExportResult:
        """Square PNG icons at several sizes, always sampled from the original image."""
        plan = self.plan_bundle_sizes(ctx, sizes)
        for w in plan.warnings:
            _logger.warning("icon bundle for %s: %s", ctx.id, w)
        if not plan.valid:
            for e in plan.errors:
                _logger.error("icon bundle for %s: %s", ctx.id, e)
            raise ExportError(INVALID_SIZES if sizes else NO_SIZES)
        requested = plan.sizes
        hidden = {int(s) for s in self.config.hidden_sizes}
        all_sizes = sorted(hidden | set(requested))

        correlation_id = uuid.uuid4().hex
        ctx.begin_export(correlation_id)
        try:
            if ctx.original is None:
                raise ExportError(EXPORT_FAILED)
            with metrics.timed("export.bundle_duration"):
                try:
                    raw, via_worker = self._run(
                        TaskKind.CREATE_MULTI_SIZE, {"buffer": ctx.original, "sizes": all_sizes, "mime": "image/png"}
                    )
                except ExportTimeoutError:
                    raise
                except Exception as e:
                    _logger.error("icon bundle for %s failed: %s", ctx.id, e)
                    metrics.inc("export.failed")
                    raise ExportError(NO_ICONS) from e

            stem = sanitize_filename(ctx.stem)
            errors: list[ExportSizeError] = []
            generated: list[int] = []
            visible: list[tuple[str, bytes]] = []
            for entry in raw:
                size = int(entry["size"])
                if "error" in entry:
                    err = ExportSizeError(size, entry["error"])
                    _logger.warning("%s", err)
                    errors.append(err)
                    continue
                generated.append(size)
                if size in hidden:
                    continue
                visible.append((bundle_entry_name(stem, size), entry["data"]))

            if not visible:
                metrics.inc("export.failed")
                raise ExportError(NO_ICONS)
            metrics.inc("export.bundle")
            names = [name for name, _ in visible]
            if len(visible) == 1:
                name, data = visible[0]
                return ExportResult(
                    filename=name,
                    data=data,
                    mime="image/png",
                    entries=names,
                    generated_sizes=generated,
                    errors=errors,
                    via_worker=via_worker,
                    warnings=plan.warnings,
                )
            return ExportResult(
                filename=bundle_archive_name(stem),
                data=build_zip(visible),
                mime="application/zip",
                entries=names,
                generated_sizes=generated,
                errors=errors,
                via_worker=via_worker,
                warnings=plan.warnings,
            )
        finally:
            ctx.end_export(correlation_id)

    def batch_compress(
        self,
        buffers: Sequence[PixelBuffer],
        mime: str,
        quality: int | None = None,
        progress: BatchProgress | None = None,
        options: Sequence[dict[str, Any] | None] | None = None,
    ) -> list[dict[str, Any]]:
        """Encode many buffers; returns exactly one result dict per input."""
        if not buffers:
            return []
        if quality is None:
            quality = self.config.quality_for(mime)

        def _on_progress(data: dict[str, Any]) -> None:
            if progress is not None:
                progress(int(data["index"]), float(data["progress"]))

        payload = {
            "buffers": list(buffers),
            "options": list(options or []),
            "default_options": {"mime": mime, "quality": quality},
        }
        try:
            results, _ = self._run(TaskKind.BATCH_COMPRESS, payload, _on_progress)
        except ExportTimeoutError:
            raise
        except Exception as e:
            _logger.error("batch compression failed: %s", e)
            raise ExportError(EXPORT_FAILED) from e
        if len(results) != len(buffers):
            raise ValidationError(f"batch returned {len(results)} results for {len(buffers)} inputs")
        metrics.inc("export.batch_items", len(results))
        return results

    def shutdown(self) -> None:
        if self.worker_pool is not None:
            self.worker_pool.shutdown()


__all__ = ["EXPORT_FAILED", "INVALID_SIZES", "NO_ICONS", "NO_SIZES", "ExportCoordinator", "ExportResult"]
