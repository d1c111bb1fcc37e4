"""Export task handlers.

The same handlers run on the worker thread and on the synchronous fallback
path, so both produce identical output for identical input.
"""

from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pixel_editor.image_engine.buffer import PixelBuffer
from pixel_editor.image_engine.decoder import Codec
from pixel_editor.image_engine.resample import resize_buffer
from pixel_editor.logger import get_logger

_logger = get_logger("export")

ProgressSink = Callable[[dict[str, Any]], None]


class TaskKind(str, enum.Enum):
    COMPRESS = "compress"
    RESIZE = "resize"
    CREATE_MULTI_SIZE = "createMultiSize"
    BATCH_COMPRESS = "batchCompress"


@dataclass
class ExportTask:
    id: int
    kind: TaskKind
    payload: dict[str, Any] = field(default_factory=dict)
    progress_sink: ProgressSink | None = None

    def report(self, data: dict[str, Any]) -> None:
        if self.progress_sink is not None:
            self.progress_sink(data)


def _compress(task: ExportTask, codec: Codec) -> bytes:
    p = task.payload
    return codec.encode(p["buffer"], p.get("mime", "image/png"), p.get("quality"))


def _resize(task: ExportTask, codec: Codec) -> bytes:
    p = task.payload
    resized = resize_buffer(p["buffer"], int(p["width"]), int(p["height"]), p.get("quality", "high"))
    return codec.encode(resized, p.get("mime", "image/png"), None)


def _create_multi_size(task: ExportTask, codec: Codec) -> list[dict[str, Any]]:
    """One square PNG per size, always resampled from the given source.

    Failures are reported per entry instead of aborting the whole task.
    """
    source: PixelBuffer = task.payload["buffer"]
    mime = task.payload.get("mime", "image/png")
    entries: list[dict[str, Any]] = []
    for size in task.payload["sizes"]:
        try:
            resized = resize_buffer(source, int(size), int(size), "high")
            entries.append({"size": int(size), "data": codec.encode(resized, mime, None)})
        except Exception as e:
            _logger.debug("size %s failed", size, exc_info=True)
            entries.append({"size": int(size), "error": str(e)})
    return entries


def _batch_compress(task: ExportTask, codec: Codec) -> list[dict[str, Any]]:
    p = task.payload
    buffers: list[PixelBuffer] = list(p["buffers"])
    options: list[dict[str, Any] | None] = list(p.get("options") or [])
    defaults: dict[str, Any] = p.get("default_options") or {}
    total = len(buffers)
    results: list[dict[str, Any]] = []
    for i, buffer in enumerate(buffers):
        opts = (options[i] if i < len(options) else None) or defaults
        try:
            data = codec.encode(buffer, opts.get("mime", "image/png"), opts.get("quality"))
            results.append({"index": i, "success": True, "data": data})
        except Exception as e:
            results.append({"index": i, "success": False, "error": str(e)})
        task.report({"progress": (i + 1) / total * 100, "index": i})
    return results


_HANDLERS: dict[TaskKind, Callable[[ExportTask, Codec], Any]] = {
    TaskKind.COMPRESS: _compress,
    TaskKind.RESIZE: _resize,
    TaskKind.CREATE_MULTI_SIZE: _create_multi_size,
    TaskKind.BATCH_COMPRESS: _batch_compress,
}


def run_task(task: ExportTask, codec: Codec) -> Any:
    try:
        handler = _HANDLERS[TaskKind(task.kind)]
    except (KeyError, ValueError):
        raise ValueError(f"unsupported operation: {task.kind}") from None
    return handler(task, codec)


__all__ = ["ExportTask", "ProgressSink", "TaskKind", "run_task"]
