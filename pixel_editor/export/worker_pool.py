from __future__ import annotations

import itertools
import queue
import threading
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any

from pixel_editor.errors import WorkerError
from pixel_editor.image_engine.decoder import Codec
from pixel_editor.image_engine.metrics import metrics
from pixel_editor.logger import get_logger

from .tasks import ExportTask, TaskKind, run_task

_logger = get_logger("worker_pool")

Message = dict[str, Any]


@dataclass
class _Pending:
    future: Future
    on_progress: Callable[[dict[str, Any]], None] | None = None


class WorkerPool:
    """Background export worker speaking a small message protocol.

    Requests are ``{type, data, id}`` dicts put on a queue consumed by one
    daemon thread. The worker answers with ``{type: success|error|progress,
    data, id}``; `handle_message` matches answers to pending futures by id.
    Each pending entry is removed exactly once, so a late answer for an
    abandoned request finds nothing and is ignored.
    """

    def __init__(self, codec: Codec, name: str = "export-worker") -> None:
        self._codec = codec
        self._queue: queue.Queue[Message | None] = queue.Queue()
        self._pending: dict[int, _Pending] = {}
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._stop_event = threading.Event()
        self._healthy = True
        self._thread = threading.Thread(target=self._worker, name=name, daemon=True)
        self._thread.start()

    # ---- submission ----
    def submit(
        self,
        kind: TaskKind | str,
        data: dict[str, Any],
        on_progress: Callable[[dict[str, Any]], None] | None = None,
    ) -> Future:
        if not self.is_available():
            raise WorkerError("worker is not available")
        task_id = next(self._ids)
        fut: Future = Future()
        # correlation id, used by callers to abandon the request
        fut.task_id = task_id  # type: ignore[attr-defined]
        with self._lock:
            # shutdown sets the stop flag under this lock; anything registered
            # before that is rejected by its _fail_all
            if self._stop_event.is_set() or not self._healthy:
                raise WorkerError("worker is not available")
            self._pending[task_id] = _Pending(fut, on_progress)
        self._queue.put({"type": TaskKind(kind).value, "data": data, "id": task_id})
        metrics.inc("worker.dispatched")
        return fut

    def discard(self, task_id: int) -> bool:
        """Forget a pending request without resolving it."""
        with self._lock:
            return self._pending.pop(task_id, None) is not None

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    # ---- responses ----
    def handle_message(self, message: Message) -> None:
        msg_type = message.get("type")
        if msg_type == "ready":
            return
        task_id = message.get("id")
        if task_id is None:
            _logger.warning("worker message without id: %r", msg_type)
            return

        with self._lock:
            entry = self._pending.get(task_id)
            if entry is not None and msg_type in ("success", "error"):
                del self._pending[task_id]
        if entry is None:
            _logger.warning("no pending task for id %s (%s)", task_id, msg_type)
            return

        if msg_type == "success":
            if not entry.future.done():
                entry.future.set_result(message.get("data"))
        elif msg_type == "error":
            detail = (message.get("data") or {}).get("message", "unknown worker error")
            if not entry.future.done():
                entry.future.set_exception(WorkerError(detail))
        elif msg_type == "progress":
            if entry.on_progress is not None:
                try:
                    entry.on_progress(message.get("data") or {})
                except Exception:
                    _logger.debug("progress callback failed", exc_info=True)
        else:
            _logger.warning("unknown worker message type: %r", msg_type)

    def handle_worker_error(self, exc: BaseException) -> None:
        """The worker itself failed: mark unhealthy and reject everything pending."""
        _logger.error("export worker failed: %s", exc)
        metrics.inc("worker.crashed")
        self._healthy = False
        self._fail_all(WorkerError(f"worker error: {exc}"))

    def _fail_all(self, exc: WorkerError) -> None:
        with self._lock:
            pending = list(self._pending.values())
            self._pending.clear()
        for entry in pending:
            if not entry.future.done():
                entry.future.set_exception(exc)

    # ---- worker thread ----
    def _worker(self) -> None:
        try:
            while not self._stop_event.is_set():
                try:
                    request = self._queue.get(timeout=0.1)
                except queue.Empty:
                    continue
                try:
                    if request is None:
                        break
                    self._process(request)
                finally:
                    self._queue.task_done()
        except Exception as e:
            self.handle_worker_error(e)

    def _process(self, request: Message) -> None:
        task_id = request["id"]

        def _post_progress(data: dict[str, Any]) -> None:
            self.handle_message({"type": "progress", "data": data, "id": task_id})

        task = ExportTask(task_id, request["type"], request["data"], _post_progress)
        try:
            with metrics.timed("worker.task_duration"):
                result = run_task(task, self._codec)
        except Exception as e:
            _logger.debug("task %s (%s) failed", task_id, request["type"], exc_info=True)
            self.handle_message({"type": "error", "data": {"message": str(e)}, "id": task_id})
            return
        self.handle_message({"type": "success", "data": result, "id": task_id})

    # ---- lifecycle ----
    def is_available(self) -> bool:
        return self._healthy and not self._stop_event.is_set() and self._thread.is_alive()

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            self._stop_event.set()
        self._queue.put(None)
        if wait:
            self._thread.join(timeout=5)
        self._fail_all(WorkerError("worker pool shut down"))


__all__ = ["WorkerPool"]
