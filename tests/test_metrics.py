import pytest

from helpers.images import FakeCodec, make_buffer
from pixel_editor.edit.pipeline import FilterPipeline
from pixel_editor.export.tasks import TaskKind
from pixel_editor.export.worker_pool import WorkerPool
from pixel_editor.image_engine.metrics import RECENT_SAMPLES, EditorMetrics, metrics


def test_counters_and_timings():
    metrics.reset()
    metrics.inc("a")
    metrics.inc("a", 2)
    with metrics.timed("t"):
        pass
    snap = metrics.snapshot()
    assert snap["counters"] == {"a": 3}
    assert snap["timings"]["t"]["count"] == 1
    assert len(snap["timings"]["t"]["recent"]) == 1
    assert metrics.count("missing") == 0
    metrics.reset()
    assert metrics.snapshot() == {"counters": {}, "timings": {}}


def test_duration_history_is_bounded():
    m = EditorMetrics()
    for i in range(RECENT_SAMPLES + 10):
        m.observe("export", float(i))
    stats = m.snapshot()["timings"]["export"]
    assert stats["count"] == RECENT_SAMPLES + 10
    assert len(stats["recent"]) == RECENT_SAMPLES
    assert stats["recent"][0] == 10.0
    assert stats["max"] == float(RECENT_SAMPLES + 9)
    assert stats["mean"] == sum(range(RECENT_SAMPLES + 10)) / (RECENT_SAMPLES + 10)


def test_timed_records_even_when_the_block_raises():
    m = EditorMetrics()
    with pytest.raises(RuntimeError):
        with m.timed("boom"):
            raise RuntimeError("x")
    assert m.snapshot()["timings"]["boom"]["count"] == 1


def test_pipeline_records_runs_and_failures():
    metrics.reset()
    pipeline = FilterPipeline()
    pipeline.enable("grayscale")
    pipeline.apply_all(make_buffer(4, 4))
    snap = metrics.snapshot()
    assert snap["counters"]["pipeline.runs"] == 1
    assert "pipeline.apply_duration" in snap["timings"]


def test_worker_pool_records_dispatch_and_duration():
    metrics.reset()
    pool = WorkerPool(FakeCodec())
    try:
        futures = [pool.submit(TaskKind.COMPRESS, {"buffer": make_buffer(2, 2)}) for _ in range(3)]
        for fut in futures:
            fut.result(timeout=2)
        snap = metrics.snapshot()
        assert snap["counters"]["worker.dispatched"] == 3
        assert snap["timings"]["worker.task_duration"]["count"] == 3
    finally:
        pool.shutdown()
