import pytest

from helpers.images import make_buffer, needs_vips
from pixel_editor.edit.pipeline import FilterPipeline
from pixel_editor.errors import FilterError
from pixel_editor.filters import Filter


class FailingFilter(Filter):
    name = "boom"

    def default_value(self):
        return 0

    def validate(self, value):
        return isinstance(value, int)

    def _apply(self, source):
        raise RuntimeError("broken kernel")


def test_default_order_and_nothing_enabled():
    pipe = FilterPipeline()
    assert pipe.order == ["square", "grayscale", "resolution"]
    assert not pipe.has_active_filters()
    buf = make_buffer(10, 6)
    out = pipe.apply_all(buf)
    assert out == buf
    assert out is not buf


@needs_vips
def test_square_then_half_resolution():
    pipe = FilterPipeline()
    pipe.enable("square")
    pipe.enable("resolution")
    pipe.set_value("resolution", 0.5)
    out = pipe.apply_all(make_buffer(100, 60))
    assert out.dimensions == (30, 30)
    assert [f.name for f in pipe.active_filters()] == ["square", "resolution"]


@needs_vips
def test_every_run_starts_from_the_given_original():
    pipe = FilterPipeline()
    pipe.enable("resolution")
    original = make_buffer(40, 40)
    first = pipe.apply_all(original)
    second = pipe.apply_all(original)
    assert first.dimensions == second.dimensions == (20, 20)


def test_failing_filter_is_skipped_and_later_filters_still_apply(editor_log):
    pipe = FilterPipeline()
    pipe.register_filter(FailingFilter())
    assert pipe.reorder(["boom", "square", "grayscale", "resolution"])
    for name in ("boom", "square", "grayscale"):
        pipe.enable(name)

    out = pipe.apply_all(make_buffer(30, 20))

    assert out.dimensions == (20, 20)
    px = out.pixels
    assert (px[..., 0] == px[..., 2]).all()
    assert len(pipe.last_errors) == 1
    assert isinstance(pipe.last_errors[0], FilterError)
    assert pipe.last_errors[0].filter_name == "boom"
    assert "1 filter(s) failed" in editor_log.text
    assert pipe.is_processing is False


def test_reentrant_run_returns_original_untouched(editor_log):
    pipe = FilterPipeline()
    pipe.enable("square")
    pipe.enable("grayscale")
    steps = pipe.iter_apply(make_buffer(8, 4))
    name, _ = next(steps)
    assert name == "square"
    assert pipe.is_processing

    other = make_buffer(12, 12)
    assert pipe.apply_all(other) is other
    assert "pipeline busy" in editor_log.text

    with pytest.raises(StopIteration) as stop:
        while True:
            next(steps)
    assert stop.value.value.dimensions == (4, 4)
    assert not pipe.is_processing


def test_iter_apply_yields_once_per_enabled_filter():
    pipe = FilterPipeline()
    pipe.enable("square")
    pipe.enable("grayscale")
    names = [name for name, _ in pipe.iter_apply(make_buffer(10, 4))]
    assert names == ["square", "grayscale"]


@pytest.mark.parametrize(
    "order",
    [
        ["square", "grayscale"],
        ["square", "grayscale", "grayscale"],
        ["square", "grayscale", "resolution", "sepia"],
        ["square", "grayscale", "sepia"],
    ],
)
def test_reorder_rejects_anything_but_a_permutation(order):
    pipe = FilterPipeline()
    assert pipe.reorder(order) is False
    assert pipe.order == ["square", "grayscale", "resolution"]


def test_reorder_changes_application_order():
    pipe = FilterPipeline()
    assert pipe.reorder(["grayscale", "resolution", "square"])
    pipe.enable("square")
    pipe.enable("grayscale")
    names = [name for name, _ in pipe.iter_apply(make_buffer(9, 5))]
    assert names == ["grayscale", "square"]


def test_state_changes_on_unknown_filter():
    pipe = FilterPipeline()
    assert pipe.enable("sepia") is False
    assert pipe.disable("sepia") is False
    assert pipe.toggle("sepia") is None
    assert pipe.set_value("sepia", 1) is False


def test_disable_all_and_reset_all():
    pipe = FilterPipeline()
    pipe.enable("square")
    pipe.set_value("grayscale", 0.2)
    pipe.enable("grayscale")
    pipe.disable_all()
    assert not pipe.has_active_filters()
    assert pipe.get_filter("grayscale").value == 0.2
    pipe.reset_all()
    assert pipe.get_filter("grayscale").value == 1.0


def test_export_and_import_config():
    src = FilterPipeline()
    src.enable("grayscale")
    src.set_value("grayscale", 0.6)
    src.set_value("square", "top")
    src.reorder(["grayscale", "square", "resolution"])

    dst = FilterPipeline()
    assert dst.import_config(src.export_config())
    assert dst.order == ["grayscale", "square", "resolution"]
    assert dst.filter_state() == src.filter_state()


def test_import_config_skips_unknown_filters(editor_log):
    pipe = FilterPipeline()
    assert pipe.import_config({"filters": {"sepia": {"enabled": True}}})
    assert "sepia" not in pipe
    assert "skipping unknown filter" in editor_log.text


def test_filter_state_and_stats():
    pipe = FilterPipeline()
    pipe.enable("square")
    state = pipe.filter_state()
    assert state["square"] == {"enabled": True, "value": "center"}
    assert state["resolution"]["quality"] == "high"
    pipe.apply_all(make_buffer(3, 2))
    stats = pipe.stats()
    assert stats["total"] == 3
    assert stats["active"] == 1
    assert stats["runs"] == 1


def test_cleanup_resets_everything():
    pipe = FilterPipeline()
    pipe.enable("square")
    pipe.cleanup()
    assert not pipe.has_active_filters()
    assert pipe.last_errors == []
