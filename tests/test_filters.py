import pytest

from helpers.images import make_buffer, needs_vips
from pixel_editor.errors import FilterError
from pixel_editor.filters import (
    FILTER_TYPES,
    Filter,
    Grayscale,
    ResolutionScale,
    SquareCrop,
    create_default_filters,
    create_filter,
    register_filter_type,
)
from pixel_editor.filters.grayscale import luminance
from pixel_editor.filters.resolution import scaled_dimensions
from pixel_editor.image_engine.buffer import PixelBuffer

# ---- square ----


def test_square_center_crop_of_landscape():
    buf = make_buffer(100, 60)
    out = SquareCrop().apply(buf)
    assert out.dimensions == (60, 60)
    # output (0, 0) comes from source (20, 0)
    assert out.get_pixel(0, 0) == buf.get_pixel(20, 0)
    assert out.get_pixel(59, 59) == buf.get_pixel(79, 59)


@pytest.mark.parametrize(
    "size,anchor,origin",
    [
        ((100, 60), "left", (0, 0)),
        ((100, 60), "right", (40, 0)),
        ((100, 60), "top", (20, 0)),
        ((60, 100), "top", (0, 0)),
        ((60, 100), "bottom", (0, 40)),
        ((60, 100), "center", (0, 20)),
    ],
)
def test_square_anchors(size, anchor, origin):
    buf = make_buffer(*size)
    out = SquareCrop(anchor).apply(buf)
    assert out.dimensions == (60, 60)
    assert out.get_pixel(0, 0) == buf.get_pixel(*origin)


def test_square_is_noop_on_square_input():
    buf = make_buffer(32, 32)
    assert SquareCrop().apply(buf) == buf


def test_square_invalid_anchor_falls_back_to_center(editor_log):
    flt = SquareCrop()
    flt.set_value("diagonal")
    assert flt.anchor == "center"
    assert "invalid value for filter square" in editor_log.text


# ---- grayscale ----


def test_grayscale_full_intensity_makes_channels_equal():
    buf = make_buffer(16, 8)
    out = Grayscale(1.0).apply(buf)
    px = out.pixels
    assert (px[..., 0] == px[..., 1]).all()
    assert (px[..., 1] == px[..., 2]).all()
    assert (px[..., 3] == buf.pixels[..., 3]).all()


def test_grayscale_luminance_value():
    buf = PixelBuffer.blank(1, 1, (10, 200, 30, 255))
    out = Grayscale().apply(buf)
    assert luminance(10, 200, 30) == 147
    assert out.get_pixel(0, 0) == (147, 147, 147, 255)


def test_grayscale_partial_intensity_blends_and_keeps_alpha():
    buf = PixelBuffer.blank(1, 1, (200, 100, 0, 77))
    out = Grayscale(0.5).apply(buf)
    # L = 114; channels are round(c * 0.5 + 114 * 0.5)
    assert out.get_pixel(0, 0) == (157, 107, 57, 77)


def test_grayscale_zero_intensity_is_noop():
    buf = make_buffer(5, 5)
    assert Grayscale(0.0).apply(buf) == buf


@pytest.mark.parametrize("value,expected", [(1.5, 1.0), (-0.2, 0.0), ("x", 1.0), (0.3, 0.3)])
def test_grayscale_intensity_is_clamped(value, expected):
    flt = Grayscale()
    flt.set_value(value)
    assert flt.intensity == pytest.approx(expected)


# ---- resolution ----


@needs_vips
def test_resolution_halves_dimensions():
    out = ResolutionScale(0.5).apply(make_buffer(60, 60))
    assert out.dimensions == (30, 30)


def test_resolution_rounds_half_up():
    assert ResolutionScale(0.5).target_size(5, 3) == (3, 2)
    assert scaled_dimensions(7, 1, 0.5) == (4, 1)


def test_resolution_full_scale_is_noop():
    buf = make_buffer(7, 9)
    assert ResolutionScale(1.0).apply(buf) == buf


@pytest.mark.parametrize("value,expected", [(0.01, 0.1), (2, 1.0), (0.25, 0.25), (None, 0.5)])
def test_resolution_scale_is_clamped(value, expected):
    flt = ResolutionScale()
    flt.scale_factor = value
    assert flt.scale_factor == pytest.approx(expected)


def test_resolution_never_produces_zero_side(editor_log):
    assert ResolutionScale(0.1).target_size(100, 2) == (50, 1)
    assert "collapses" in editor_log.text


@needs_vips
def test_resolution_apply_uses_target_size():
    out = ResolutionScale(0.1).apply(make_buffer(100, 2))
    assert out.dimensions == (50, 1)


def test_resolution_quality_validation():
    flt = ResolutionScale(quality="low")
    assert flt.quality == "low"
    flt.quality = "ultra"
    assert flt.quality == "low"
    flt.reset()
    assert flt.quality == "high"
    assert flt.scale_factor == 0.5


# ---- common behaviour ----


class _Boom(Filter):
    name = "boom"

    def default_value(self):
        return None

    def validate(self, value):
        return True

    def _apply(self, source):
        raise RuntimeError("kaboom")


def test_internal_fault_is_wrapped_in_filter_error():
    with pytest.raises(FilterError) as ei:
        _Boom().apply(make_buffer(2, 2))
    assert ei.value.filter_name == "boom"
    assert isinstance(ei.value.cause, RuntimeError)


@needs_vips
def test_apply_never_mutates_input():
    buf = make_buffer(20, 10).freeze()
    for flt in (SquareCrop(), Grayscale(0.7), ResolutionScale(0.5)):
        flt.apply(buf)
    assert buf == make_buffer(20, 10)


def test_enable_disable_toggle_reset():
    flt = Grayscale()
    assert flt.enabled is False
    assert flt.toggle() is True
    flt.disable()
    assert not flt.enabled
    flt.enable().set_value(0.4)
    flt.reset()
    assert not flt.enabled
    assert flt.intensity == 1.0


def test_serialize_and_deserialize_keep_state():
    flt = ResolutionScale(0.3, "medium")
    flt.enable()
    data = flt.serialize()
    assert data["name"] == "resolution"
    assert data["value"] == pytest.approx(0.3)
    again = ResolutionScale.deserialize(data)
    assert again.enabled
    assert again.quality == "medium"
    assert again.fingerprint() == flt.fingerprint()


def test_info_describes_filter():
    info = SquareCrop().info()
    assert info["type"] == "SquareCrop"
    assert "center" in info["available_anchors"]


def test_registry_creates_known_filters():
    assert [f.name for f in create_default_filters()] == ["square", "grayscale", "resolution"]
    assert isinstance(create_filter("grayscale"), Grayscale)
    with pytest.raises(ValueError):
        create_filter("sepia")


def test_register_custom_filter_type():
    try:
        register_filter_type(_Boom)
        assert isinstance(create_filter("boom"), _Boom)
    finally:
        FILTER_TYPES.pop("boom", None)
