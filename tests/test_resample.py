import numpy as np
import pytest

from helpers.images import make_buffer, needs_vips
from pixel_editor.image_engine.buffer import PixelBuffer
from pixel_editor.image_engine.resample import resize_buffer, resize_rgba, round_half_up


def test_round_half_up():
    assert round_half_up(0.5) == 1
    assert round_half_up(1.5) == 2
    assert round_half_up(2.5) == 3
    assert round_half_up(2.4999) == 2
    assert round_half_up(0.0) == 0


@needs_vips
@pytest.mark.parametrize("quality", ["high", "medium", "low"])
def test_uniform_image_stays_uniform(quality):
    buf = PixelBuffer.blank(10, 10, (10, 20, 30, 255))
    out = resize_buffer(buf, 3, 7, quality)
    assert out.dimensions == (3, 7)
    diff = np.abs(out.pixels.astype(int) - np.array([10, 20, 30, 255]))
    assert diff.max() <= 1


@needs_vips
@pytest.mark.parametrize("size", [(11, 9), (1, 1), (80, 3), (5, 60)])
def test_output_has_exact_target_dimensions(size):
    out = resize_buffer(make_buffer(37, 23), *size, "high")
    assert out.dimensions == size
    assert out.pixels.shape == (size[1], size[0], 4)
    assert out.pixels.dtype == np.uint8


@needs_vips
def test_transparent_pixels_do_not_bleed_color():
    arr = np.array([[[255, 0, 0, 0], [0, 0, 255, 255]]], dtype=np.uint8)
    r, g, b, a = (int(v) for v in resize_rgba(arr, 1, 1, "high")[0, 0])
    assert r == 0 and g == 0
    assert b >= 254
    assert 0 < a < 255


@needs_vips
def test_nearest_only_reuses_source_values():
    arr = np.zeros((1, 4, 4), dtype=np.uint8)
    arr[0, :, 0] = [10, 20, 30, 40]
    arr[0, :, 3] = 255
    out = resize_rgba(arr, 2, 1, "low")
    assert set(int(v) for v in out[0, :, 0]) <= {10, 20, 30, 40}

    up = resize_rgba(arr, 8, 1, "low")
    assert set(int(v) for v in up[0, :, 0]) <= {10, 20, 30, 40}


@needs_vips
def test_resampling_is_deterministic():
    buf = make_buffer(37, 23)
    a = resize_buffer(buf, 11, 9, "medium")
    b = resize_buffer(buf, 11, 9, "medium")
    assert a == b


@needs_vips
def test_unknown_quality_uses_high_kernel():
    buf = make_buffer(20, 20)
    assert resize_buffer(buf, 7, 7, "best") == resize_buffer(buf, 7, 7, "high")


def test_same_size_returns_a_copy():
    arr = make_buffer(3, 2).pixels
    out = resize_rgba(arr, 3, 2)
    assert np.array_equal(out, arr)
    assert out is not arr


def test_invalid_targets_rejected():
    with pytest.raises(ValueError):
        resize_rgba(np.zeros((2, 2, 4), dtype=np.uint8), 0, 1)
    with pytest.raises(ValueError):
        resize_rgba(np.zeros((2, 2, 3), dtype=np.uint8), 1, 1)
