"""RGBA resampling through libvips.

Quality levels map to `pyvips.Image.resize` kernels:

- "high"   : lanczos3
- "medium" : linear
- "low"    : nearest

Smoothing kernels run on alpha-premultiplied values so transparent pixels do
not bleed their color into neighbours.
"""

from __future__ import annotations

from typing import Literal

import numpy as np

from .buffer import RGBA_CHANNELS, PixelBuffer
from .decoder import _get_pyvips_module

Array = np.ndarray
Quality = Literal["high", "medium", "low"]

QUALITIES: tuple[str, ...] = ("high", "medium", "low")

_KERNELS: dict[str, str] = {
    "high": "lanczos3",
    "medium": "linear",
    "low": "nearest",
}


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up, for non-negative values."""
    return int(np.floor(value + 0.5))


def resize_rgba(arr: Array, new_w: int, new_h: int, quality: str = "high") -> Array:
    """Resize an (H, W, 4) uint8 array to (new_h, new_w, 4).

    Unknown quality names fall back to "high".
    """
    if not isinstance(arr, np.ndarray) or arr.ndim != 3 or arr.shape[2] != RGBA_CHANNELS:
        raise ValueError("arr must be an RGBA image with shape (H, W, 4)")
    if new_w < 1 or new_h < 1:
        raise ValueError("new_w and new_h must be >= 1")

    h, w = arr.shape[:2]
    if h == new_h and w == new_w:
        return arr.copy()

    pyvips = _get_pyvips_module()
    kernel = _KERNELS.get(quality, _KERNELS["high"])
    img = pyvips.Image.new_from_memory(np.ascontiguousarray(arr).tobytes(), w, h, RGBA_CHANNELS, "uchar")
    img = img.copy(interpretation="srgb")

    smooth = kernel != "nearest"
    if smooth:
        img = img.premultiply()
    img = img.resize(new_w / w, vscale=new_h / h, kernel=kernel)
    if smooth:
        img = img.unpremultiply().rint()
    img = img.cast("uchar")
    # resize rounds the output size; pin it to the exact target
    if img.width != new_w or img.height != new_h:
        img = img.gravity("centre", new_w, new_h, extend="copy")

    mem = img.write_to_memory()
    return np.frombuffer(mem, dtype=np.uint8).reshape(new_h, new_w, RGBA_CHANNELS).copy()


def resize_buffer(buffer: PixelBuffer, new_w: int, new_h: int, quality: str = "high") -> PixelBuffer:
    out = resize_rgba(buffer.pixels, int(new_w), int(new_h), quality)
    return PixelBuffer(int(new_w), int(new_h), out)


__all__ = ["QUALITIES", "resize_buffer", "resize_rgba", "round_half_up"]
