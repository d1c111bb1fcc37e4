"""Pixel storage, resampling and codec helpers.

Keep this module lightweight: the codec (pyvips) is imported lazily by
`pixel_editor.image_engine.decoder` only when bytes are decoded or encoded.
"""

from .buffer import PixelBuffer
from .resample import QUALITIES, resize_buffer, resize_rgba, round_half_up

__all__ = [
    "QUALITIES",
    "PixelBuffer",
    "resize_buffer",
    "resize_rgba",
    "round_half_up",
]
