"""RGBA pixel buffer value type.

A `PixelBuffer` wraps a C-contiguous ``uint8`` array of shape (H, W, 4).
Transforms never modify a buffer in place; they build a new one. Buffers
stored as a document's original are frozen (numpy ``writeable=False``).
"""

from __future__ import annotations

from typing import Union

import numpy as np

from pixel_editor.errors import ValidationError

RGBA_CHANNELS = 4
RGB_CHANNELS = 3

Array = np.ndarray
Pixel = tuple[int, int, int, int]


class PixelBuffer:
    __slots__ = ("_pixels",)

    def __init__(self, width: int, height: int, pixels: Union[Array, bytes, bytearray, memoryview]):
        width = int(width)
        height = int(height)
        if width < 1 or height < 1:
            raise ValidationError(f"buffer dimensions must be positive, got {width}x{height}")

        if isinstance(pixels, np.ndarray):
            arr = pixels
            if arr.dtype != np.uint8:
                raise ValidationError(f"pixels must be uint8, got {arr.dtype}")
            if arr.size != width * height * RGBA_CHANNELS:
                raise ValidationError(
                    f"pixel array has {arr.size} values, expected {width * height * RGBA_CHANNELS}"
                )
            arr = np.ascontiguousarray(arr).reshape(height, width, RGBA_CHANNELS)
        else:
            raw = bytes(pixels)
            if len(raw) != width * height * RGBA_CHANNELS:
                raise ValidationError(
                    f"pixel data has {len(raw)} bytes, expected {width * height * RGBA_CHANNELS}"
                )
            arr = np.frombuffer(raw, dtype=np.uint8).reshape(height, width, RGBA_CHANNELS).copy()
        self._pixels = arr

    # ---- constructors ----
    @classmethod
    def from_array(cls, arr: Array) -> PixelBuffer:
        """Wrap an (H, W, 3|4) uint8 array; RGB input gets an opaque alpha channel."""
        if not isinstance(arr, np.ndarray) or arr.ndim != 3 or arr.shape[2] not in (RGB_CHANNELS, RGBA_CHANNELS):
            raise ValidationError("array must have shape (H, W, 3) or (H, W, 4)")
        if arr.dtype != np.uint8:
            arr = np.clip(arr, 0, 255).astype(np.uint8)
        if arr.shape[2] == RGB_CHANNELS:
            alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
            arr = np.concatenate([arr, alpha], axis=2)
        h, w = arr.shape[:2]
        return cls(w, h, np.array(arr, dtype=np.uint8, copy=True))

    @classmethod
    def from_bytes(cls, width: int, height: int, data: bytes) -> PixelBuffer:
        return cls(width, height, data)

    @classmethod
    def blank(cls, width: int, height: int, rgba: Pixel = (0, 0, 0, 0)) -> PixelBuffer:
        arr = np.empty((int(height), int(width), RGBA_CHANNELS), dtype=np.uint8)
        arr[...] = np.asarray(rgba, dtype=np.uint8)
        return cls(width, height, arr)

    # ---- accessors ----
    @property
    def width(self) -> int:
        return int(self._pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self._pixels.shape[0])

    @property
    def dimensions(self) -> tuple[int, int]:
        return self.width, self.height

    @property
    def pixels(self) -> Array:
        """The underlying (H, W, 4) array. Treat as read-only."""
        return self._pixels

    @property
    def nbytes(self) -> int:
        return int(self._pixels.nbytes)

    @property
    def frozen(self) -> bool:
        return not self._pixels.flags.writeable

    def freeze(self) -> PixelBuffer:
        self._pixels.flags.writeable = False
        return self

    def to_bytes(self) -> bytes:
        return self._pixels.tobytes()

    def _check_xy(self, x: int, y: int) -> None:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"pixel ({x}, {y}) outside {self.width}x{self.height}")

    def get_pixel(self, x: int, y: int) -> Pixel:
        self._check_xy(x, y)
        r, g, b, a = (int(v) for v in self._pixels[y, x])
        return r, g, b, a

    # ---- derived buffers ----
    def clone(self) -> PixelBuffer:
        return PixelBuffer(self.width, self.height, self._pixels.copy())

    def set_pixel(self, x: int, y: int, rgba: Pixel) -> PixelBuffer:
        """Return a copy with one pixel replaced."""
        self._check_xy(x, y)
        out = self._pixels.copy()
        out[y, x] = np.asarray(rgba, dtype=np.uint8)
        return PixelBuffer(self.width, self.height, out)

    def with_region(self, x: int, y: int, w: int, h: int) -> PixelBuffer:
        """Copy a w x h region starting at (x, y) into a new buffer.

        Source coordinates outside this buffer are skipped; the matching
        target pixels stay transparent black.
        """
        w = int(w)
        h = int(h)
        if w < 1 or h < 1:
            raise ValidationError(f"region must be at least 1x1, got {w}x{h}")
        out = np.zeros((h, w, RGBA_CHANNELS), dtype=np.uint8)
        src_x0 = max(0, x)
        src_y0 = max(0, y)
        src_x1 = min(self.width, x + w)
        src_y1 = min(self.height, y + h)
        if src_x1 > src_x0 and src_y1 > src_y0:
            out[src_y0 - y : src_y1 - y, src_x0 - x : src_x1 - x] = self._pixels[src_y0:src_y1, src_x0:src_x1]
        return PixelBuffer(w, h, out)

    # ---- comparison ----
    def equals(self, other: object) -> bool:
        if not isinstance(other, PixelBuffer):
            return False
        return self.dimensions == other.dimensions and np.array_equal(self._pixels, other._pixels)

    def __eq__(self, other: object) -> bool:
        return self.equals(other)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        state = " frozen" if self.frozen else ""
        return f"<PixelBuffer {self.width}x{self.height}{state}>"
