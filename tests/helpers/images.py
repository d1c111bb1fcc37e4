from __future__ import annotations

import threading
import time

import numpy as np
import pytest

from pixel_editor.image_engine.buffer import PixelBuffer


def _vips_available() -> bool:
    try:
        import pyvips  # noqa: F401
    except Exception:
        return False
    return True


needs_vips = pytest.mark.skipif(not _vips_available(), reason="pyvips/libvips not available")


def make_buffer(width: int, height: int, fill=None) -> PixelBuffer:
    """Deterministic test image; pixel (x, y) = (x, y, x + y, 255) unless `fill` is given."""
    if fill is not None:
        return PixelBuffer.blank(width, height, fill)
    ys, xs = np.mgrid[0:height, 0:width]
    arr = np.zeros((height, width, 4), dtype=np.uint8)
    arr[..., 0] = xs % 256
    arr[..., 1] = ys % 256
    arr[..., 2] = (xs + ys) % 256
    arr[..., 3] = 255
    return PixelBuffer(width, height, arr)


class FakeCodec:
    """Codec double: a readable header followed by the raw pixels."""

    def __init__(self, fail_sizes: set[int] | None = None, delay: float = 0.0, fail_all: bool = False) -> None:
        self.fail_sizes = fail_sizes or set()
        self.delay = delay
        self.fail_all = fail_all
        self.calls: list[tuple[int, int, str, int | None]] = []
        self.threads: list[str] = []
        self._lock = threading.Lock()

    def encode(self, buffer: PixelBuffer, mime: str, quality: int | None = None) -> bytes:
        if self.delay:
            time.sleep(self.delay)
        with self._lock:
            self.calls.append((buffer.width, buffer.height, mime, quality))
            self.threads.append(threading.current_thread().name)
        if self.fail_all:
            raise RuntimeError("codec unavailable")
        if buffer.width == buffer.height and buffer.width in self.fail_sizes:
            raise RuntimeError(f"cannot encode {buffer.width}")
        return f"{mime};{buffer.width}x{buffer.height};q={quality}|".encode() + buffer.to_bytes()


def encoded_size(data: bytes) -> tuple[int, int]:
    """Dimensions from a FakeCodec payload."""
    header = data.split(b"|", 1)[0].decode()
    w, h = header.split(";")[1].split("x")
    return int(w), int(h)
