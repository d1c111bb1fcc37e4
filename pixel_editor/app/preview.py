from __future__ import annotations

import numpy as np
from PySide6.QtGui import QImage

from pixel_editor.image_engine.buffer import RGBA_CHANNELS, PixelBuffer


def buffer_to_qimage(buffer: PixelBuffer) -> QImage:
    """Detached RGBA8888 QImage holding a copy of the buffer's pixels."""
    arr = np.ascontiguousarray(buffer.pixels)
    w, h = buffer.dimensions
    return QImage(arr.data, w, h, w * RGBA_CHANNELS, QImage.Format.Format_RGBA8888).copy()


def qimage_to_buffer(image: QImage) -> PixelBuffer:
    img = image.convertToFormat(QImage.Format.Format_RGBA8888)
    w, h = img.width(), img.height()
    stride = img.bytesPerLine()
    raw = np.frombuffer(img.constBits(), dtype=np.uint8, count=stride * h).reshape(h, stride)
    arr = raw[:, : w * RGBA_CHANNELS].reshape(h, w, RGBA_CHANNELS).copy()
    return PixelBuffer(w, h, arr)
