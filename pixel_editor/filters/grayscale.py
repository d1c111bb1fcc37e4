from __future__ import annotations

from typing import Any

import numpy as np

from pixel_editor.image_engine.buffer import PixelBuffer

from .base import Filter

# ITU-R BT.709 luma weights
LUMA_R = 0.2126
LUMA_G = 0.7152
LUMA_B = 0.0722


def luminance(r: float, g: float, b: float) -> int:
    return int(np.floor(LUMA_R * r + LUMA_G * g + LUMA_B * b + 0.5))


class Grayscale(Filter):
    """Blend each pixel toward its BT.709 luminance; alpha is kept."""

    name = "grayscale"
    description = "Convert the image to grayscale with adjustable intensity"

    def __init__(self, intensity: float = 1.0) -> None:
        super().__init__()
        if intensity != 1.0:
            self.set_value(intensity)

    def default_value(self) -> float:
        return 1.0

    def validate(self, value: Any) -> bool:
        return isinstance(value, (int, float)) and not isinstance(value, bool) and 0.0 <= value <= 1.0

    def coerce(self, value: Any) -> float:
        try:
            v = float(value)
        except (TypeError, ValueError):
            return self.default_value()
        if v != v:  # NaN
            return self.default_value()
        return max(0.0, min(1.0, v))

    @property
    def intensity(self) -> float:
        return float(self._value)

    @intensity.setter
    def intensity(self, value: float) -> None:
        self.set_value(value)

    def _apply(self, source: PixelBuffer) -> PixelBuffer:
        intensity = max(0.0, min(1.0, float(self._value)))
        if intensity == 0.0:
            return source

        px = source.pixels.astype(np.float64)
        r = px[..., 0]
        g = px[..., 1]
        b = px[..., 2]
        gray = np.floor(LUMA_R * r + LUMA_G * g + LUMA_B * b + 0.5)

        out = source.pixels.copy()
        keep = 1.0 - intensity
        for ch in range(3):
            blended = np.floor(px[..., ch] * keep + gray * intensity + 0.5)
            out[..., ch] = np.clip(blended, 0, 255).astype(np.uint8)
        return PixelBuffer(source.width, source.height, out)

    def info(self) -> dict[str, Any]:
        return {**super().info(), "min": 0.0, "max": 1.0, "step": 0.1}
