from __future__ import annotations

from typing import Any

from pixel_editor.config import DEFAULT_CONFIG, EditorConfig
from pixel_editor.image_engine.buffer import PixelBuffer
from pixel_editor.image_engine.resample import QUALITIES, resize_buffer, round_half_up
from pixel_editor.logger import get_logger

from .base import Filter

_logger = get_logger("filters")


def scaled_dimensions(width: int, height: int, scale: float) -> tuple[int, int]:
    """Target size for `scale`, raising the factor when a side would vanish."""
    new_w = round_half_up(width * scale)
    new_h = round_half_up(height * scale)
    if new_w < 1 or new_h < 1:
        raised = max(1.0 / width, 1.0 / height)
        _logger.warning(
            "scale %.4f collapses %dx%d to %dx%d; using %.4f", scale, width, height, new_w, new_h, raised
        )
        new_w = round_half_up(width * raised)
        new_h = round_half_up(height * raised)
    return max(1, new_w), max(1, new_h)


class ResolutionScale(Filter):
    """Downscale by a factor in [min_scale, max_scale] with a chosen kernel."""

    name = "resolution"
    description = "Reduce the image resolution"

    def __init__(self, scale_factor: float = 0.5, quality: str = "high", config: EditorConfig = DEFAULT_CONFIG) -> None:
        self.min_scale = float(config.min_scale)
        self.max_scale = float(config.max_scale)
        self._quality = "high"
        super().__init__()
        if scale_factor != 0.5:
            self.set_value(scale_factor)
        if quality != "high":
            self.quality = quality

    def default_value(self) -> float:
        return 0.5

    def validate(self, value: Any) -> bool:
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            return False
        return self.min_scale <= value <= self.max_scale

    def coerce(self, value: Any) -> float:
        try:
            v = float(value)
        except (TypeError, ValueError):
            return self.default_value()
        if v != v:
            return self.default_value()
        return max(self.min_scale, min(self.max_scale, v))

    @property
    def scale_factor(self) -> float:
        return float(self._value)

    @scale_factor.setter
    def scale_factor(self, value: float) -> None:
        self.set_value(value)

    @property
    def quality(self) -> str:
        return self._quality

    @quality.setter
    def quality(self, value: str) -> None:
        if value in QUALITIES:
            self._quality = value
        else:
            _logger.warning("invalid resample quality %r (keeping %s)", value, self._quality)

    def reset(self) -> ResolutionScale:
        super().reset()
        self._quality = "high"
        return self

    def target_size(self, width: int, height: int) -> tuple[int, int]:
        return scaled_dimensions(width, height, self.scale_factor)

    def _apply(self, source: PixelBuffer) -> PixelBuffer:
        scale = self.scale_factor
        if scale == 1.0:
            return source
        new_w, new_h = self.target_size(source.width, source.height)
        if (new_w, new_h) == source.dimensions:
            return source
        return resize_buffer(source, new_w, new_h, self._quality)

    def fingerprint(self) -> dict[str, Any]:
        return {**super().fingerprint(), "quality": self._quality}

    def serialize(self) -> dict[str, Any]:
        return {**super().serialize(), "quality": self._quality}

    def load(self, data: dict[str, Any]) -> ResolutionScale:
        super().load(data)
        self._quality = "high"
        if data.get("quality") is not None:
            self.quality = data["quality"]
        return self

    def info(self) -> dict[str, Any]:
        return {
            **super().info(),
            "min": self.min_scale,
            "max": self.max_scale,
            "step": 0.1,
            "available_qualities": list(QUALITIES),
        }
