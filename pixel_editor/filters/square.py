from __future__ import annotations

from typing import Any

from pixel_editor.image_engine.buffer import PixelBuffer

from .base import Filter

ANCHORS: tuple[str, ...] = ("center", "top", "bottom", "left", "right")


def crop_offsets(width: int, height: int, side: int, anchor: str) -> tuple[int, int]:
    """Top-left corner of a side x side square inside width x height.

    Unknown anchors fall back to center.
    """
    mid_x = (width - side) // 2
    mid_y = (height - side) // 2
    if anchor == "top":
        return mid_x, 0
    if anchor == "bottom":
        return mid_x, height - side
    if anchor == "left":
        return 0, mid_y
    if anchor == "right":
        return width - side, mid_y
    return mid_x, mid_y


class SquareCrop(Filter):
    """Crop to the largest square that fits, positioned by an anchor."""

    name = "square"
    description = "Crop the image to a square"

    def __init__(self, anchor: str = "center") -> None:
        super().__init__()
        if anchor != "center":
            self.set_value(anchor)

    def default_value(self) -> str:
        return "center"

    def validate(self, value: Any) -> bool:
        return value in ANCHORS

    @property
    def anchor(self) -> str:
        return self._value

    @anchor.setter
    def anchor(self, value: str) -> None:
        self.set_value(value)

    def _apply(self, source: PixelBuffer) -> PixelBuffer:
        width, height = source.dimensions
        if width == height:
            return source
        side = min(width, height)
        start_x, start_y = crop_offsets(width, height, side, self._value)
        return source.with_region(start_x, start_y, side, side)

    def info(self) -> dict[str, Any]:
        return {**super().info(), "available_anchors": list(ANCHORS)}
