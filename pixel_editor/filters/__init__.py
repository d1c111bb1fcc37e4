"""Filter variants and their registration table.

New variants are added by subclassing `Filter` and calling
`register_filter_type`; the pipeline only ever sees the `Filter` interface.
"""

from __future__ import annotations

from typing import Any

from pixel_editor.config import DEFAULT_CONFIG, EditorConfig

from .base import Filter
from .grayscale import Grayscale
from .resolution import ResolutionScale
from .square import ANCHORS, SquareCrop

FILTER_TYPES: dict[str, type[Filter]] = {}

# Application order of a fresh pipeline
DEFAULT_ORDER: tuple[str, ...] = ("square", "grayscale", "resolution")


def register_filter_type(cls: type[Filter]) -> type[Filter]:
    if not cls.name:
        raise ValueError(f"{cls.__name__} has no filter name")
    FILTER_TYPES[cls.name] = cls
    return cls


for _cls in (SquareCrop, Grayscale, ResolutionScale):
    register_filter_type(_cls)


def create_filter(name: str, config: EditorConfig = DEFAULT_CONFIG, **kwargs: Any) -> Filter:
    try:
        cls = FILTER_TYPES[name]
    except KeyError:
        raise ValueError(f"unknown filter type: {name}") from None
    if cls is ResolutionScale:
        kwargs.setdefault("config", config)
    return cls(**kwargs)


def create_default_filters(config: EditorConfig = DEFAULT_CONFIG) -> list[Filter]:
    return [create_filter(name, config) for name in DEFAULT_ORDER]


__all__ = [
    "ANCHORS",
    "DEFAULT_ORDER",
    "FILTER_TYPES",
    "Filter",
    "Grayscale",
    "ResolutionScale",
    "SquareCrop",
    "create_default_filters",
    "create_filter",
    "register_filter_type",
]
