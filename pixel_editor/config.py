"""Editor configuration values consumed by the core.

`EditorConfig` is immutable; build a modified copy with `dataclasses.replace`
or `EditorConfig.from_mapping`. Persisted overrides live in the JSON settings
file handled by `SettingsManager`.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .logger import get_logger

_logger = get_logger("config")

# Output format table: mime -> name / extension / default quality (0..100, None = lossless)
FORMAT_CONFIGS: dict[str, dict[str, Any]] = {
    "image/jpeg": {"name": "JPEG", "extension": "jpg", "quality": 90},
    "image/png": {"name": "PNG", "extension": "png", "quality": None},
    "image/webp": {"name": "WebP", "extension": "webp", "quality": 85},
    "image/gif": {"name": "GIF", "extension": "gif", "quality": None},
    "image/tiff": {"name": "TIFF", "extension": "tiff", "quality": 90},
    "image/ico": {"name": "ICO", "extension": "ico", "quality": None},
}

SUPPORTED_INPUT_MIMES: tuple[str, ...] = (
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
    "image/gif",
    "image/bmp",
    "image/tiff",
)


def _default_quality() -> dict[str, int]:
    return {mime: cfg["quality"] for mime, cfg in FORMAT_CONFIGS.items() if cfg["quality"] is not None}


def _default_ico_mapping() -> dict[float, tuple[int, ...]]:
    # resolution threshold -> icon sizes that stay sharp at or above it
    return {1.0: (16, 32, 48, 64, 128, 256), 0.5: (16, 32, 48, 64), 0.25: (16, 32)}


@dataclass(frozen=True)
class EditorConfig:
    format_quality: dict[str, int] = field(default_factory=_default_quality)
    standard_sizes: tuple[int, ...] = (16, 32, 48, 64, 128, 256)
    default_sizes: tuple[int, ...] = (16, 32, 48, 64, 128)
    hidden_sizes: tuple[int, ...] = (8,)
    ico_size_mapping: dict[float, tuple[int, ...]] = field(default_factory=_default_ico_mapping)
    max_bundle_size: int = 512
    min_scale: float = 0.1
    max_scale: float = 1.0
    debounce_ms: int = 100
    export_timeout_s: float = 30.0
    pixel_tolerance: int = 0
    dimension_tolerance: int = 0
    auto_detection: bool = True
    sample_target: int = 10_000
    max_file_size: int = 10 * 1024 * 1024
    max_dimensions: tuple[int, int] = (8192, 8192)
    supported_mimes: tuple[str, ...] = SUPPORTED_INPUT_MIMES
    worker_enabled: bool = True

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> EditorConfig:
        """Build a config from a (settings) mapping, ignoring unknown keys."""
        if not data:
            return cls()
        known = {f.name: f for f in dataclasses.fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                continue
            # JSON gives lists; keep the tuple-typed fields hashable
            if isinstance(value, list):
                value = tuple(value)
            if key == "format_quality" and isinstance(value, Mapping):
                merged = _default_quality()
                merged.update({str(k): int(v) for k, v in value.items()})
                value = merged
            if key == "ico_size_mapping" and isinstance(value, Mapping):
                value = {float(k): tuple(int(s) for s in v) for k, v in value.items()}
            kwargs[key] = value
        return cls(**kwargs)

    def quality_for(self, mime: str) -> int | None:
        return self.format_quality.get(mime)

    def validate(self) -> tuple[list[str], list[str]]:
        """Return (errors, warnings) for obviously inconsistent values."""
        errors: list[str] = []
        warnings: list[str] = []
        if not 0 < self.min_scale <= self.max_scale <= 1.0:
            errors.append("min_scale/max_scale must satisfy 0 < min <= max <= 1")
        for mime, q in self.format_quality.items():
            if not 0 < int(q) <= 100:
                errors.append(f"format_quality[{mime}] must be within 1..100")
        for size in (*self.standard_sizes, *self.hidden_sizes):
            if not 1 <= int(size) <= self.max_bundle_size:
                errors.append(f"bundle size {size} outside 1..{self.max_bundle_size}")
        for threshold, sizes in self.ico_size_mapping.items():
            if not 0 < float(threshold) <= 1.0:
                errors.append(f"ico_size_mapping threshold {threshold} outside (0, 1]")
            if not set(sizes) <= set(self.standard_sizes):
                warnings.append(f"ico_size_mapping[{threshold}] lists non-standard sizes")
        if self.export_timeout_s <= 0:
            errors.append("export_timeout_s must be positive")
        if self.debounce_ms < 0:
            errors.append("debounce_ms must not be negative")
        if self.pixel_tolerance < 0 or self.dimension_tolerance < 0:
            errors.append("tolerances must not be negative")
        if self.sample_target < 100:
            warnings.append("sample_target is very low; change detection will miss most edits")
        if set(self.hidden_sizes) & set(self.standard_sizes):
            warnings.append("hidden_sizes overlap standard_sizes; those sizes never appear in bundles")
        for w in warnings:
            _logger.debug("config warning: %s", w)
        return errors, warnings


DEFAULT_CONFIG = EditorConfig()
