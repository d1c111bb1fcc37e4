"""Icon bundle size selection for the editor's current resolution.

An image reduced by the resolution filter only has enough detail for the
smaller icon sizes. `EditorConfig.ico_size_mapping` lists, per resolution
threshold, the sizes that remain sharp; the largest threshold that does not
exceed the current resolution wins, and the smallest threshold is used below
all of them.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from pixel_editor.config import DEFAULT_CONFIG, EditorConfig
from pixel_editor.logger import get_logger

_logger = get_logger("export")


@dataclass
class SizeValidation:
    valid: bool
    sizes: list[int] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "sizes": list(self.sizes), "errors": list(self.errors), "warnings": list(self.warnings)}


def compatible_sizes(resolution: float, mapping: Mapping[float, Sequence[int]]) -> list[int]:
    """Sizes listed for the closest threshold at or below `resolution`."""
    if not mapping:
        return []
    thresholds = sorted(mapping, reverse=True)
    chosen = next((t for t in thresholds if t <= resolution), thresholds[-1])
    return sorted(int(s) for s in mapping[chosen])


class IcoCompatibility:
    def __init__(self, config: EditorConfig = DEFAULT_CONFIG, resolution: float = 1.0) -> None:
        self.config = config
        self.resolution = float(config.max_scale)
        self.set_resolution(resolution)

    def set_resolution(self, resolution: float) -> float:
        try:
            value = float(resolution)
        except (TypeError, ValueError):
            _logger.warning("invalid editor resolution %r; keeping %.2f", resolution, self.resolution)
            return self.resolution
        self.resolution = max(float(self.config.min_scale), min(float(self.config.max_scale), value))
        return self.resolution

    def compatible_sizes(self) -> list[int]:
        return compatible_sizes(self.resolution, self.config.ico_size_mapping)

    def is_compatible(self) -> bool:
        return bool(self.compatible_sizes())

    def recommended_sizes(self) -> list[int]:
        """Default sizes trimmed to what the current resolution supports."""
        compatible = set(self.compatible_sizes())
        defaults = [int(s) for s in self.config.default_sizes]
        if not compatible:
            return defaults
        return [s for s in defaults if s in compatible] or sorted(compatible)

    def validate(self, sizes: Sequence[Any] | None = None) -> SizeValidation:
        """Check a requested size list; `sizes=None` means the recommended set.

        Errors make the request unusable. Warnings flag sizes that will export
        but exceed the detail left at the current resolution.
        """
        requested: Sequence[Any] = self.recommended_sizes() if sizes is None else sizes
        errors: list[str] = []
        warnings: list[str] = []
        allowed = {int(s) for s in (*self.config.standard_sizes, *self.config.hidden_sizes)}
        hidden = {int(s) for s in self.config.hidden_sizes}

        if not requested:
            errors.append("no icon sizes selected")

        accepted: list[int] = []
        for s in requested:
            if isinstance(s, bool) or not isinstance(s, (int, float)) or int(s) != s:
                errors.append(f"invalid icon size {s!r}")
                continue
            n = int(s)
            if not 1 <= n <= self.config.max_bundle_size:
                errors.append(f"icon size {n} outside 1..{self.config.max_bundle_size}")
            elif n not in allowed:
                errors.append(f"icon size {n} is not one of {sorted(allowed)}")
            elif n not in accepted:
                accepted.append(n)

        compatible = self.compatible_sizes()
        if not compatible:
            warnings.append(f"resolution {self.resolution:.0%} has no compatible icon sizes")
        else:
            too_large = [n for n in accepted if n not in hidden and n not in compatible]
            if too_large:
                warnings.append(
                    f"sizes {too_large} exceed the detail available at {self.resolution:.0%}; recommended {compatible}"
                )

        return SizeValidation(valid=not errors, sizes=sorted(accepted), errors=errors, warnings=warnings)

    def info(self) -> dict[str, Any]:
        return {
            "resolution": self.resolution,
            "compatible": self.is_compatible(),
            "compatible_sizes": self.compatible_sizes(),
            "recommended_sizes": self.recommended_sizes(),
        }


__all__ = ["IcoCompatibility", "SizeValidation", "compatible_sizes"]
