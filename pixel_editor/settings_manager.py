from __future__ import annotations

import json
import os
from typing import Any

from .config import EditorConfig
from .logger import get_logger

_logger = get_logger("settings")


class SettingsManager:
    def __init__(self, settings_path: str):
        self.settings_path = settings_path
        self._settings: dict[str, Any] = {}
        self.load()

    DEFAULTS: dict[str, Any] = {
        "debounce_ms": 100,
        "export_timeout_s": 30.0,
        "pixel_tolerance": 0,
        "dimension_tolerance": 0,
        "default_sizes": [16, 32, 48, 64, 128],
        "hidden_sizes": [8],
        "worker_enabled": True,
        "last_output_dir": None,
    }

    def load(self) -> None:
        try:
            if os.path.exists(self.settings_path):
                with open(self.settings_path, encoding="utf-8") as f:
                    data = json.load(f)
                    if isinstance(data, dict):
                        self._settings = data
                        _logger.debug("settings loaded: %s", self.settings_path)
                        return
        except Exception as e:
            _logger.warning("settings load failed: %s", e)
        self._settings = {}

    def save(self) -> None:
        try:
            parent = os.path.dirname(self.settings_path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            with open(self.settings_path, "w", encoding="utf-8") as f:
                json.dump(self._settings, f, ensure_ascii=False, indent=2)
            _logger.debug("settings saved: %s", self.settings_path)
        except Exception as e:
            _logger.error("settings save failed: %s", e)

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._settings:
            return self._settings[key]
        if default is not None:
            return default
        return self.DEFAULTS.get(key)

    def has(self, key: str) -> bool:
        return key in self._settings

    def set(self, key: str, value: Any) -> None:
        if key == "last_output_dir" and isinstance(value, str):
            value = self._normalize_dir(value)
        self._settings[key] = value
        self.save()

    @staticmethod
    def _normalize_dir(path: str) -> str:
        p = os.path.abspath(path)
        if os.path.isfile(p):
            p = os.path.dirname(p)
        return os.path.normpath(p)

    @property
    def data(self) -> dict[str, Any]:
        return self._settings

    @property
    def last_output_dir(self) -> str | None:
        val = self.get("last_output_dir")
        return val if isinstance(val, str) and os.path.isdir(val) else None

    def editor_config(self) -> EditorConfig:
        """Build the core configuration from defaults overlaid with saved values."""
        merged = {k: v for k, v in self.DEFAULTS.items() if v is not None}
        merged.update(self._settings)
        config = EditorConfig.from_mapping(merged)
        errors, _warnings = config.validate()
        if errors:
            _logger.warning("invalid settings ignored: %s", "; ".join(errors))
            return EditorConfig()
        return config
