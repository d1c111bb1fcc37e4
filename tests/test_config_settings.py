from __future__ import annotations

import dataclasses
import json
from pathlib import Path

from pixel_editor.config import DEFAULT_CONFIG, EditorConfig
from pixel_editor.settings_manager import SettingsManager


def test_last_output_dir_is_normalized_and_directory(tmp_path: Path) -> None:
    sm = SettingsManager(str(tmp_path / "settings.json"))

    folder = tmp_path / "exports"
    folder.mkdir()
    sm.set("last_output_dir", str(folder))

    assert sm.last_output_dir is not None
    assert Path(sm.last_output_dir) == folder.resolve()


def test_setting_last_output_dir_to_file_coerces_to_parent_dir(tmp_path: Path) -> None:
    sm = SettingsManager(str(tmp_path / "settings.json"))

    folder = tmp_path / "exports"
    folder.mkdir()
    file_path = folder / "icon.png"
    file_path.write_bytes(b"x")

    sm.set("last_output_dir", str(file_path))

    assert sm.last_output_dir == str(folder.resolve())


def test_settings_persist_between_instances(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "settings.json"
    SettingsManager(str(path)).set("debounce_ms", 250)

    again = SettingsManager(str(path))
    assert again.has("debounce_ms")
    assert again.get("debounce_ms") == 250
    assert again.get("export_timeout_s") == 30.0
    assert again.editor_config().debounce_ms == 250


def test_corrupt_settings_file_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")
    sm = SettingsManager(str(path))
    assert sm.data == {}
    assert sm.editor_config() == EditorConfig()


def test_invalid_settings_produce_default_config(tmp_path: Path, editor_log) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"export_timeout_s": 0, "hidden_sizes": [8, 4]}), encoding="utf-8")
    config = SettingsManager(str(path)).editor_config()
    assert config == EditorConfig()
    assert "invalid settings ignored" in editor_log.text


def test_from_mapping_converts_lists_and_ignores_unknown_keys() -> None:
    config = EditorConfig.from_mapping(
        {"default_sizes": [16, 24], "unknown": 1, "format_quality": {"image/jpeg": 70}}
    )
    assert config.default_sizes == (16, 24)
    assert config.quality_for("image/jpeg") == 70
    assert config.quality_for("image/webp") == 85
    assert config.quality_for("image/png") is None


def test_validate_reports_errors_and_warnings() -> None:
    assert DEFAULT_CONFIG.validate() == ([], [])
    bad = dataclasses.replace(DEFAULT_CONFIG, min_scale=0.0, debounce_ms=-1, sample_target=10)
    errors, warnings = bad.validate()
    assert any("min_scale" in e for e in errors)
    assert any("debounce_ms" in e for e in errors)
    assert any("sample_target" in w for w in warnings)


def test_ico_size_mapping_from_json_keys() -> None:
    config = EditorConfig.from_mapping({"ico_size_mapping": {"1.0": [16, 32, 48], "0.5": [16]}})
    assert config.ico_size_mapping == {1.0: (16, 32, 48), 0.5: (16,)}
    assert config.validate() == ([], [])

    bad = EditorConfig.from_mapping({"ico_size_mapping": {"2": [16], "0.5": [24]}})
    errors, warnings = bad.validate()
    assert any("threshold 2.0" in e for e in errors)
    assert any("non-standard" in w for w in warnings)
