from __future__ import annotations

from pathlib import Path

import pytest

from sheets2posts.config.loader import ConfigError, load_config, normalize_sheets
from sheets2posts.models.config_models import DEFAULT_TEMPLATE, SheetMode


def test_load_config_success(write_config: Path):
    cfg = load_config(write_config)
    assert [s.id for s in cfg.sheets] == ["news", "events"]
    news, events = cfg.sheets
    assert news.mode is SheetMode.SIMPLE
    assert news.template == DEFAULT_TEMPLATE
    assert events.mode is SheetMode.DEVELOPER
    assert events.template == "<h2>{{title}}</h2><p>{{venue}}</p>"
    assert events.target_type == "event"
    assert cfg.settings.default_status == "draft"
    assert cfg.settings.http_timeout == 25.0
    assert cfg.lock_directory == "./logs"


def test_load_config_missing_file(temp_workdir: Path):
    with pytest.raises(ConfigError) as e:
        load_config(temp_workdir / "config" / "not_exists.yml")
    assert "config file not found" in str(e.value)


def test_load_config_invalid_yaml(write_config: Path):
    write_config.write_text("sheets: [\n", encoding="utf-8")
    with pytest.raises(ConfigError) as e:
        load_config(write_config)
    assert "invalid yaml" in str(e.value)


def test_load_config_root_must_be_mapping(write_config: Path):
    write_config.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError) as e:
        load_config(write_config)
    assert "mapping" in str(e.value)


def test_load_config_rejects_unknown_status(write_config: Path):
    text = write_config.read_text(encoding="utf-8").replace("default_status: draft", "default_status: future")
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError) as e:
        load_config(write_config)
    assert "config validation failed" in str(e.value)


def test_load_config_rejects_unknown_key(write_config: Path):
    write_config.write_text(write_config.read_text(encoding="utf-8") + "extra: 1\n", encoding="utf-8")
    with pytest.raises(ConfigError) as e:
        load_config(write_config)
    assert "config validation failed" in str(e.value)


def test_load_config_requires_sheets_or_legacy_url(write_config: Path):
    write_config.write_text("settings:\n  default_status: draft\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(write_config)


def test_load_config_unknown_timezone(write_config: Path):
    text = write_config.read_text(encoding="utf-8").replace("timezone: UTC", "timezone: Mars/Olympus")
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError) as e:
        load_config(write_config)
    assert "unknown timezone" in str(e.value)


def test_load_config_migrates_legacy_layout(write_config: Path):
    write_config.write_text(
        "sheet_url: https://docs.google.com/spreadsheets/d/OLD/edit\nmode: developer\n",
        encoding="utf-8",
    )
    cfg = load_config(write_config)
    [sheet] = cfg.sheets
    assert sheet.name == "Main Sheet"
    assert sheet.id == "sheet_0"
    assert sheet.mode is SheetMode.DEVELOPER
    assert sheet.template == DEFAULT_TEMPLATE
    assert sheet.source_url.endswith("/d/OLD/edit")


def test_load_config_empty_sheet_list(write_config: Path):
    write_config.write_text("sheets: []\n", encoding="utf-8")
    assert load_config(write_config).sheets == []


def test_normalize_sheets_defaults():
    sheets = normalize_sheets(
        [
            {"source_url": " https://x/d/1 ", "mode": "weird"},
            "not a mapping",
            {"id": 7, "name": "  ", "template": "", "target_type": "Event Type!"},
        ]
    )
    first, second = sheets
    assert (first.id, first.name, first.mode) == ("sheet_0", "Sheet 1", SheetMode.SIMPLE)
    assert first.source_url == "https://x/d/1"
    assert first.target_type == "post"
    assert (second.id, second.name) == ("7", "Sheet 2")
    assert second.template == DEFAULT_TEMPLATE
    assert second.target_type == "eventtype"
