from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    DEFAULT_TEMPLATE,
    NEW_RECORD_STATUSES,
    DatabaseConfig,
    SheetConfig,
    SheetMode,
    SyncConfig,
    SyncSettings,
)

"""Config loader.

Responsibilities:
- Load YAML (default config/sync.yml)
- Validate against config_schema.json (shipped next to this module)
- Migrate the legacy single-sheet layout (top-level sheet_url/mode/template)
- Normalize each sheet entry and apply defaults
"""

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "ConfigError",
    "load_config",
    "normalize_sheets",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/sync.yml")

_TARGET_TYPE_RE = re.compile(r"[^a-z0-9_\-]")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Raises:
        ConfigError: schema file missing or invalid, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _clean_target_type(value: Any) -> str:
    target = _TARGET_TYPE_RE.sub("", str(value or "").strip().lower())
    return target or "post"


def normalize_sheets(raw_sheets: list[dict[str, Any]]) -> list[SheetConfig]:
    """Turn raw sheet entries into SheetConfig objects.

    - missing id -> ``sheet_{index}`` (0-based)
    - empty name -> ``Sheet {n}`` (1-based among kept sheets)
    - unknown mode -> simple
    - empty template -> DEFAULT_TEMPLATE
    - empty / invalid target_type -> ``post``
    """
    sheets: list[SheetConfig] = []
    for i, raw in enumerate(raw_sheets):
        if not isinstance(raw, dict):
            continue
        name = str(raw.get("name") or "").strip() or f"Sheet {len(sheets) + 1}"
        sheet_id = str(raw.get("id") if raw.get("id") is not None else "").strip() or f"sheet_{i}"
        sheets.append(
            SheetConfig(
                id=sheet_id,
                name=name,
                source_url=str(raw.get("source_url") or "").strip(),
                mode=SheetMode.normalize(raw.get("mode")),
                template=str(raw.get("template") or "") or DEFAULT_TEMPLATE,
                target_type=_clean_target_type(raw.get("target_type")),
            )
        )
    return sheets


def _migrate_legacy(data: dict[str, Any]) -> list[dict[str, Any]]:
    """Single-sheet configs predate the ``sheets`` list; wrap them as one sheet."""
    return [
        {
            "name": "Main Sheet",
            "source_url": data.get("sheet_url", ""),
            "mode": data.get("mode", "simple"),
            "template": data.get("template", DEFAULT_TEMPLATE),
            "target_type": "post",
        }
    ]


def _build_settings(raw: dict[str, Any]) -> SyncSettings:
    defaults = SyncSettings()
    tz = raw.get("timezone", defaults.timezone)
    try:
        ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"unknown timezone: {tz}") from e
    default_status = raw.get("default_status", defaults.default_status)
    if default_status not in NEW_RECORD_STATUSES:
        raise ConfigError(f"invalid default_status: {default_status}")
    return SyncSettings(
        default_status=default_status,
        force_status_from_sheet=bool(
            raw.get("force_status_from_sheet", defaults.force_status_from_sheet)
        ),
        http_timeout=float(raw.get("http_timeout", defaults.http_timeout)),
        schedule_buffer_seconds=int(
            raw.get("schedule_buffer_seconds", defaults.schedule_buffer_seconds)
        ),
        timezone=tz,
        lock_ttl_seconds=int(raw.get("lock_ttl_seconds", defaults.lock_ttl_seconds)),
    )


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> SyncConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)

    raw_sheets = data["sheets"] if "sheets" in data else _migrate_legacy(data)
    db_raw = data.get("database") or {}
    return SyncConfig(
        sheets=normalize_sheets(raw_sheets),
        settings=_build_settings(data.get("settings") or {}),
        database=DatabaseConfig(
            host=db_raw.get("host"),
            port=db_raw.get("port"),
            user=db_raw.get("user"),
            password=db_raw.get("password"),
            database=db_raw.get("database"),
            dsn=db_raw.get("dsn"),
        ),
        media_directory=data.get("media_directory", "./media"),
        lock_directory=data.get("lock_directory", "./logs"),
    )
