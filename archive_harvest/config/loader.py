"""Configuration loading helpers for archive-harvest."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

import yaml

from .models import HarvestConfig

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
CONFIG_ENV_VAR = "ARCHIVE_HARVEST_CONFIG"


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")
    return data


def load_settings(path: Path) -> dict[str, Any]:
    """Read default settings from a YAML or JSON file."""

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")
    if path.suffix not in CONFIG_EXTENSIONS:
        raise ValueError(f"Unsupported configuration format: {path.suffix}")
    # 文件中允许使用连字符写法（page-workers），统一成字段名
    return {str(key).replace("-", "_"): value for key, value in _read_file(path).items()}


def build_config(
    overrides: Mapping[str, Any] | None = None, settings_path: Path | None = None
) -> HarvestConfig:
    """Merge file settings with explicit overrides and validate the result.

    Overrides whose value is ``None`` are treated as "not given" so that
    file settings and model defaults still apply.
    """

    payload: dict[str, Any] = {}
    if settings_path is not None:
        payload.update(load_settings(settings_path))
    for key, value in (overrides or {}).items():
        if value is not None:
            payload[key] = value
    return HarvestConfig.model_validate(payload)


__all__ = ["CONFIG_ENV_VAR", "CONFIG_EXTENSIONS", "build_config", "load_settings"]
