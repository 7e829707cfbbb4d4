"""Configuration loading."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from ..schemas.config import AppConfig, load_config


class ConfigManager:
    """YAML-backed settings loader rooted at a config directory."""

    def __init__(self, base_path: str | Path):
        self._base_path = Path(base_path)

    def load_raw(self, name: str) -> dict[str, Any]:
        """Load ``<name>.yaml``; an empty file yields an empty mapping."""
        path = self._base_path / f"{name}.yaml"
        with path.open("r", encoding="utf-8") as handle:
            return yaml.safe_load(handle) or {}

    def load(self, name: str) -> AppConfig:
        return load_config(self.load_raw(name))


def load_config_file(path: str | Path) -> AppConfig:
    with Path(path).open("r", encoding="utf-8") as handle:
        return load_config(yaml.safe_load(handle) or {})


__all__ = ["ConfigManager", "load_config_file"]
