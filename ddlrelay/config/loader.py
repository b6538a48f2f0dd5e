"""YAML configuration file discovery and parsing."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

CONFIG_ENV_VAR = "DDLRELAY_CONFIG"
DEFAULT_FILENAMES = ("ddlrelay.yaml", "ddlrelay.yml")


class ConfigLoadError(ValueError):
    """Raised when the configuration file cannot be read or parsed."""


def resolve_config_path(cli_path: str | None = None) -> Path | None:
    """Pick the config file: explicit CLI path, then DDLRELAY_CONFIG, then cwd.

    An explicit path is returned even when it does not exist so that the
    caller reports it; the cwd fallback returns None when nothing is found.
    """
    if cli_path and cli_path.strip():
        return Path(cli_path.strip())
    env_path = os.environ.get(CONFIG_ENV_VAR, "").strip()
    if env_path:
        return Path(env_path)
    for name in DEFAULT_FILENAMES:
        candidate = Path.cwd() / name
        if candidate.exists():
            return candidate
    return None


def load_yaml_file(path: str | Path) -> dict[str, Any]:
    """Parse one YAML mapping. An empty file yields an empty dict."""
    target = Path(path)
    if not target.exists():
        raise ConfigLoadError(f"Config file not found: {target}")
    text = target.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        if mark is not None:
            raise ConfigLoadError(f"Invalid YAML at {target}:{mark.line + 1}:{mark.column + 1}") from exc
        raise ConfigLoadError(f"Invalid YAML at {target}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigLoadError(f"Config root must be a mapping: {target}")
    return data
