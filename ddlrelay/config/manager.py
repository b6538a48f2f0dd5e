"""Configuration assembly: defaults + YAML + environment + explicit overrides."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from ddlrelay.config.loader import load_yaml_file, resolve_config_path
from ddlrelay.config.models import RelayConfig

ENV_PREFIX = "DDLRELAY_"
_RESERVED_ENV = {"DDLRELAY_CONFIG"}

logger = logging.getLogger(__name__)


def _deep_merge(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    merged: dict[str, Any] = dict(base)
    for key, value in updates.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _parse_env_value(raw: str) -> Any:
    """Scalars stay strings so pydantic coerces them per field; JSON containers are decoded."""
    value = raw.strip()
    if value.lower() in {"null", "none"}:
        return None
    if value.startswith("[") or value.startswith("{"):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


def _set_path(target: dict[str, Any], path: list[str], value: Any) -> None:
    head, *rest = path
    if not rest:
        target[head] = value
        return
    child = target.get(head)
    if not isinstance(child, dict):
        child = target[head] = {}
    _set_path(child, rest, value)


def collect_env_overrides(environ: dict[str, str] | None = None, prefix: str = ENV_PREFIX) -> dict[str, Any]:
    """Turn DDLRELAY_AUDIT__BATCH_SIZE=20 into {"audit": {"batch_size": "20"}}."""
    source = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}
    for key, raw_value in source.items():
        if not key.startswith(prefix) or key in _RESERVED_ENV:
            continue
        path = [p.strip().lower() for p in key[len(prefix) :].split("__") if p.strip()]
        if path:
            _set_path(overrides, path, _parse_env_value(raw_value))
    return overrides


def load_config(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
    environ: dict[str, str] | None = None,
) -> RelayConfig:
    """Load and validate the process configuration.

    Raises:
        ConfigLoadError: the YAML file is missing or malformed.
        pydantic.ValidationError: required settings are missing or invalid.
    """
    path = resolve_config_path(str(config_path) if config_path is not None else None)
    data: dict[str, Any] = load_yaml_file(path) if path is not None else {}
    data = _deep_merge(data, collect_env_overrides(environ))
    data = _deep_merge(data, overrides or {})
    config = RelayConfig.model_validate(data)
    if config.audit.retry_delay > config.audit.polling_interval:
        logger.warning(
            "audit.retry_delay=%ds exceeds polling_interval=%ds; failed events are retried every poll cycle",
            config.audit.retry_delay,
            config.audit.polling_interval,
        )
    return config
