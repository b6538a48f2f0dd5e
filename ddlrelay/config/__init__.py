"""Configuration for ddlrelay."""

from ddlrelay.config.loader import ConfigLoadError, load_yaml_file, resolve_config_path
from ddlrelay.config.manager import collect_env_overrides, load_config
from ddlrelay.config.models import AuditConfig, DiscordConfig, PoolConfig, RelayConfig, StoreConfig, StoreKey

__all__ = [
    "AuditConfig",
    "ConfigLoadError",
    "DiscordConfig",
    "PoolConfig",
    "RelayConfig",
    "StoreConfig",
    "StoreKey",
    "collect_env_overrides",
    "load_config",
    "load_yaml_file",
    "resolve_config_path",
]
