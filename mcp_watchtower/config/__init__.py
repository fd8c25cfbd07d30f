"""Configuration loading and validation for MCP Watchtower."""

from mcp_watchtower.config.env import expand_env_vars
from mcp_watchtower.config.loader import find_config_file, load_watchtower_config
from mcp_watchtower.config.schema import (
    HealthSettings,
    LoggingSettings,
    StoreSettings,
    SyncSettings,
    WatchtowerConfig,
)

__all__ = [
    "HealthSettings",
    "LoggingSettings",
    "StoreSettings",
    "SyncSettings",
    "WatchtowerConfig",
    "expand_env_vars",
    "find_config_file",
    "load_watchtower_config",
]
