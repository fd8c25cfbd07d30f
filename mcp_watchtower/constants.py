"""Shared constants for MCP Watchtower."""

import os

APP_NAME = "MCP Watchtower"
APP_VERSION = "0.1.0"

# Persistence
STORAGE_KEY = "mcp-servers"
CONFIG_DIR = os.path.join(
    os.environ.get("XDG_CONFIG_HOME", os.path.expanduser("~/.config")),
    "mcp-watchtower",
)
DEFAULT_STORE_PATH = os.path.join(CONFIG_DIR, "servers.json")

# Health probing
DEFAULT_PROBE_TIMEOUT = 5.0  # seconds, shared by the three candidate requests
DEFAULT_POLL_INTERVAL = 30.0  # seconds between scheduler ticks
DEFAULT_STALE_THRESHOLD = 30.0  # seconds an ONLINE record stays fresh
HEALTH_PATH = "/health"
TOOLS_PATH = "/tools"
UNREACHABLE_ERROR = "Unreachable"

# Cross-process sync
DEFAULT_SYNC_POLL_INTERVAL = 1.0  # seconds between store file stats
DEFAULT_SYNC_DEBOUNCE = 0.0

# Logging defaults
LOG_DIR = "logs"
DEFAULT_LOG_LEVEL = "INFO"

# Config file discovery
CONFIG_ENV_VAR = "WATCHTOWER_CONFIG"
CONFIG_SEARCH_ORDER = ("watchtower.yaml", "watchtower.yml")
