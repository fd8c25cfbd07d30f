"""
MCP Watchtower - registry and health monitor for MCP capability servers.

Keeps a persisted list of capability servers, probes each one for
reachability and advertised tools, and shares registry changes between
every consumer in this process and in other processes using the same
store file.
"""

from mcp_watchtower.constants import APP_NAME, APP_VERSION

__version__ = APP_VERSION
__app_name__ = APP_NAME

__all__ = [
    "APP_NAME",
    "APP_VERSION",
    "__version__",
    "__app_name__",
]
