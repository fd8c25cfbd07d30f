"""Capability server registry — models, store and façade.

The façade lives in :mod:`mcp_watchtower.registry.service` and the
file store in :mod:`mcp_watchtower.registry.store`; this package
re-exports the data model only.
"""

from mcp_watchtower.registry.models import (
    AddOutcome,
    HealthRecord,
    HealthStatus,
    RegistrySnapshot,
    ServerEntry,
    Tool,
    Transport,
    decode_tools,
    normalize_url,
)

__all__ = [
    "AddOutcome",
    "HealthRecord",
    "HealthStatus",
    "RegistrySnapshot",
    "ServerEntry",
    "Tool",
    "Transport",
    "decode_tools",
    "normalize_url",
]
