"""Registry change propagation.

Public API
----------
- :class:`SyncBus` — in-process fan-out plus cross-process store polling
- :class:`RegistryChange` — one published change
- :class:`StoreWatcher` — stat-polling watcher for the store file
"""

from mcp_watchtower.sync.bus import ChangeKind, ChangeOrigin, RegistryChange, SyncBus
from mcp_watchtower.sync.watcher import StoreWatcher

__all__ = [
    "ChangeKind",
    "ChangeOrigin",
    "RegistryChange",
    "StoreWatcher",
    "SyncBus",
]
