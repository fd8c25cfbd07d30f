"""Health monitoring for registered capability servers.

Public API
----------
- :class:`HealthProbe` — one bounded-time check of a single server
- :class:`PollScheduler` — periodic re-check of the whole registry
"""

from mcp_watchtower.health.probe import HealthProbe
from mcp_watchtower.health.scheduler import PollScheduler

__all__ = [
    "HealthProbe",
    "PollScheduler",
]
