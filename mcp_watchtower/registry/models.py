"""Data models for the capability server registry.

Defines the client-side types shared by the store, the health probe,
the scheduler and the registry façade (``ServerEntry``, ``Tool``,
``HealthRecord``).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import urlsplit

from mcp_watchtower.errors import InvalidServerUrlError

_ALLOWED_SCHEMES = frozenset({"http", "https"})


def normalize_url(url: Any) -> str:
    """Return the canonical form of a server URL.

    Surrounding whitespace and trailing slashes are removed so that
    ``http://a/`` and ``http://a`` identify the same server.  Raises
    :class:`InvalidServerUrlError` when the URL has no http(s) scheme
    or no host.
    """
    if not isinstance(url, str):
        raise InvalidServerUrlError(url, "URL must be a string")
    candidate = url.strip().rstrip("/")
    if not candidate:
        raise InvalidServerUrlError(url, "URL is empty")
    parts = urlsplit(candidate)
    if parts.scheme.lower() not in _ALLOWED_SCHEMES:
        raise InvalidServerUrlError(url, "scheme must be http or https")
    if not parts.netloc:
        raise InvalidServerUrlError(url, "URL has no host")
    return candidate


class Transport(Enum):
    """Transport used by the assistant to talk to a capability server."""

    HTTP = "http"
    SSE = "sse"

    @classmethod
    def parse(cls, value: Any) -> Transport:
        """Tolerant parse; unknown or missing values mean HTTP."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.HTTP


@dataclass(frozen=True)
class ServerEntry:
    """A registered capability server.  Identity is the URL."""

    url: str
    transport: Transport = Transport.HTTP
    name: Optional[str] = None

    @classmethod
    def create(
        cls,
        url: str,
        *,
        transport: Any = Transport.HTTP,
        name: Optional[str] = None,
    ) -> ServerEntry:
        """Build an entry from user input, normalising URL and name."""
        clean_name = name.strip() if isinstance(name, str) else None
        return cls(
            url=normalize_url(url),
            transport=Transport.parse(transport),
            name=clean_name or None,
        )

    @classmethod
    def from_raw(cls, item: Any) -> ServerEntry:
        """Construct from a persisted element: a bare URL or a mapping."""
        if isinstance(item, str):
            return cls.create(item)
        if isinstance(item, Mapping):
            return cls.create(
                item.get("url"),
                transport=item.get("transport"),
                name=item.get("name"),
            )
        raise InvalidServerUrlError(item, "entry must be a URL string or an object")

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"url": self.url, "transport": self.transport.value}
        if self.name:
            data["name"] = self.name
        return data

    @property
    def display_name(self) -> str:
        return self.name or self.url


def dedupe_entries(entries: List[ServerEntry]) -> List[ServerEntry]:
    """Drop later entries whose URL was already seen, keeping order."""
    seen: set[str] = set()
    unique: List[ServerEntry] = []
    for entry in entries:
        if entry.url in seen:
            continue
        seen.add(entry.url)
        unique.append(entry)
    return unique


@dataclass(frozen=True)
class Tool:
    """A capability advertised by a server."""

    name: str
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name}
        if self.description is not None:
            data["description"] = self.description
        return data


def _tool_from_item(item: Any) -> Optional[Tool]:
    if not isinstance(item, Mapping):
        return None
    name = item.get("name")
    if not isinstance(name, str) or not name:
        return None
    description = item.get("description")
    return Tool(name=name, description=description if isinstance(description, str) else None)


def decode_tools(payload: Any) -> List[Tool]:
    """Decode a ``/tools`` response body.

    Two shapes are recognised: an object carrying a ``tools`` array, or
    a bare array.  Anything else yields no tools.
    """
    if isinstance(payload, Mapping) and isinstance(payload.get("tools"), list):
        raw_items = payload["tools"]
    elif isinstance(payload, list):
        raw_items = payload
    else:
        return []
    tools = (_tool_from_item(item) for item in raw_items)
    return [t for t in tools if t is not None]


class HealthStatus(Enum):
    """Observed health of a capability server."""

    UNKNOWN = "unknown"
    CHECKING = "checking"
    ONLINE = "online"
    OFFLINE = "offline"
    ERROR = "error"


@dataclass(frozen=True)
class HealthRecord:
    """Result of the latest probe for one server URL.

    ``last_checked_at`` is an epoch timestamp in seconds; ``latency_ms``
    is the probe's wall-clock duration in milliseconds.
    """

    status: HealthStatus = HealthStatus.UNKNOWN
    latency_ms: Optional[float] = None
    last_checked_at: Optional[float] = None
    error: Optional[str] = None
    tools: Tuple[Tool, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.status is HealthStatus.ONLINE:
            if self.latency_ms is None or self.latency_ms < 0:
                raise ValueError("ONLINE health record needs a non-negative latency_ms")
            if self.last_checked_at is None:
                raise ValueError("ONLINE health record needs last_checked_at")
        if not isinstance(self.tools, tuple):
            object.__setattr__(self, "tools", tuple(self.tools))

    def checking(self) -> HealthRecord:
        """Copy marked CHECKING; previous latency and tools stay visible."""
        return replace(self, status=HealthStatus.CHECKING)

    def is_fresh(self, now: float, stale_threshold: float) -> bool:
        """True if this is an ONLINE result younger than *stale_threshold*."""
        return (
            self.status is HealthStatus.ONLINE
            and self.last_checked_at is not None
            and now - self.last_checked_at < stale_threshold
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "latency_ms": None if self.latency_ms is None else round(self.latency_ms, 2),
            "last_checked_at": self.last_checked_at,
            "error": self.error,
            "tools": [t.to_dict() for t in self.tools],
        }


@dataclass(frozen=True)
class RegistrySnapshot:
    """Read-only view handed to consumers by ``Registry.list()``."""

    entries: Tuple[ServerEntry, ...]
    health: Dict[str, HealthRecord]

    @property
    def urls(self) -> List[str]:
        return [e.url for e in self.entries]


class AddOutcome(Enum):
    """Result of ``Registry.add``."""

    ADDED = "added"
    DUPLICATE = "duplicate"
    INVALID = "invalid"
    FAILED = "failed"
