"""Registry façade — the only surface consumers touch.

Owns the entry view, the per-URL health map, the store, the sync bus
and the poll scheduler, and gives them an explicit lifecycle
(:meth:`Registry.start` / :meth:`Registry.stop`) independent of any UI.
Consumers read :class:`RegistrySnapshot` objects and subscribe to
changes; they never write the store themselves.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Union

from mcp_watchtower.config.schema import WatchtowerConfig
from mcp_watchtower.errors import InvalidServerUrlError, StoreError
from mcp_watchtower.health.probe import HealthProbe
from mcp_watchtower.health.scheduler import PollScheduler
from mcp_watchtower.registry.models import (
    AddOutcome,
    HealthRecord,
    RegistrySnapshot,
    ServerEntry,
    Transport,
    normalize_url,
)
from mcp_watchtower.registry.store import ServerStore
from mcp_watchtower.sync.bus import ChangeKind, ChangeOrigin, RegistryChange, SyncBus

logger = logging.getLogger(__name__)


class Registry:
    """Registered capability servers and their health.

    Parameters
    ----------
    store:
        The :class:`ServerStore` holding the persisted list.
    bus:
        The :class:`SyncBus` shared with *store*.  When omitted, a bus
        watching the store file is created.  Either way the bus is
        attached to the store so its saves reach this registry.
    probe:
        The :class:`HealthProbe` used by the scheduler and by
        :meth:`test_connection`.
    settings:
        Full :class:`WatchtowerConfig`; the ``health`` and ``sync``
        sections are read here.
    """

    def __init__(
        self,
        store: ServerStore,
        *,
        bus: Optional[SyncBus] = None,
        probe: Optional[HealthProbe] = None,
        settings: Optional[WatchtowerConfig] = None,
    ) -> None:
        self._settings = settings or WatchtowerConfig()
        health_cfg = self._settings.health

        if bus is None:
            bus = SyncBus(
                store_path=store.path,
                poll_interval=self._settings.sync.poll_interval,
                debounce=self._settings.sync.debounce,
            )
        if store.bus is not bus:
            if store.bus is not None:
                logger.warning("Store %s was attached to another bus; re-attaching", store.path)
            store.bus = bus
        self._store = store
        self._bus = bus
        self._probe = probe or HealthProbe(timeout=health_cfg.probe_timeout)
        self._scheduler = PollScheduler(
            self,
            self._probe,
            interval=health_cfg.poll_interval,
            stale_threshold=health_cfg.stale_threshold,
        )

        self._entries: List[ServerEntry] = store.load()
        self._health: Dict[str, HealthRecord] = {}

        self._unsubscribers = [
            self._bus.subscribe(self._on_change),
            self._bus.subscribe_external(self.reload),
        ]

    # ── Queries ──────────────────────────────────────────────────────

    def list(self) -> RegistrySnapshot:
        """Entries in insertion order plus health for those URLs only."""
        entries = tuple(self._entries)
        present = {e.url for e in entries}
        health = {url: rec for url, rec in self._health.items() if url in present}
        return RegistrySnapshot(entries=entries, health=health)

    def entries(self) -> List[ServerEntry]:
        return list(self._entries)

    def get_health(self, url: str) -> Optional[HealthRecord]:
        return self._health.get(url)

    @property
    def store(self) -> ServerStore:
        return self._store

    @property
    def bus(self) -> SyncBus:
        return self._bus

    @property
    def scheduler(self) -> PollScheduler:
        return self._scheduler

    # ── Mutations ────────────────────────────────────────────────────

    def add(
        self,
        entry: Union[ServerEntry, str],
        *,
        name: Optional[str] = None,
        transport: Any = Transport.HTTP,
        tested: Optional[HealthRecord] = None,
    ) -> AddOutcome:
        """Register a server.

        *tested* is the result of a :meth:`test_connection` call for the
        same URL; it becomes the server's initial health record.  A store
        that cannot be written yields :attr:`AddOutcome.FAILED`.
        """
        try:
            if isinstance(entry, ServerEntry):
                new_entry = ServerEntry.create(entry.url, transport=entry.transport, name=entry.name)
            else:
                new_entry = ServerEntry.create(entry, transport=transport, name=name)
        except InvalidServerUrlError as exc:
            logger.warning("Rejected server: %s", exc)
            return AddOutcome.INVALID

        current = self._store.load()
        if any(e.url == new_entry.url for e in current):
            logger.info("Server %s already registered", new_entry.url)
            return AddOutcome.DUPLICATE

        current.append(new_entry)
        try:
            self._store.save(current)
        except StoreError as exc:
            logger.error("Could not add server %s: %s", new_entry.url, exc)
            return AddOutcome.FAILED
        logger.info("Server %s added", new_entry.url)

        if tested is not None:
            self.record_health(new_entry.url, tested)
        return AddOutcome.ADDED

    def remove(self, url: str) -> bool:
        """Unregister *url*; returns whether an entry was removed.

        Unknown or invalid URLs are a no-op.  A store write failure is
        logged and reported as ``False``.
        """
        try:
            key = normalize_url(url)
        except InvalidServerUrlError:
            logger.debug("Ignoring removal of invalid URL %r", url)
            return False

        current = self._store.load()
        remaining = [e for e in current if e.url != key]
        if len(remaining) == len(current):
            logger.debug("Server %s not registered; nothing to remove", key)
            return False
        try:
            self._store.save(remaining)
        except StoreError as exc:
            logger.error("Could not remove server %s: %s", key, exc)
            return False
        logger.info("Server %s removed", key)
        return True

    async def test_connection(self, url: str, timeout: Optional[float] = None) -> HealthRecord:
        """Probe *url* on demand; it does not have to be registered."""
        return await self._probe.check(url.strip() if isinstance(url, str) else url, timeout)

    def record_health(self, url: str, record: HealthRecord) -> None:
        """Store a health record and notify subscribers.

        Results for URLs that are no longer registered are dropped.
        """
        if not any(e.url == url for e in self._entries):
            logger.debug("Dropping health for unregistered server %s", url)
            return
        self._health[url] = record
        self._bus.publish(RegistryChange.health_changed(url, record))

    def reload(self) -> None:
        """Re-read the store, e.g. after another process changed it."""
        entries = self._store.load()
        self._bus.publish(RegistryChange.entries_changed(entries, origin=ChangeOrigin.EXTERNAL))

    def subscribe(self, callback: Callable[[RegistryChange], Any]) -> Callable[[], None]:
        """Subscribe to registry changes; returns an unsubscribe function."""
        return self._bus.subscribe(callback)

    # ── Lifecycle ────────────────────────────────────────────────────

    async def start(self) -> None:
        """Begin cross-process sync and periodic health checks."""
        self.reload()
        self._bus.start()
        self._scheduler.start()

    async def stop(self) -> None:
        await self._scheduler.stop()
        await self._bus.stop()

    def close(self) -> None:
        """Detach from the bus.  The registry must not be used afterwards."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    # ── Internal ─────────────────────────────────────────────────────

    def _on_change(self, change: RegistryChange) -> None:
        if change.kind is not ChangeKind.ENTRIES:
            return
        self._entries = list(change.entries)
        present = {e.url for e in self._entries}
        for url in [u for u in self._health if u not in present]:
            del self._health[url]
        if self._scheduler.running and any(url not in self._health for url in present):
            self._scheduler.trigger()


def create_registry(
    settings: Optional[WatchtowerConfig] = None,
    *,
    store_path: Optional[str] = None,
    probe: Optional[HealthProbe] = None,
) -> Registry:
    """Build the store, bus, probe and registry from configuration."""
    settings = settings or WatchtowerConfig()
    path = store_path or settings.store.path
    bus = SyncBus(
        store_path=path,
        poll_interval=settings.sync.poll_interval,
        debounce=settings.sync.debounce,
    )
    store = ServerStore(path, key=settings.store.key, bus=bus)
    return Registry(store, bus=bus, probe=probe, settings=settings)
