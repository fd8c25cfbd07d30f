"""Publish/subscribe bus for registry changes.

Two backends feed the same consumers:

* in-process — :meth:`SyncBus.publish` fans a :class:`RegistryChange`
  out to every subscriber synchronously;
* cross-process — a :class:`StoreWatcher` polls the shared store file
  and calls the external subscribers, who re-read the store.

Conflict policy is last write wins: there is no merge and no version
check, so two processes saving at the same time can overwrite each
other.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple

from mcp_watchtower.constants import DEFAULT_SYNC_DEBOUNCE, DEFAULT_SYNC_POLL_INTERVAL
from mcp_watchtower.registry.models import HealthRecord, ServerEntry
from mcp_watchtower.sync.watcher import StoreWatcher

logger = logging.getLogger(__name__)


class ChangeKind(Enum):
    ENTRIES = "entries"
    HEALTH = "health"


class ChangeOrigin(Enum):
    LOCAL = "local"
    EXTERNAL = "external"


@dataclass(frozen=True)
class RegistryChange:
    """One registry mutation as seen by subscribers.

    ``ENTRIES`` changes carry the full updated entry list; ``HEALTH``
    changes carry the URL and its new record.
    """

    kind: ChangeKind
    origin: ChangeOrigin = ChangeOrigin.LOCAL
    entries: Tuple[ServerEntry, ...] = field(default_factory=tuple)
    url: Optional[str] = None
    health: Optional[HealthRecord] = None

    @classmethod
    def entries_changed(
        cls, entries: List[ServerEntry], origin: ChangeOrigin = ChangeOrigin.LOCAL
    ) -> RegistryChange:
        return cls(kind=ChangeKind.ENTRIES, origin=origin, entries=tuple(entries))

    @classmethod
    def health_changed(cls, url: str, record: HealthRecord) -> RegistryChange:
        return cls(kind=ChangeKind.HEALTH, url=url, health=record)


Subscriber = Callable[[RegistryChange], Any]
ExternalSubscriber = Callable[[], Any]


class SyncBus:
    """Fan-out of registry changes inside and across processes.

    Parameters
    ----------
    store_path:
        Path of the shared store file.  Without it the bus is
        in-process only and :meth:`start` does nothing.
    poll_interval:
        Seconds between store file polls.
    debounce:
        Debounce passed to the :class:`StoreWatcher`.
    """

    def __init__(
        self,
        *,
        store_path: Optional[str] = None,
        poll_interval: float = DEFAULT_SYNC_POLL_INTERVAL,
        debounce: float = DEFAULT_SYNC_DEBOUNCE,
    ) -> None:
        self._subscribers: List[Subscriber] = []
        self._external: List[ExternalSubscriber] = []
        self._background_tasks: set[asyncio.Task[Any]] = set()
        self._watcher: Optional[StoreWatcher] = None
        if store_path is not None:
            self._watcher = StoreWatcher(
                store_path,
                self._dispatch_external,
                poll_interval=poll_interval,
                debounce=debounce,
            )

    # ── Same-process fan-out ─────────────────────────────────────────

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register *callback*; returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def publish(self, change: RegistryChange) -> None:
        """Deliver *change* to every same-process subscriber."""
        if change.kind is ChangeKind.ENTRIES and self._watcher is not None:
            self._watcher.mark_seen()
        for callback in list(self._subscribers):
            try:
                result = callback(change)
                if inspect.isawaitable(result):
                    self._schedule(result)
            except Exception:
                logger.exception("Registry subscriber %r failed", callback)

    # ── Cross-process notifications ──────────────────────────────────

    def subscribe_external(self, callback: ExternalSubscriber) -> Callable[[], None]:
        """Call *callback* whenever another process rewrites the store."""
        self._external.append(callback)

        def _unsubscribe() -> None:
            if callback in self._external:
                self._external.remove(callback)

        return _unsubscribe

    def start(self) -> None:
        """Start the store watcher (requires a running event loop)."""
        if self._watcher is not None:
            self._watcher.start()

    async def stop(self) -> None:
        if self._watcher is not None:
            await self._watcher.stop()

    @property
    def watching(self) -> bool:
        return self._watcher is not None and self._watcher.watching

    async def _dispatch_external(self) -> None:
        logger.info("Server store changed by another process")
        for callback in list(self._external):
            try:
                result = callback()
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("External-change subscriber %r failed", callback)

    def _schedule(self, awaitable: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Async subscriber dropped: no running event loop")
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return
        task = asyncio.ensure_future(awaitable, loop=loop)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
