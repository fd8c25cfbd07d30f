"""Async store file watcher.

Detects writes made to the shared server store by *other* processes and
invokes a callback so consumers can re-read it.  Uses ``asyncio``
polling of ``os.stat`` rather than ``watchdog``.  Atomic saves replace
the file, so the inode changes on every write even when size and mtime
happen to match.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import os
from typing import Any, Callable, Optional, Tuple

from mcp_watchtower.constants import DEFAULT_SYNC_DEBOUNCE, DEFAULT_SYNC_POLL_INTERVAL

logger = logging.getLogger(__name__)

FileSignature = Optional[Tuple[int, int, int]]


class StoreWatcher:
    """Poll-based async watcher for the server store file.

    Parameters
    ----------
    path:
        Path of the store file.  It may not exist yet.
    on_change:
        Callback (sync or async, no arguments) invoked after a change
        made by someone else has been detected.
    poll_interval:
        Seconds between ``os.stat`` polls.
    debounce:
        Seconds to wait after a detected change before invoking the
        callback; further changes during that window are collapsed.
    """

    def __init__(
        self,
        path: str,
        on_change: Callable[[], Any],
        *,
        poll_interval: float = DEFAULT_SYNC_POLL_INTERVAL,
        debounce: float = DEFAULT_SYNC_DEBOUNCE,
    ) -> None:
        self._path = path
        self._on_change = on_change
        self._poll_interval = poll_interval
        self._debounce = debounce

        self._task: Optional[asyncio.Task[None]] = None
        self._last_signature: FileSignature = self._current_signature()
        self._stop_event = asyncio.Event()

    # ── Lifecycle ────────────────────────────────────────────────────

    def start(self) -> None:
        """Begin watching.  Safe to call multiple times."""
        if self._task is not None and not self._task.done():
            return
        self._stop_event.clear()
        self.mark_seen()
        self._task = asyncio.create_task(self._poll_loop(), name="store-watcher")
        logger.info("Store watcher started: %s", self._path)

    async def stop(self) -> None:
        """Stop watching and await task cleanup."""
        self._stop_event.set()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Store watcher stopped.")

    @property
    def watching(self) -> bool:
        return self._task is not None and not self._task.done()

    def mark_seen(self) -> None:
        """Accept the file's current state as already known.

        Called after this process writes the store so its own save is
        not reported back as an external change.
        """
        self._last_signature = self._current_signature()

    # ── Internal ─────────────────────────────────────────────────────

    def _current_signature(self) -> FileSignature:
        try:
            st = os.stat(self._path)
        except OSError:
            return None
        return (st.st_ino, st.st_mtime_ns, st.st_size)

    async def _poll_loop(self) -> None:
        """Poll the store file and notify on change."""
        while not self._stop_event.is_set():
            try:
                await asyncio.sleep(self._poll_interval)
            except asyncio.CancelledError:
                return

            signature = self._current_signature()
            if signature == self._last_signature:
                continue

            logger.debug(
                "Store change detected (%s → %s)", self._last_signature, signature
            )
            self._last_signature = signature
            if self._debounce > 0:
                await asyncio.sleep(self._debounce)
                settled = self._current_signature()
                if settled != signature:
                    # Another write landed during debounce; report it next round
                    continue

            try:
                result = self._on_change()
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Error in store-change callback.")
