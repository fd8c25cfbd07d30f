"""Periodic health re-evaluation of the whole registry.

Runs an asyncio background task that ticks immediately on start and
then every ``interval`` seconds; :meth:`PollScheduler.trigger` adds an
out-of-band tick when servers are added.  Each tick probes every registered
server whose last record is not a fresh ONLINE result; probes run
concurrently and each result is written back as soon as it arrives.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional, Set

from mcp_watchtower.constants import DEFAULT_POLL_INTERVAL, DEFAULT_STALE_THRESHOLD
from mcp_watchtower.health.probe import HealthProbe
from mcp_watchtower.registry.models import HealthRecord, HealthStatus

logger = logging.getLogger(__name__)


class PollScheduler:
    """Background health-check scheduler.

    Parameters
    ----------
    registry:
        The :class:`Registry` whose entries are probed.  Only
        ``entries()``, ``get_health()`` and ``record_health()`` are used.
    probe:
        The :class:`HealthProbe` that performs each check.
    interval:
        Seconds between ticks (default 30).
    stale_threshold:
        Seconds during which an ONLINE record is trusted and its server
        is skipped (default 30).
    clock:
        Epoch-seconds clock, injectable for tests.
    """

    def __init__(
        self,
        registry,
        probe: HealthProbe,
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        stale_threshold: float = DEFAULT_STALE_THRESHOLD,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._registry = registry
        self._probe = probe
        self._interval = interval
        self._stale_threshold = stale_threshold
        self._clock = clock

        self._task: Optional[asyncio.Task[None]] = None
        self._stopped = asyncio.Event()
        self._inflight: Dict[str, asyncio.Task[None]] = {}
        self._triggered: Set[asyncio.Task[List[str]]] = set()

    # ── Public API ───────────────────────────────────────────────────

    def start(self) -> None:
        """Launch the background tick loop."""
        if self._task is not None and not self._task.done():
            logger.warning("Poll scheduler already running.")
            return
        self._stopped.clear()
        self._task = asyncio.create_task(self._run(), name="poll-scheduler")
        logger.info(
            "Poll scheduler started (interval=%.0fs, stale_threshold=%.0fs)",
            self._interval,
            self._stale_threshold,
        )

    async def stop(self) -> None:
        """Cancel the interval.  Probes already dispatched still complete."""
        self._stopped.set()
        for triggered in list(self._triggered):
            triggered.cancel()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Poll scheduler stopped.")

    def trigger(self) -> None:
        """Run an extra tick now, outside the interval schedule.

        Used when servers are added while the scheduler runs.  Servers
        already fresh or in flight are skipped by :meth:`tick` as usual.
        """
        if not self.running:
            return
        task = asyncio.create_task(self.tick(), name="poll-scheduler-trigger")
        self._triggered.add(task)
        task.add_done_callback(self._on_triggered_done)

    def _on_triggered_done(self, task: asyncio.Task[List[str]]) -> None:
        self._triggered.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Triggered health tick failed", exc_info=task.exception())

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def inflight(self) -> List[str]:
        return list(self._inflight)

    async def tick(self) -> List[str]:
        """Run one evaluation round; returns the URLs that were probed."""
        now = self._clock()
        dispatched: List[str] = []
        tasks: List[asyncio.Task[None]] = []
        for entry in self._registry.entries():
            url = entry.url
            if url in self._inflight:
                continue
            current: Optional[HealthRecord] = self._registry.get_health(url)
            if current is not None and current.is_fresh(now, self._stale_threshold):
                continue

            previous = current or HealthRecord()
            if previous.status is not HealthStatus.CHECKING:
                self._registry.record_health(url, previous.checking())
            task = asyncio.create_task(
                self._check(url, previous.status), name=f"probe-{url}"
            )
            self._inflight[url] = task
            task.add_done_callback(lambda _t, u=url: self._inflight.pop(u, None))
            dispatched.append(url)
            tasks.append(task)

        if tasks:
            logger.debug("Probing %d server(s): %s", len(tasks), dispatched)
            # asyncio.wait leaves the probes running if this tick is cancelled
            await asyncio.wait(tasks)
        return dispatched

    async def wait_idle(self) -> None:
        """Wait until every dispatched probe has been applied."""
        while self._inflight:
            await asyncio.wait(list(self._inflight.values()))

    # ── Background loop ─────────────────────────────────────────────

    async def _run(self) -> None:
        while not self._stopped.is_set():
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Health tick failed")
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self._interval)
                break  # stopped was set
            except asyncio.TimeoutError:
                pass  # interval elapsed, tick again

    async def _check(self, url: str, old_status: HealthStatus) -> None:
        """Probe one server and write the result back."""
        try:
            record = await self._probe.check(url)
        except Exception as exc:
            logger.exception("[%s] Probe crashed", url)
            record = HealthRecord(
                status=HealthStatus.ERROR,
                last_checked_at=self._clock(),
                error=f"{type(exc).__name__}: {exc}",
            )
        self._registry.record_health(url, record)
        if record.status is not old_status:
            logger.info("[%s] %s → %s", url, old_status.value, record.status.value)
