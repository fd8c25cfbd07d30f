"""Single-server health probe.

One probe issues three GET requests concurrently (``{url}``,
``{url}/health`` and ``{url}/tools``) under one shared deadline.  A
candidate that errors or is still pending at the deadline is simply a
non-answer; only the root and ``/health`` answers decide liveness.
ERROR is reserved for failures before any request is sent, such as an
unusable URL.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from mcp_watchtower.constants import (
    DEFAULT_PROBE_TIMEOUT,
    HEALTH_PATH,
    TOOLS_PATH,
    UNREACHABLE_ERROR,
)
from mcp_watchtower.errors import ProbeError
from mcp_watchtower.registry.models import HealthRecord, HealthStatus, Tool, decode_tools

logger = logging.getLogger(__name__)

_ROOT = "root"
_HEALTH = "health"
_TOOLS = "tools"


class HealthProbe:
    """Bounded-time reachability and tool-discovery check.

    Parameters
    ----------
    timeout:
        Default deadline in seconds shared by the three requests.
    transport:
        Optional ``httpx`` transport (tests pass ``httpx.MockTransport``).
    headers:
        Extra headers sent with every probe request.
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_PROBE_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport
        self._headers = headers or {}

    @property
    def timeout(self) -> float:
        return self._timeout

    async def check(self, url: str, timeout: Optional[float] = None) -> HealthRecord:
        """Probe *url* and return its health record.  Never raises."""
        budget = self._timeout if timeout is None else timeout
        started_at = time.time()
        start = time.monotonic()
        try:
            base = self._base_url(url)
            answers = await self._gather_candidates(base, budget)
        except Exception as exc:
            logger.debug("Probe of %s failed: %s", url, exc, exc_info=True)
            return HealthRecord(
                status=HealthStatus.ERROR,
                last_checked_at=max(time.time(), started_at),
                error=str(exc) or "Connection failed",
            )

        latency_ms = (time.monotonic() - start) * 1000.0
        checked_at = max(time.time(), started_at)

        if not (_succeeded(answers[_ROOT]) or _succeeded(answers[_HEALTH])):
            logger.debug("Probe of %s: unreachable after %.0fms", url, latency_ms)
            return HealthRecord(
                status=HealthStatus.OFFLINE,
                last_checked_at=checked_at,
                error=UNREACHABLE_ERROR,
            )

        tools = _parse_tools(url, answers[_TOOLS])
        logger.debug("Probe of %s: online in %.0fms, %d tool(s)", url, latency_ms, len(tools))
        return HealthRecord(
            status=HealthStatus.ONLINE,
            latency_ms=latency_ms,
            last_checked_at=checked_at,
            tools=tuple(tools),
        )

    # ── internals ───────────────────────────────────────────────────

    @staticmethod
    def _base_url(url: str) -> str:
        if not isinstance(url, str) or not url.strip():
            raise ProbeError("Server URL is empty")
        base = url.strip().rstrip("/")
        parsed = httpx.URL(base)
        if parsed.scheme not in ("http", "https") or not parsed.host:
            raise ProbeError(f"Unsupported server URL: {url}")
        return base

    async def _gather_candidates(
        self, base: str, budget: float
    ) -> Dict[str, Optional[httpx.Response]]:
        targets = {
            _ROOT: base,
            _HEALTH: f"{base}{HEALTH_PATH}",
            _TOOLS: f"{base}{TOOLS_PATH}",
        }
        async with httpx.AsyncClient(
            timeout=budget,
            transport=self._transport,
            headers=self._headers,
            follow_redirects=True,
        ) as client:
            tasks = {
                name: asyncio.create_task(_fetch(client, target), name=f"probe-{name}")
                for name, target in targets.items()
            }
            _done, pending = await asyncio.wait(tasks.values(), timeout=budget)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

            answers: Dict[str, Optional[httpx.Response]] = {}
            for name, task in tasks.items():
                if task.cancelled():
                    answers[name] = None
                else:
                    answers[name] = task.result()
            return answers


async def _fetch(client: httpx.AsyncClient, url: str) -> Optional[httpx.Response]:
    """GET *url*; any failure of this one request is a non-answer (``None``)."""
    try:
        return await client.get(url)
    except httpx.HTTPError as exc:
        logger.debug("GET %s: %s: %s", url, type(exc).__name__, exc)
        return None
    except Exception as exc:
        logger.debug("GET %s failed unexpectedly: %r", url, exc, exc_info=True)
        return None


def _succeeded(response: Optional[httpx.Response]) -> bool:
    return response is not None and response.is_success


def _parse_tools(url: str, response: Optional[httpx.Response]) -> List[Tool]:
    if not _succeeded(response):
        return []
    try:
        payload: Any = response.json()
    except ValueError as exc:
        logger.warning("Failed to parse tools from %s: %s", url, exc)
        return []
    return decode_tools(payload)
