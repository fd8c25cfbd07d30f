"""Tests for the single-server health probe (no real network)."""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Dict

import httpx

from mcp_watchtower.constants import UNREACHABLE_ERROR
from mcp_watchtower.health.probe import HealthProbe
from mcp_watchtower.registry.models import HealthStatus, Tool

Route = Callable[[httpx.Request], httpx.Response]


def _routed(routes: Dict[str, object]) -> httpx.MockTransport:
    """Build a transport answering by path; unknown paths are refused.

    Route values are an ``httpx.Response``, a callable building one per
    request, an exception instance to raise, or the string ``"hang"`` to
    never answer in time.
    """

    async def handler(request: httpx.Request) -> httpx.Response:
        action = routes.get(request.url.path or "/")
        if action is None:
            raise httpx.ConnectError("Connection refused", request=request)
        if action == "hang":
            await asyncio.sleep(30)
        if isinstance(action, Exception):
            raise action
        if callable(action):
            return action(request)
        return action

    return httpx.MockTransport(handler)


def _check(transport: httpx.MockTransport, url: str = "http://localhost:4000", **kwargs):
    probe = HealthProbe(timeout=kwargs.pop("timeout", 1.0), transport=transport)
    return asyncio.run(probe.check(url, **kwargs))


class TestOnline:
    def test_health_and_tools(self) -> None:
        transport = _routed(
            {
                "/health": httpx.Response(200, json={"ok": True}),
                "/tools": httpx.Response(200, json={"tools": [{"name": "search"}]}),
            }
        )
        before = time.time()
        record = _check(transport)
        assert record.status is HealthStatus.ONLINE
        assert record.tools == (Tool("search"),)
        assert record.error is None
        assert record.latency_ms is not None and record.latency_ms >= 0
        assert record.last_checked_at >= before

    def test_root_only(self) -> None:
        record = _check(_routed({"/": httpx.Response(200, text="hello")}))
        assert record.status is HealthStatus.ONLINE
        assert record.tools == ()

    def test_bare_array_tools(self) -> None:
        transport = _routed(
            {
                "/": httpx.Response(204),
                "/tools": httpx.Response(200, json=[{"name": "a"}, {"name": "b", "description": "B"}]),
            }
        )
        record = _check(transport)
        assert record.tools == (Tool("a"), Tool("b", "B"))

    def test_malformed_tools_body(self) -> None:
        transport = _routed(
            {
                "/health": httpx.Response(200),
                "/tools": httpx.Response(200, text="<html>not json</html>"),
            }
        )
        record = _check(transport)
        assert record.status is HealthStatus.ONLINE
        assert record.tools == ()

    def test_tools_error_status_ignored(self) -> None:
        transport = _routed(
            {
                "/health": httpx.Response(200),
                "/tools": httpx.Response(500, json={"tools": [{"name": "x"}]}),
            }
        )
        assert _check(transport).tools == ()

    def test_trailing_slash_in_url(self) -> None:
        seen = []

        async def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.path)
            return httpx.Response(200, json=[])

        record = _check(httpx.MockTransport(handler), url="http://localhost:4000/")
        assert record.status is HealthStatus.ONLINE
        assert sorted(seen) == ["/", "/health", "/tools"]

    def test_hung_tools_does_not_block_online(self) -> None:
        transport = _routed({"/health": httpx.Response(200), "/tools": "hang"})
        start = time.monotonic()
        record = _check(transport, timeout=0.3)
        assert record.status is HealthStatus.ONLINE
        assert record.tools == ()
        assert time.monotonic() - start < 2.0


class TestOffline:
    def test_all_refused(self) -> None:
        record = _check(_routed({}), url="http://dead:9999")
        assert record.status is HealthStatus.OFFLINE
        assert record.error == UNREACHABLE_ERROR
        assert record.tools == ()
        assert record.last_checked_at is not None

    def test_tools_alone_is_not_online(self) -> None:
        transport = _routed({"/tools": httpx.Response(200, json={"tools": [{"name": "x"}]})})
        record = _check(transport)
        assert record.status is HealthStatus.OFFLINE
        assert record.tools == ()

    def test_non_2xx_is_not_online(self) -> None:
        transport = _routed({"/": httpx.Response(503), "/health": httpx.Response(404)})
        assert _check(transport).status is HealthStatus.OFFLINE

    def test_hang_resolves_within_timeout(self) -> None:
        transport = _routed({"/": "hang", "/health": "hang", "/tools": "hang"})
        start = time.monotonic()
        record = _check(transport, timeout=0.2)
        elapsed = time.monotonic() - start
        assert record.status is HealthStatus.OFFLINE
        assert record.error == UNREACHABLE_ERROR
        assert elapsed < 0.2 + 1.0

    def test_per_call_timeout_overrides_default(self) -> None:
        transport = _routed({"/": "hang", "/health": "hang"})
        probe = HealthProbe(timeout=30.0, transport=transport)
        start = time.monotonic()
        record = asyncio.run(probe.check("http://slow", timeout=0.2))
        assert record.status is HealthStatus.OFFLINE
        assert time.monotonic() - start < 2.0


class TestError:
    def test_invalid_url(self) -> None:
        record = _check(_routed({}), url="not a url")
        assert record.status is HealthStatus.ERROR
        assert record.error

    def test_empty_url(self) -> None:
        record = _check(_routed({}), url="   ")
        assert record.status is HealthStatus.ERROR
        assert "empty" in record.error

    def test_unsupported_scheme(self) -> None:
        record = _check(_routed({}), url="ftp://files.example")
        assert record.status is HealthStatus.ERROR
        assert "Unsupported" in record.error


class TestCandidateFailures:
    def test_root_raising_does_not_mask_health(self) -> None:
        transport = _routed({"/": RuntimeError("boom"), "/health": httpx.Response(200)})
        record = _check(transport)
        assert record.status is HealthStatus.ONLINE
        assert record.error is None

    def test_exception_without_message(self) -> None:
        transport = _routed({"/": RuntimeError(), "/health": httpx.Response(200)})
        assert _check(transport).status is HealthStatus.ONLINE

    def test_all_candidates_raising_is_offline(self) -> None:
        transport = _routed(
            {"/": RuntimeError("a"), "/health": RuntimeError("b"), "/tools": RuntimeError("c")}
        )
        record = _check(transport)
        assert record.status is HealthStatus.OFFLINE
        assert record.error == UNREACHABLE_ERROR

    def test_undecodable_tools_body(self) -> None:
        transport = _routed(
            {
                "/health": httpx.Response(200),
                "/tools": lambda request: httpx.Response(
                    200, headers={"content-encoding": "gzip"}, content=b"not gzip"
                ),
            }
        )
        record = _check(transport)
        assert record.status is HealthStatus.ONLINE
        assert record.tools == ()

    def test_tools_redirect_loop(self) -> None:
        transport = _routed(
            {
                "/health": httpx.Response(200),
                "/tools": lambda request: httpx.Response(
                    302, headers={"location": str(request.url)}
                ),
            }
        )
        record = _check(transport)
        assert record.status is HealthStatus.ONLINE
        assert record.tools == ()
