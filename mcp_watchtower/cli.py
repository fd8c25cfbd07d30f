"""CLI argument parsing and main entry point.

Subcommands:

* ``mcp-watchtower list``   — show registered servers.
* ``mcp-watchtower add``    — register a server (optionally testing it first).
* ``mcp-watchtower remove`` — unregister a server.
* ``mcp-watchtower test``   — probe a URL on demand.
* ``mcp-watchtower watch``  — keep health fresh and stream changes.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from rich.console import Console

from mcp_watchtower.config.loader import find_config_file, load_watchtower_config
from mcp_watchtower.config.schema import WatchtowerConfig
from mcp_watchtower.constants import APP_NAME, APP_VERSION
from mcp_watchtower.display.console import (
    describe_change,
    print_probe_result,
    print_snapshot,
)
from mcp_watchtower.display.logging_config import VALID_LEVELS, setup_logging
from mcp_watchtower.errors import WatchtowerBaseError
from mcp_watchtower.registry.models import AddOutcome, HealthStatus, Transport
from mcp_watchtower.registry.service import Registry, create_registry

module_logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)


def _load_settings(args: argparse.Namespace) -> WatchtowerConfig:
    """Config file (flag → env var → CWD) with CLI overrides applied."""
    config_path = getattr(args, "config", None) or find_config_file()
    settings = load_watchtower_config(config_path)
    if getattr(args, "store", None):
        settings.store.path = args.store
    if getattr(args, "log_level", None):
        settings.logging.level = args.log_level.upper()
    return settings


def _build_registry(args: argparse.Namespace) -> Registry:
    settings = _load_settings(args)
    setup_logging(settings.logging.level, log_dir=settings.logging.directory, quiet=True)
    module_logger.debug("%s v%s using store %s", APP_NAME, APP_VERSION, settings.store.path)
    return create_registry(settings)


# ── ``mcp-watchtower list`` ─────────────────────────────────────────────


def _cmd_list(args: argparse.Namespace) -> int:
    registry = _build_registry(args)
    snapshot = registry.list()
    if args.json:
        payload = [
            {
                **entry.to_dict(),
                "health": snapshot.health[entry.url].to_dict()
                if entry.url in snapshot.health
                else None,
            }
            for entry in snapshot.entries
        ]
        console.print_json(json.dumps(payload))
    else:
        print_snapshot(snapshot, console)
    return 0


# ── ``mcp-watchtower add`` ──────────────────────────────────────────────


def _cmd_add(args: argparse.Namespace) -> int:
    registry = _build_registry(args)
    tested = None
    if args.test:
        tested = asyncio.run(registry.test_connection(args.url))
        print_probe_result(args.url, tested, console)

    outcome = registry.add(
        args.url,
        name=args.name,
        transport=Transport.parse(args.transport),
        tested=tested,
    )
    if outcome is AddOutcome.ADDED:
        console.print(f"Added {args.url.strip()}", style="green")
        return 0
    if outcome is AddOutcome.DUPLICATE:
        console.print(f"{args.url.strip()} already exists", style="yellow")
        return 0
    if outcome is AddOutcome.FAILED:
        err_console.print(f"Could not save {args.url.strip()}; see the log", style="red")
        return 1
    err_console.print(f"Invalid server URL: {args.url!r}", style="red")
    return 1


# ── ``mcp-watchtower remove`` ───────────────────────────────────────────


def _cmd_remove(args: argparse.Namespace) -> int:
    registry = _build_registry(args)
    if registry.remove(args.url):
        console.print(f"Removed {args.url.strip()}")
    else:
        console.print(f"Nothing removed for {args.url.strip()}", style="yellow")
    return 0


# ── ``mcp-watchtower test`` ─────────────────────────────────────────────


def _cmd_test(args: argparse.Namespace) -> int:
    registry = _build_registry(args)
    record = asyncio.run(registry.test_connection(args.url, args.timeout))
    if args.json:
        console.print_json(json.dumps(record.to_dict()))
    else:
        print_probe_result(args.url, record, console)
    return 0 if record.status is HealthStatus.ONLINE else 1


# ── ``mcp-watchtower watch`` ────────────────────────────────────────────


async def _watch(registry: Registry, once: bool) -> None:
    if once:
        await registry.scheduler.tick()
        print_snapshot(registry.list(), console)
        return

    unsubscribe = registry.subscribe(lambda change: console.print(describe_change(change)))
    await registry.start()
    try:
        await asyncio.Event().wait()  # until Ctrl+C
    finally:
        unsubscribe()
        await registry.stop()


def _cmd_watch(args: argparse.Namespace) -> int:
    registry = _build_registry(args)
    if not args.once:
        console.print("Watching capability servers (Ctrl+C to stop)…", style="dim")
    try:
        asyncio.run(_watch(registry, args.once))
    except KeyboardInterrupt:
        module_logger.info("Watch interrupted by KeyboardInterrupt.")
    return 0


# ── Parser ──────────────────────────────────────────────────────────────


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcp-watchtower",
        description=f"{APP_NAME} — registry and health monitor for MCP capability servers.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        metavar="PATH",
        help="YAML config file (default: $WATCHTOWER_CONFIG or ./watchtower.yaml)",
    )
    parser.add_argument(
        "--store",
        type=str,
        default=None,
        metavar="PATH",
        help="Server store file (overrides store.path from the config)",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        default=None,
        choices=VALID_LEVELS,
        help="File log level (default: from config, INFO)",
    )
    subparsers = parser.add_subparsers(dest="command")

    sp_list = subparsers.add_parser("list", help="List registered servers")
    sp_list.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    sp_list.set_defaults(func=_cmd_list)

    sp_add = subparsers.add_parser("add", help="Register a capability server")
    sp_add.add_argument("url", help="Server URL, e.g. http://localhost:3000")
    sp_add.add_argument("--name", type=str, default=None, help="Optional display name")
    sp_add.add_argument(
        "--transport",
        type=str,
        default=Transport.HTTP.value,
        choices=[t.value for t in Transport],
        help="Transport used to reach the server (default: http)",
    )
    sp_add.add_argument(
        "--test",
        action="store_true",
        help="Probe the server first and keep the result as its initial health",
    )
    sp_add.set_defaults(func=_cmd_add)

    sp_remove = subparsers.add_parser("remove", help="Unregister a capability server")
    sp_remove.add_argument("url", help="Server URL")
    sp_remove.set_defaults(func=_cmd_remove)

    sp_test = subparsers.add_parser("test", help="Probe a server without registering it")
    sp_test.add_argument("url", help="Server URL")
    sp_test.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Probe deadline in seconds (default: health.probe_timeout)",
    )
    sp_test.add_argument("--json", action="store_true", help="Print the health record as JSON")
    sp_test.set_defaults(func=_cmd_test)

    sp_watch = subparsers.add_parser(
        "watch", help="Poll server health and stream changes until interrupted"
    )
    sp_watch.add_argument(
        "--once", action="store_true", help="Run a single health round and print the table"
    )
    sp_watch.set_defaults(func=_cmd_watch)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Program entry point: parse arguments and dispatch to subcommand."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    try:
        code = args.func(args)
    except WatchtowerBaseError as exc:
        err_console.print(f"Error: {exc}", style="red")
        sys.exit(1)
    sys.exit(code)
