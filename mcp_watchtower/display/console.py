"""Terminal rendering of registry state.

Color scheme:
- **online**   — bold green dot, latency in green.
- **checking** — yellow dot.
- **offline / error** — red dot with the error message.
- **unknown**  — dim dot (never probed).
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text

from mcp_watchtower.registry.models import HealthRecord, HealthStatus, RegistrySnapshot
from mcp_watchtower.sync.bus import ChangeKind, RegistryChange

_STATUS_STYLE = {
    HealthStatus.ONLINE: "bold green",
    HealthStatus.CHECKING: "yellow",
    HealthStatus.OFFLINE: "red",
    HealthStatus.ERROR: "bold red",
    HealthStatus.UNKNOWN: "dim",
}


def status_text(record: Optional[HealthRecord]) -> Text:
    """One-cell status such as ``● online (12ms)``."""
    status = record.status if record is not None else HealthStatus.UNKNOWN
    style = _STATUS_STYLE[status]
    text = Text("● ", style=style)
    text.append(status.value, style=style)
    if record is None:
        return text
    if status is HealthStatus.ONLINE and record.latency_ms is not None:
        text.append(f" ({record.latency_ms:.0f}ms)", style="green")
    elif status in (HealthStatus.OFFLINE, HealthStatus.ERROR) and record.error:
        text.append(f" {record.error}", style="red")
    return text


def _format_checked(record: Optional[HealthRecord]) -> str:
    if record is None or record.last_checked_at is None:
        return "-"
    return datetime.fromtimestamp(record.last_checked_at).strftime("%H:%M:%S")


def render_snapshot(snapshot: RegistrySnapshot, *, show_tools: bool = True) -> Table:
    """Build a table with one row per registered server."""
    table = Table(title=f"Capability servers ({len(snapshot.entries)})", expand=False)
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("URL", overflow="fold")
    table.add_column("Transport", style="magenta")
    table.add_column("Status")
    table.add_column("Checked", style="dim")
    if show_tools:
        table.add_column("Tools", overflow="fold")

    for entry in snapshot.entries:
        record = snapshot.health.get(entry.url)
        row = [
            entry.name or "-",
            entry.url,
            entry.transport.value.upper(),
            status_text(record),
            _format_checked(record),
        ]
        if show_tools:
            tools = record.tools if record is not None else ()
            row.append(", ".join(t.name for t in tools) or "-")
        table.add_row(*row)
    return table


def print_snapshot(snapshot: RegistrySnapshot, console: Optional[Console] = None) -> None:
    console = console or Console()
    if not snapshot.entries:
        console.print("No capability servers registered.", style="dim")
        return
    console.print(render_snapshot(snapshot))


def print_probe_result(url: str, record: HealthRecord, console: Optional[Console] = None) -> None:
    """Feedback line for an on-demand connection test."""
    console = console or Console()
    if record.status is HealthStatus.ONLINE:
        line = Text("✔ Connected ", style="bold green")
        line.append(f"to {url} ({record.latency_ms:.0f}ms)")
        if record.tools:
            line.append(f", {len(record.tools)} tools found", style="green")
    else:
        line = Text("✘ Connection failed: ", style="bold red")
        line.append(record.error or "Unknown error")
    console.print(line)


def describe_change(change: RegistryChange) -> Text:
    """Single status line for ``watch`` output."""
    stamp = datetime.now().strftime("%H:%M:%S")
    line = Text(f"[{stamp}] ", style="dim")
    if change.kind is ChangeKind.HEALTH and change.url is not None:
        line.append(f"{change.url} ")
        line.append_text(status_text(change.health))
    else:
        line.append(
            f"server list updated ({change.origin.value}): {len(change.entries)} server(s)",
            style="cyan",
        )
    return line
