"""Rich output formatting for the alertwatch CLI.

All functions write to a :class:`rich.console.Console` instance (typically
bound to *stderr*) so that machine-readable output on *stdout* is never
polluted with human-readable decoration.
"""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

# ---------------------------------------------------------------------------
# Status colour mapping
# ---------------------------------------------------------------------------

_STATUS_COLOURS: dict[str, str] = {
    "good": "green",
    "under threshold": "yellow",
    "bad": "red",
    "broken": "bold red",
    "needs refreshing": "cyan",
    "never run": "dim",
}


def _coloured_status(status: str, display: str | None = None) -> str:
    """Return Rich markup for *display* (defaults to *status*), coloured by *status*."""
    colour = _STATUS_COLOURS.get(status, "white")
    return f"[{colour}]{display or status}[/{colour}]"


def _format_value(value: Any) -> str:
    if value is None:
        return "[dim](none)[/dim]"
    if isinstance(value, str) and "\n" in value:
        return value.strip()
    return json.dumps(value) if not isinstance(value, str) else value


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------


def display_alert_list(console: Console, alerts: list[dict[str, Any]]) -> None:
    """Render alerts as a table grouped by context order from the API."""
    table = Table(title="Alerts", show_lines=False)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Context")
    table.add_column("Name", style="bold")
    table.add_column("Status")
    table.add_column("Rows", justify="right")
    table.add_column("Threshold", justify="right")
    table.add_column("Schedule")

    for alert in alerts:
        rows = alert.get("last_result_count")
        table.add_row(
            alert["id"][:12],
            alert.get("context") or "",
            alert["name"],
            _coloured_status(alert["status"], alert.get("status_display")),
            str(rows) if rows is not None else "-",
            str(alert["threshold"]),
            alert.get("schedule") or "[dim]manual[/dim]",
        )
    console.print(table)


def display_alert_detail(console: Console, alert: dict[str, Any]) -> None:
    """Render one alert's definition, last run and status."""
    lines = [
        f"[bold]ID:[/bold]          {alert['id']}",
        f"[bold]Context:[/bold]     {alert.get('context') or '(none)'}",
        f"[bold]Status:[/bold]      {_coloured_status(alert['status'], alert.get('status_display'))}",
        f"[bold]Threshold:[/bold]   {alert['threshold']}",
        f"[bold]Schedule:[/bold]    {alert.get('schedule') or 'manual'}",
        f"[bold]Data source:[/bold] {alert['data_source_id']}",
        f"[bold]Last run:[/bold]    {alert.get('last_run_at') or 'never'}",
        f"[bold]Next run:[/bold]    {alert.get('next_run_at') or '-'}",
    ]
    if alert.get("last_error"):
        lines.append(f"[bold]Last error:[/bold]  [red]{alert['last_error']}[/red]")
    if alert.get("description"):
        lines.append("")
        lines.append(alert["description"])
    console.print(Panel("\n".join(lines), title=alert["name"], border_style="blue"))
    console.print(Panel(alert["query"], title="Query", border_style="dim"))


def display_outcome(console: Console, outcome: dict[str, Any]) -> None:
    """Render the outcome of a single run."""
    status = outcome["status"]
    if outcome.get("error"):
        detail = f"[red]{outcome['error']}[/red]"
    else:
        detail = f"{outcome.get('result_count')} row(s)"
    console.print(
        f"{_coloured_status(status)}  {detail}  [dim]({outcome.get('duration_ms', 0):.0f}ms)[/dim]",
    )


def display_history(console: Console, entries: list[dict[str, Any]]) -> None:
    """Render history entries newest first, one row per changed field."""
    table = Table(title="History", show_lines=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("When")
    table.add_column("Kind")
    table.add_column("Field")
    table.add_column("Old")
    table.add_column("New")

    for entry in entries:
        marker = f"{entry['sequence']}*" if entry.get("is_current") else str(entry["sequence"])
        changes = entry.get("changes") or {}
        if not changes:
            table.add_row(marker, entry.get("created_at") or "", entry["kind"], "[dim](no change)[/dim]", "", "")
            continue
        first = True
        for field, change in changes.items():
            table.add_row(
                marker if first else "",
                (entry.get("created_at") or "") if first else "",
                entry["kind"] if first else "",
                field,
                _format_value(change.get("old")),
                _format_value(change.get("new")),
            )
            first = False
    console.print(table)


# ---------------------------------------------------------------------------
# Data sources
# ---------------------------------------------------------------------------


def display_data_source_list(console: Console, sources: list[dict[str, Any]]) -> None:
    table = Table(title="Data sources")
    table.add_column("ID", justify="right")
    table.add_column("Name", style="bold")
    table.add_column("Driver")
    table.add_column("Server")
    table.add_column("Database")

    for source in sources:
        server = source.get("server") or ""
        if server and source.get("port"):
            server = f"{server}:{source['port']}"
        table.add_row(
            str(source["id"]),
            source.get("display_name") or source["name"],
            source["driver"],
            server or "[dim]-[/dim]",
            source.get("database") or "",
        )
    console.print(table)


def display_probe(console: Console, result: dict[str, Any]) -> None:
    if result["ok"]:
        console.print(f"[green]✓[/green] {result['name']} is reachable")
    else:
        console.print(f"[red]✗[/red] {result['name']}: {result['detail']}")
