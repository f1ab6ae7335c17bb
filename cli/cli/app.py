"""alertwatch CLI -- Typer-based operator interface.

Talks to a running alertwatch API over HTTP.  Human-readable output goes
to *stderr* via Rich; ``--json`` switches every command to machine-readable
JSON on *stdout*.

Exit codes: 0 success, 1 the alert ran but is broken or bad, 3 usage,
connection or API errors.
"""

from __future__ import annotations

import json
import os
import sys
from typing import Any

import httpx
import typer
from rich.console import Console

from cli.display import (
    display_alert_detail,
    display_alert_list,
    display_data_source_list,
    display_history,
    display_outcome,
    display_probe,
)

# ---------------------------------------------------------------------------
# App & global state
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="alertwatch",
    help="alertwatch - SQL alert monitoring",
    no_args_is_help=True,
)
console = Console(stderr=True)

_DEFAULT_API_URL = "http://localhost:8000"
_MASTER_PASSWORD_HEADER = "X-Master-Password"

# Mutable global options populated by the Typer callback.
_json_output: bool = False
_api_url: str = _DEFAULT_API_URL


@app.callback()
def _global_options(
    json_mode: bool = typer.Option(
        False,
        "--json/--no-json",
        help="Emit structured JSON to stdout instead of human-readable output.",
    ),
    api_url: str = typer.Option(
        _DEFAULT_API_URL,
        "--api-url",
        help="Base URL of the alertwatch API.",
        envvar="ALERTWATCH_API_URL",
    ),
) -> None:
    """Global options applied to every command."""
    global _json_output, _api_url  # noqa: PLW0603
    _json_output = json_mode
    _api_url = api_url


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _emit_json(data: Any) -> None:
    sys.stdout.write(json.dumps(data, indent=2) + "\n")


def _api_request(
    method: str,
    path: str,
    *,
    params: dict[str, Any] | None = None,
    timeout: float = 30.0,
) -> Any:
    """Send an HTTP request to the alertwatch API and return the JSON response.

    The master password is taken from the ``MASTER_PASSWORD`` environment
    variable and sent as the ``X-Master-Password`` header.  Responses
    without a body (204) return ``None``.
    """
    headers: dict[str, str] = {"Accept": "application/json"}
    password = os.environ.get("MASTER_PASSWORD")
    if password:
        headers[_MASTER_PASSWORD_HEADER] = password

    url = f"{_api_url.rstrip('/')}{path}"
    try:
        with httpx.Client(timeout=timeout) as client:
            response = client.request(method, url, headers=headers, params=params)
            response.raise_for_status()
            if response.status_code == 204 or not response.content:
                return None
            return response.json()
    except httpx.HTTPStatusError as exc:
        detail = exc.response.text
        try:
            detail = exc.response.json().get("detail", detail)
        except ValueError:
            pass
        console.print(f"[red]API error ({exc.response.status_code}): {detail}[/red]")
        raise typer.Exit(code=3) from exc
    except httpx.ConnectError as exc:
        console.print(f"[red]Cannot connect to API at {_api_url}: {exc}[/red]")
        raise typer.Exit(code=3) from exc
    except httpx.TimeoutException as exc:
        console.print(f"[red]Request to {_api_url} timed out after {timeout:g}s[/red]")
        raise typer.Exit(code=3) from exc
    except httpx.HTTPError as exc:
        console.print(f"[red]Request to {_api_url} failed: {exc}[/red]")
        raise typer.Exit(code=3) from exc


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind."),
    port: int = typer.Option(8000, "--port", help="Port to listen on."),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes (development)."),
) -> None:
    """Run the alertwatch API server (and its scheduler) with uvicorn."""
    import uvicorn

    console.print(f"[green]✓[/green] API server starting on http://{host}:{port}")
    console.print(f"[green]✓[/green] OpenAPI docs at http://{host}:{port}/docs")
    if not os.environ.get("MASTER_PASSWORD"):
        console.print("[yellow]MASTER_PASSWORD is not set; the API will accept unauthenticated requests.[/yellow]")

    config = uvicorn.Config("api.main:app", host=host, port=port, reload=reload, log_level="info", access_log=False)
    uvicorn.Server(config).run()


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------


@app.command()
def alerts(
    context: str | None = typer.Option(None, "--context", "-c", help="Only alerts with this context."),
) -> None:
    """List alerts with their current status."""
    params = {"context": context} if context is not None else None
    rows = _api_request("GET", "/api/v1/alerts", params=params)
    if _json_output:
        _emit_json(rows)
        return
    if not rows:
        console.print("[yellow]No alerts found.[/yellow]")
        return
    display_alert_list(console, rows)


@app.command()
def show(alert_id: str = typer.Argument(..., help="Alert id.")) -> None:
    """Show one alert's definition and status."""
    alert = _api_request("GET", f"/api/v1/alerts/{alert_id}")
    if _json_output:
        _emit_json(alert)
        return
    display_alert_detail(console, alert)


@app.command()
def run(alert_id: str = typer.Argument(..., help="Alert id.")) -> None:
    """Run an alert now and print its outcome.

    Exits 1 when the outcome is ``broken`` or ``bad`` so that scripts can
    gate on it.
    """
    outcome = _api_request("POST", f"/api/v1/alerts/{alert_id}/run", timeout=120.0)
    if _json_output:
        _emit_json(outcome)
    else:
        display_outcome(console, outcome)
    if outcome["status"] in ("broken", "bad"):
        raise typer.Exit(code=1)


@app.command()
def history(alert_id: str = typer.Argument(..., help="Alert id.")) -> None:
    """Show an alert's history, newest first."""
    entries = _api_request("GET", f"/api/v1/alerts/{alert_id}/history")
    if _json_output:
        _emit_json(entries)
        return
    display_history(console, entries)


# ---------------------------------------------------------------------------
# Data sources
# ---------------------------------------------------------------------------


@app.command()
def sources() -> None:
    """List registered data sources."""
    rows = _api_request("GET", "/api/v1/data_sources")
    if _json_output:
        _emit_json(rows)
        return
    if not rows:
        console.print("[yellow]No data sources registered.[/yellow]")
        return
    display_data_source_list(console, rows)


@app.command()
def probe(data_source_id: int = typer.Argument(..., help="Data source id.")) -> None:
    """Check connectivity of a data source.  Exits 1 when it is unreachable."""
    result = _api_request("GET", f"/api/v1/data_sources/{data_source_id}/probe")
    if _json_output:
        _emit_json(result)
    else:
        display_probe(console, result)
    if not result["ok"]:
        raise typer.Exit(code=1)
