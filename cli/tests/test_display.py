"""Tests for cli/cli/display.py -- Rich output formatting.

Rendered output is captured via a Console writing to a StringIO buffer.
"""

from __future__ import annotations

import io

import pytest
from rich.console import Console

from cli.display import (
    _STATUS_COLOURS,
    _coloured_status,
    display_alert_detail,
    display_history,
    display_outcome,
    display_probe,
)


@pytest.fixture()
def console() -> tuple[Console, io.StringIO]:
    buffer = io.StringIO()
    return Console(file=buffer, width=160, color_system=None), buffer


class TestColouredStatus:
    def test_every_status_has_a_colour(self) -> None:
        assert set(_STATUS_COLOURS) == {"good", "under threshold", "bad", "broken", "needs refreshing", "never run"}

    def test_display_text_is_used(self) -> None:
        assert _coloured_status("bad", "bad since 2026-10-19 08:00:00") == "[red]bad since 2026-10-19 08:00:00[/red]"

    def test_unknown_status_is_white(self) -> None:
        assert _coloured_status("mystery") == "[white]mystery[/white]"


class TestDisplay:
    def test_outcome_with_error(self, console: tuple[Console, io.StringIO]) -> None:
        con, buffer = console
        display_outcome(con, {"status": "broken", "error": "query timed out after 30s", "duration_ms": 30000.0})
        assert "query timed out after 30s" in buffer.getvalue()

    def test_outcome_with_rows(self, console: tuple[Console, io.StringIO]) -> None:
        con, buffer = console
        display_outcome(con, {"status": "bad", "result_count": 4, "error": None, "duration_ms": 5.0})
        assert "4 row(s)" in buffer.getvalue()

    def test_history_marks_current_entry(self, console: tuple[Console, io.StringIO]) -> None:
        con, buffer = console
        display_history(
            con,
            [
                {"sequence": 2, "kind": "execution", "changes": {}, "is_current": True},
                {
                    "sequence": 1,
                    "kind": "definition_change",
                    "changes": {"threshold": {"old": None, "new": 5}},
                    "is_current": False,
                },
            ],
        )
        output = buffer.getvalue()
        assert "2*" in output
        assert "(no change)" in output
        assert "threshold" in output

    def test_alert_detail(self, console: tuple[Console, io.StringIO]) -> None:
        con, buffer = console
        display_alert_detail(
            con,
            {
                "id": "abc",
                "name": "orphaned items",
                "status": "good",
                "status_display": "good since 2026-10-19 08:00:00",
                "threshold": 5,
                "data_source_id": 1,
                "query": "SELECT 1",
                "description": "rows without an owner",
            },
        )
        output = buffer.getvalue()
        assert "good since 2026-10-19 08:00:00" in output
        assert "rows without an owner" in output

    def test_probe(self, console: tuple[Console, io.StringIO]) -> None:
        con, buffer = console
        display_probe(con, {"name": "local", "ok": True, "detail": ""})
        assert "local is reachable" in buffer.getvalue()
