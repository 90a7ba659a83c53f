"""Tests for CLI output formatting."""
from __future__ import annotations

import json
from pathlib import Path

from wt.cli import OutputFormatter, allocation_payload, format_allocation_table, format_setup_summary
from wt.core.exceptions import ConflictError


def test_json_success_envelope(capsys, make_allocation) -> None:
    allocation = make_allocation(2, "/tmp/wt2")
    OutputFormatter(json_mode=True).success(allocation_payload(2, allocation), "ignored")

    data = json.loads(capsys.readouterr().out)
    assert data["success"] is True
    assert data["data"]["slot"] == 2
    assert data["data"]["dbName"] == "myapp_wt2"
    assert data["data"]["ports"] == {"web": 3200, "api": 4200}


def test_json_error_envelope_goes_to_stdout(capsys) -> None:
    OutputFormatter(json_mode=True).error(ConflictError("All 15 slots are occupied."), error_code="NO_SLOTS")

    captured = capsys.readouterr()
    assert json.loads(captured.out) == {
        "success": False,
        "error": {"code": "NO_SLOTS", "message": "All 15 slots are occupied."},
    }
    assert captured.err == ""


def test_text_error_goes_to_stderr(capsys) -> None:
    OutputFormatter().error(ValueError("bad"), "Setup failed: bad")
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err.strip() == "Setup failed: bad"


def test_setup_summary(make_allocation) -> None:
    summary = format_setup_summary(3, make_allocation(3, "/tmp/wt3", branch="feat/auth"))
    assert summary.splitlines() == [
        "Worktree configured (slot 3):",
        "  Branch:   feat/auth",
        "  Database: myapp_wt3",
        "  Redis DB: 3",
        "  Ports:",
        "    web: 3300",
        "    api: 4300",
        "  Path:     /tmp/wt3",
    ]


def test_allocation_table(tmp_path: Path, make_allocation) -> None:
    live = tmp_path / "live"
    live.mkdir()
    allocations = {
        "10": make_allocation(10, str(tmp_path / "gone"), branch="old"),
        "2": make_allocation(2, str(live), branch="feat/live"),
    }

    lines = format_allocation_table(allocations).splitlines()

    assert lines[0].split() == ["Slot", "Branch", "DB", "Redis", "Ports", "Status"]
    assert set(lines[1]) == {"-"}
    assert lines[2].split() == ["2", "feat/live", "myapp_wt2", "2", "web:3200", "api:4200", "ok"]
    assert lines[3].split()[0] == "10"
    assert lines[3].split()[-1] == "stale"


def test_empty_table() -> None:
    assert format_allocation_table({}) == "No worktree allocations found."
