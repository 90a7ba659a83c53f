"""Rendering of command results for the terminal and for ``--json``.

Every command supports a text mode (human summaries on stdout, errors on
stderr) and a ``--json`` mode where stdout carries exactly one JSON
document: ``{"success": true, "data": ...}`` or
``{"success": false, "error": {"code": ..., "message": ...}}``.
"""
from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from wt.core.models import Allocation


class OutputFormatter:
    """Writes one command result either as text or as a single JSON envelope."""

    def __init__(self, json_mode: bool = False, indent: int = 2):
        self.json_mode = json_mode
        self.indent = indent

    def success(self, data: Any, message: str) -> None:
        """Print ``{"success": true, "data": data}`` in JSON mode, else ``message``."""
        if self.json_mode:
            self.json_output({"success": True, "data": data})
        else:
            print(message)

    def error(
        self,
        error: Exception,
        message: Optional[str] = None,
        *,
        error_code: str = "ERROR",
    ) -> None:
        """Report a failure.

        JSON mode prints ``{"success": false, "error": {"code", "message"}}`` on
        stdout using ``str(error)``; text mode prints ``message`` (or
        ``Error: <error>``) on stderr.
        """
        if self.json_mode:
            self.json_output({"success": False, "error": {"code": error_code, "message": str(error)}})
        else:
            print(message or f"Error: {error}", file=sys.stderr)

    def json_output(self, data: Any) -> None:
        print(json.dumps(data, indent=self.indent, default=str))

    def text(self, message: str) -> None:
        if not self.json_mode:
            print(message)


def allocation_payload(slot: int, allocation: Allocation) -> Dict[str, Any]:
    """JSON payload for a single allocation: ``{"slot": N, **allocation}``."""
    return {"slot": slot, **allocation.to_dict()}


_TABLE_WIDTHS = (6, 30, 20, 7, 35, 8)


def _pad_row(cols: List[str]) -> str:
    return "".join(col.ljust(_TABLE_WIDTHS[i] if i < len(_TABLE_WIDTHS) else 10) for i, col in enumerate(cols))


def format_allocation_table(allocations: Mapping[str, Allocation]) -> str:
    """Render allocations as a fixed-width table with an ok/stale status column."""
    if not allocations:
        return "No worktree allocations found."

    header = _pad_row(["Slot", "Branch", "DB", "Redis", "Ports", "Status"])
    rows = [header, "-" * len(header)]
    for key in sorted(allocations, key=int):
        alloc = allocations[key]
        ports = " ".join(f"{name}:{port}" for name, port in alloc.ports.items())
        status = "ok" if Path(alloc.worktree_path).exists() else "stale"
        rows.append(_pad_row([key, alloc.branch_name, alloc.db_name, str(alloc.redis_db), ports, status]))
    return "\n".join(rows)


def format_setup_summary(slot: int, allocation: Allocation) -> str:
    lines = [
        f"Worktree configured (slot {slot}):",
        f"  Branch:   {allocation.branch_name}",
        f"  Database: {allocation.db_name}",
        f"  Redis DB: {allocation.redis_db}",
        "  Ports:",
    ]
    lines.extend(f"    {name}: {port}" for name, port in allocation.ports.items())
    lines.append(f"  Path:     {allocation.worktree_path}")
    return "\n".join(lines)


__all__ = [
    "OutputFormatter",
    "allocation_payload",
    "format_allocation_table",
    "format_setup_summary",
]
