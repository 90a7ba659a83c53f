"""
wt doctor command.

SUMMARY: Diagnose and fix worktree environment issues
"""

from __future__ import annotations

import argparse
import sys

from wt.cli import OutputFormatter, add_standard_flags, error_code, get_repo_root
from wt.core.config import load_config
from wt.core.workflow import run_doctor

SUMMARY = "Diagnose and fix worktree environment issues"


def register_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--fix",
        action="store_true",
        help="Remove stale registry entries and drop orphaned slot databases",
    )
    add_standard_flags(parser)


def _report(issues, fix: bool) -> str:
    if not issues:
        return "No issues found."
    lines = [f"Found {len(issues)} issue(s):"]
    for issue in issues:
        where = f"[slot {issue.slot}] " if issue.slot is not None else ""
        suffix = " (fixed)" if issue.fixed else ""
        lines.append(f"  {issue.type}: {where}{issue.detail}{suffix}")
    if not fix and any(i.type in ("stale_entry", "orphaned_db") for i in issues):
        lines.append("Run 'wt doctor --fix' to repair stale entries and orphaned databases.")
    return "\n".join(lines)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))
    try:
        repo_root = get_repo_root(args)
        config = load_config(repo_root)
        issues = run_doctor(repo_root, config, fix=args.fix)
    except Exception as e:
        formatter.error(e, f"Doctor failed: {e}", error_code=error_code(e, "DOCTOR_FAILED"))
        return 1

    formatter.success({"issues": [i.to_dict() for i in issues]}, _report(issues, args.fix))
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    sys.exit(main(parser.parse_args()))
