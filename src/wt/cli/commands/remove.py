"""
wt remove command.

SUMMARY: Remove worktrees, drop their databases and free their slots
"""

from __future__ import annotations

import argparse
import sys

from wt.cli import OutputFormatter, add_standard_flags, error_code, get_repo_root
from wt.core.config import load_config
from wt.core.workflow import remove_worktrees

SUMMARY = "Remove worktrees, drop their databases and free their slots"

DESCRIPTION = """\
Remove worktrees, drop their databases and free their slots.

Targets are slot numbers or worktree paths, separated by spaces or commas.
All targets are resolved before anything is removed.

Examples:
  wt remove 3
  wt remove 1,2,5
  wt remove 1 2 ./.worktrees/feat-auth
  wt remove --all --keep-db
"""


def register_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "targets",
        nargs="*",
        help="Slot numbers or worktree paths (comma-separated allowed)",
    )
    parser.add_argument(
        "--all",
        dest="remove_all",
        action="store_true",
        help="Remove every allocated worktree",
    )
    parser.add_argument(
        "--keep-db",
        action="store_true",
        help="Do not drop the slot databases",
    )
    add_standard_flags(parser)


def _summary(results) -> str:
    if not results:
        return "No worktrees to remove."
    lines = []
    for result in results:
        parts = [f"Removed slot {result.slot}: {result.worktree_path}"]
        if result.db_dropped:
            parts.append(f"(dropped {result.db_name})")
        lines.append(" ".join(parts))
    return "\n".join(lines)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))
    try:
        repo_root = get_repo_root(args)
        config = load_config(repo_root)
        results = remove_worktrees(
            repo_root,
            config,
            args.targets,
            keep_db=args.keep_db,
            remove_all=args.remove_all,
        )
    except Exception as e:
        formatter.error(e, f"Remove failed: {e}", error_code=error_code(e, "REMOVE_FAILED"))
        return 1

    formatter.success({"removed": [r.to_dict() for r in results]}, _summary(results))
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    sys.exit(main(parser.parse_args()))
