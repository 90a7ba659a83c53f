"""
wt list command.

SUMMARY: List all worktree allocations
"""

from __future__ import annotations

import argparse
import sys

from wt.cli import OutputFormatter, add_standard_flags, error_code, format_allocation_table, get_repo_root
from wt.core.registry import read_registry

SUMMARY = "List all worktree allocations"


def register_args(parser: argparse.ArgumentParser) -> None:
    add_standard_flags(parser)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))
    try:
        repo_root = get_repo_root(args)
        registry = read_registry(repo_root)
    except Exception as e:
        formatter.error(e, f"Failed to list worktrees: {e}", error_code=error_code(e, "LIST_FAILED"))
        return 1

    formatter.success(registry.to_dict(), format_allocation_table(registry.allocations))
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    sys.exit(main(parser.parse_args()))
