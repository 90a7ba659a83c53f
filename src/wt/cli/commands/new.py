"""
wt new command.

SUMMARY: Create a git worktree and isolate it in its own slot
"""

from __future__ import annotations

import argparse
import sys

from wt.cli import (
    OutputFormatter,
    add_no_install_flag,
    add_standard_flags,
    allocation_payload,
    error_code,
    format_setup_summary,
    get_repo_root,
)
from wt.core.config import load_config
from wt.core.workflow import create_new_worktree

SUMMARY = "Create a git worktree and isolate it in its own slot"


def register_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("branch", help="Branch to check out (created from HEAD if it does not exist)")
    parser.add_argument(
        "--slot",
        type=int,
        help="Use this slot instead of the lowest free one",
    )
    add_no_install_flag(parser)
    add_standard_flags(parser)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))
    try:
        repo_root = get_repo_root(args)
        config = load_config(repo_root)
        slot, allocation = create_new_worktree(
            repo_root,
            config,
            args.branch,
            slot=args.slot,
            install=args.install,
        )
    except Exception as e:
        formatter.error(e, f"Failed to create worktree: {e}", error_code=error_code(e, "NEW_FAILED"))
        return 1

    formatter.success(allocation_payload(slot, allocation), format_setup_summary(slot, allocation))
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    sys.exit(main(parser.parse_args()))
