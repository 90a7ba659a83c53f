"""
wt open command.

SUMMARY: Print the path of a worktree by slot or branch, creating it if needed

Text output is the bare path so it can be used as ``cd "$(wt open 3)"``.
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
    get_repo_root,
)
from wt.core.config import load_config
from wt.core.workflow import open_worktree

SUMMARY = "Print the path of a worktree by slot or branch, creating it if needed"


def register_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("target", metavar="slot-or-branch", help="Slot number or branch name")
    add_no_install_flag(parser, "Skip post-setup commands when a worktree is created")
    add_standard_flags(parser)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))
    try:
        repo_root = get_repo_root(args)
        config = load_config(repo_root)
        slot, allocation, created = open_worktree(repo_root, config, args.target, install=args.install)
    except Exception as e:
        formatter.error(e, f"Failed to open worktree: {e}", error_code=error_code(e, "OPEN_FAILED"))
        return 1

    payload = allocation_payload(slot, allocation)
    payload["created"] = created
    formatter.success(payload, allocation.worktree_path)
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    sys.exit(main(parser.parse_args()))
