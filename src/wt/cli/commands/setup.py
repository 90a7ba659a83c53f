"""
wt setup command.

SUMMARY: Isolate an existing worktree (database, Redis index, ports, env files)
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
from wt.core.workflow import setup_worktree

SUMMARY = "Isolate an existing worktree (database, Redis index, ports, env files)"


def register_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Worktree path (default: current directory)",
    )
    add_no_install_flag(parser)
    add_standard_flags(parser)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))
    try:
        repo_root = get_repo_root(args)
        config = load_config(repo_root)
        slot, allocation = setup_worktree(repo_root, config, args.path, install=args.install)
    except Exception as e:
        formatter.error(e, f"Setup failed: {e}", error_code=error_code(e, "SETUP_FAILED"))
        return 1

    formatter.success(allocation_payload(slot, allocation), format_setup_summary(slot, allocation))
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    sys.exit(main(parser.parse_args()))
