"""Common CLI argument registration utilities."""
from __future__ import annotations

import argparse


def add_json_flag(parser: argparse.ArgumentParser) -> None:
    """Add --json flag for JSON output mode."""
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )


def add_repo_root_flag(parser: argparse.ArgumentParser) -> None:
    """Add --repo-root flag to override main worktree detection."""
    parser.add_argument(
        "--repo-root",
        type=str,
        help="Main worktree root (default: detected with git worktree list)",
    )


def add_no_install_flag(parser: argparse.ArgumentParser, help_text: str = "Skip post-setup commands") -> None:
    """Add --no-install; the parsed attribute is ``install`` (default True)."""
    parser.add_argument(
        "--no-install",
        dest="install",
        action="store_false",
        help=help_text,
    )


def add_standard_flags(parser: argparse.ArgumentParser) -> None:
    """Add the flags every command accepts (--json, --repo-root)."""
    add_json_flag(parser)
    add_repo_root_flag(parser)


__all__ = [
    "add_json_flag",
    "add_repo_root_flag",
    "add_no_install_flag",
    "add_standard_flags",
]
