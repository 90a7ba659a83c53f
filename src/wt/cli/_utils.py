"""Shared CLI utility functions."""
from __future__ import annotations

import argparse
from pathlib import Path

from wt.core.git import get_main_worktree_path


def get_repo_root(args: argparse.Namespace) -> Path:
    """Return the main worktree root from ``--repo-root`` or git."""
    explicit = getattr(args, "repo_root", None)
    if explicit:
        return Path(explicit).resolve()
    return get_main_worktree_path()


def error_code(exc: BaseException, default: str) -> str:
    """Pick the JSON error code for ``exc``.

    Core errors may carry a specific ``code`` in their context
    (``NO_SLOTS``, ``MAIN_WORKTREE``, ``NOT_FOUND``...); otherwise the
    command's generic code is used.
    """
    context = getattr(exc, "context", None)
    if isinstance(context, dict) and context.get("code"):
        return str(context["code"])
    return default


__all__ = ["get_repo_root", "error_code"]
