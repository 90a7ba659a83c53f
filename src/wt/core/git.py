"""Git worktree operations used by the wt workflows."""
from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from wt.core.exceptions import CommandError
from wt.core.utils.subprocess import format_command, run_git_command

logger = logging.getLogger(__name__)


def _git(
    args: List[str],
    *,
    cwd: Optional[Path | str] = None,
    timeouts: Optional[Mapping[str, float]] = None,
) -> str:
    """Run a git command and return stripped stdout, wrapping failures."""
    argv = ["git", *args]
    try:
        result = run_git_command(argv, cwd=cwd, timeouts=timeouts)
    except subprocess.CalledProcessError as exc:
        stderr = (exc.stderr or "").strip()
        raise CommandError(
            f"git {' '.join(args[:2])} failed: {stderr or f'exit code {exc.returncode}'}",
            command=format_command(argv),
            returncode=exc.returncode,
            stderr=stderr,
        ) from exc
    except subprocess.TimeoutExpired as exc:
        raise CommandError(
            f"git {' '.join(args[:2])} timed out after {exc.timeout}s",
            command=format_command(argv),
        ) from exc
    except FileNotFoundError as exc:
        raise CommandError("git executable not found", command=format_command(argv)) from exc
    return (result.stdout or "").strip()


def parse_worktree_list(stdout: str) -> List[Dict[str, Any]]:
    """Parse ``git worktree list --porcelain`` output into a structured list."""
    worktrees: List[Dict[str, Any]] = []
    current: Dict[str, Any] = {}

    for raw in stdout.splitlines():
        line = raw.strip()
        if not line:
            if current:
                worktrees.append(current)
                current = {}
            continue

        if line.startswith("worktree "):
            if current:
                worktrees.append(current)
            current = {"path": line.split(" ", 1)[1]}
            continue

        if line.startswith("HEAD "):
            current["head"] = line.split(" ", 1)[1]
            continue

        if line.startswith("branch "):
            ref = line.split(" ", 1)[1]
            current["branch_ref"] = ref
            current["branch"] = ref[len("refs/heads/"):] if ref.startswith("refs/heads/") else ref
            continue

    if current:
        worktrees.append(current)

    return worktrees


def list_worktrees(cwd: Optional[Path | str] = None, *, timeouts: Optional[Mapping[str, float]] = None) -> List[Dict[str, Any]]:
    """List all worktrees of the repository containing ``cwd``.

    Returns:
        List of dicts with keys: path, head, branch, branch_ref.
    """
    return parse_worktree_list(_git(["worktree", "list", "--porcelain"], cwd=cwd, timeouts=timeouts))


def get_main_worktree_path(cwd: Optional[Path | str] = None, *, timeouts: Optional[Mapping[str, float]] = None) -> Path:
    """Return the primary checkout (first entry of ``git worktree list``).

    Raises:
        CommandError: If git fails or reports no worktrees.
    """
    entries = list_worktrees(cwd, timeouts=timeouts)
    if not entries or not entries[0].get("path"):
        raise CommandError("Could not determine main worktree path")
    return Path(entries[0]["path"])


def is_main_worktree(target_path: Path | str, *, main_path: Optional[Path | str] = None) -> bool:
    """Return True when ``target_path`` is the primary checkout."""
    main = Path(main_path) if main_path is not None else get_main_worktree_path(target_path)
    return Path(target_path).resolve() == main.resolve()


def branch_slug(branch_name: str) -> str:
    """Directory name for a branch's worktree (``feat/auth`` -> ``feat-auth``)."""
    return branch_name.replace("/", "-")


def branch_exists_locally(branch_name: str, *, cwd: Optional[Path | str] = None, timeouts: Optional[Mapping[str, float]] = None) -> bool:
    try:
        _git(["rev-parse", "--verify", "--quiet", f"refs/heads/{branch_name}"], cwd=cwd, timeouts=timeouts)
    except CommandError:
        return False
    return True


def create_worktree(
    base_path: Path | str,
    branch_name: str,
    *,
    repo_root: Optional[Path | str] = None,
    timeouts: Optional[Mapping[str, float]] = None,
) -> Path:
    """Create a worktree for ``branch_name`` under ``base_path``.

    An existing local branch is checked out; otherwise the branch is
    created from the current HEAD.
    """
    worktree_path = (Path(base_path) / branch_slug(branch_name)).resolve()
    cwd = repo_root
    if branch_exists_locally(branch_name, cwd=cwd, timeouts=timeouts):
        args = ["worktree", "add", str(worktree_path), branch_name]
    else:
        args = ["worktree", "add", str(worktree_path), "-b", branch_name]

    logger.debug("Creating worktree %s for branch %s", worktree_path, branch_name)
    _git(args, cwd=cwd, timeouts=timeouts)
    return worktree_path


def remove_worktree(
    worktree_path: Path | str,
    *,
    repo_root: Optional[Path | str] = None,
    timeouts: Optional[Mapping[str, float]] = None,
) -> None:
    """Force-remove a worktree by path."""
    _git(["worktree", "remove", str(worktree_path), "--force"], cwd=repo_root, timeouts=timeouts)


def get_branch_name(worktree_path: Path | str, *, timeouts: Optional[Mapping[str, float]] = None) -> str:
    """Return the checked-out branch of ``worktree_path``."""
    return _git(["rev-parse", "--abbrev-ref", "HEAD"], cwd=worktree_path, timeouts=timeouts)


__all__ = [
    "parse_worktree_list",
    "list_worktrees",
    "get_main_worktree_path",
    "is_main_worktree",
    "branch_slug",
    "branch_exists_locally",
    "create_worktree",
    "remove_worktree",
    "get_branch_name",
]
