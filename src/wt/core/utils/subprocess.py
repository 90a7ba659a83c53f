"""Subprocess helpers with per-bucket timeouts.

- Timeouts come from the ``timeouts`` block of the project config, falling
  back to :data:`DEFAULT_TIMEOUTS`
- Every invocation is logged at DEBUG before it runs
- Failures surface as the usual ``subprocess`` exceptions; callers decide
  how to wrap them
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from typing import Any, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUTS: dict[str, float] = {
    "git": 60.0,
    "postSetup": 1800.0,
    "database": 30.0,
    "default": 120.0,
}


def format_command(cmd: Any) -> str:
    """Render ``cmd`` as a copy-pasteable shell string."""
    if isinstance(cmd, (list, tuple)):
        return shlex.join(str(p) for p in cmd)
    return str(cmd)


def configured_timeout(timeout_type: str | None, timeouts: Optional[Mapping[str, float]] = None) -> float:
    """Return the timeout in seconds for a bucket (``git``, ``postSetup``, ...)."""
    merged = dict(DEFAULT_TIMEOUTS)
    if timeouts:
        merged.update({k: float(v) for k, v in timeouts.items()})
    return float(merged.get(timeout_type or "default", merged["default"]))


def run_with_timeout(
    cmd: Any,
    timeout_type: str | None = None,
    *,
    timeouts: Optional[Mapping[str, float]] = None,
    **kwargs: Any,
) -> subprocess.CompletedProcess:
    """Run a subprocess using the configured timeout bucket.

    Args:
        cmd: Command list/str passed through to ``subprocess.run``.
        timeout_type: Timeout bucket name (``git``, ``postSetup``, ``default``).
        timeouts: Optional overrides for the bucket table.
        **kwargs: Additional arguments forwarded to ``subprocess.run``.

    Raises:
        subprocess.TimeoutExpired: When the command exceeds its timeout.
        subprocess.CalledProcessError: When ``check=True`` and the command fails.
    """
    explicit_timeout = kwargs.pop("timeout", None)
    timeout = (
        explicit_timeout
        if explicit_timeout is not None
        else configured_timeout(timeout_type, timeouts)
    )
    logger.debug("$ %s (cwd=%s, timeout=%ss)", format_command(cmd), kwargs.get("cwd"), timeout)
    return subprocess.run(cmd, timeout=timeout, **kwargs)


def run_git_command(
    args: Sequence[str],
    *,
    cwd: Any = None,
    timeouts: Optional[Mapping[str, float]] = None,
    check: bool = True,
) -> subprocess.CompletedProcess:
    """Run ``git`` with captured text output and the ``git`` timeout bucket."""
    argv = list(args)
    if not argv or argv[0] != "git":
        argv = ["git", *argv]
    return run_with_timeout(
        argv,
        timeout_type="git",
        timeouts=timeouts,
        cwd=cwd,
        capture_output=True,
        text=True,
        check=check,
    )


__all__ = [
    "DEFAULT_TIMEOUTS",
    "configured_timeout",
    "format_command",
    "run_with_timeout",
    "run_git_command",
]
