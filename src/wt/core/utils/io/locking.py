"""Exclusive advisory lock around registry read-modify-write cycles.

The lock lives in a sidecar ``<name>.lock`` file rather than on the target
itself, because the target is swapped out by ``os.replace`` while held.
``flock`` does not exclude threads of one process that open the file
separately, so an in-process mutex per lock path is taken first.
"""
from __future__ import annotations

import fcntl
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator

from .core import PathLike

DEFAULT_LOCK_TIMEOUT = 10.0
DEFAULT_POLL_INTERVAL = 0.05

_mutexes: Dict[str, threading.Lock] = {}
_mutexes_guard = threading.Lock()


class LockTimeoutError(TimeoutError):
    """The lock was still held by someone else when the timeout ran out."""


def lock_path_for(path: PathLike) -> Path:
    target = Path(path)
    return target.with_name(target.name + ".lock")


def _mutex_for(lock_path: Path) -> threading.Lock:
    key = str(lock_path.resolve())
    with _mutexes_guard:
        return _mutexes.setdefault(key, threading.Lock())


@contextmanager
def acquire_file_lock(
    path: PathLike,
    timeout: float = DEFAULT_LOCK_TIMEOUT,
    *,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
) -> Iterator[Path]:
    """Hold the lock for ``path`` for the duration of the block.

    Yields the sidecar lock path.

    Raises:
        ValueError: ``timeout`` or ``poll_interval`` is not positive.
        LockTimeoutError: The lock could not be taken within ``timeout`` seconds.
    """
    if timeout <= 0 or poll_interval <= 0:
        raise ValueError(f"timeout and poll_interval must be positive (got {timeout}, {poll_interval})")

    lock_path = lock_path_for(path)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    deadline = time.monotonic() + timeout

    mutex = _mutex_for(lock_path)
    if not mutex.acquire(timeout=timeout):
        raise LockTimeoutError(f"Timed out after {timeout}s waiting for lock on {path}")
    try:
        with open(lock_path, "a+") as handle:
            while True:
                try:
                    fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except BlockingIOError:
                    if time.monotonic() >= deadline:
                        raise LockTimeoutError(f"Timed out after {timeout}s waiting for lock on {path}") from None
                    time.sleep(poll_interval)
            try:
                yield lock_path
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
    finally:
        mutex.release()


__all__ = ["DEFAULT_LOCK_TIMEOUT", "LockTimeoutError", "acquire_file_lock", "lock_path_for"]
