"""Persisted slot allocation registry.

The registry lives at ``<main worktree>/.worktree-registry.json``. Reads
validate the whole document and fail with :class:`ValidationError` rather
than dropping bad entries; writes go through a temp file and an atomic
rename. The update helpers are pure: they return new :class:`Registry`
values and never touch the one passed in.
"""
from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Iterator, Mapping, Optional, Tuple

from wt.core.exceptions import ConflictError, ValidationError
from wt.core.models import Allocation, Registry
from wt.core.schemas import validate_payload
from wt.core.utils.io import LockTimeoutError, acquire_file_lock, lock_path_for, read_json, write_json_atomic
from wt.core.utils.io.locking import DEFAULT_LOCK_TIMEOUT, DEFAULT_POLL_INTERVAL
from wt.core.utils.time import is_iso8601

logger = logging.getLogger(__name__)

REGISTRY_FILENAME = ".worktree-registry.json"


def registry_path(repo_root: Path | str) -> Path:
    """Return the absolute path of the registry file for ``repo_root``."""
    return Path(repo_root).resolve() / REGISTRY_FILENAME


def empty_registry() -> Registry:
    return Registry()


def _slot_key(slot: int) -> str:
    if isinstance(slot, bool) or not isinstance(slot, int) or slot < 1:
        raise ValidationError(f"Slot must be a positive integer, got: {slot!r}")
    return str(slot)


def _check_semantics(raw: Mapping, source: str, max_slots: Optional[int]) -> None:
    problems = []
    for key, alloc in raw["allocations"].items():
        if key != str(int(key)):
            problems.append(f"allocations.{key!r}: slot key is not a canonical positive integer")
            continue
        if max_slots is not None and int(key) > max_slots:
            problems.append(f"allocations.{key}: slot exceeds maxSlots ({max_slots})")
        if not is_iso8601(alloc["createdAt"]):
            problems.append(f"allocations.{key}.createdAt: not a valid ISO-8601 timestamp")
    if problems:
        details = "\n".join(f"  - {p}" for p in problems)
        raise ValidationError(
            f"Invalid registry in {source}:\n{details}",
            context={"source": source, "errors": problems},
        )


def read_registry(repo_root: Path | str, *, max_slots: Optional[int] = None) -> Registry:
    """Read and validate the registry.

    Returns an empty registry when the file does not exist.

    Args:
        repo_root: Main worktree root holding the registry file.
        max_slots: When given, slots above this bound are rejected too.

    Raises:
        ValidationError: If the file is not valid JSON or has the wrong shape.
        OSError: If the file exists but cannot be read.
    """
    path = registry_path(repo_root)
    if not path.exists():
        return empty_registry()

    try:
        raw = read_json(path)
    except json.JSONDecodeError as exc:
        raise ValidationError(
            f"Registry is not valid JSON: {path}: {exc}",
            context={"source": str(path)},
        ) from exc

    validate_payload(raw, "registry", source=str(path))
    _check_semantics(raw, str(path), max_slots)
    return Registry.from_dict(raw)


def write_registry(repo_root: Path | str, registry: Registry) -> None:
    """Persist ``registry`` atomically (temp file in the same dir + rename).

    The document is validated first so an invalid registry is never written.
    A failed write leaves the previous file untouched.
    """
    path = registry_path(repo_root)
    data = registry.to_dict()
    validate_payload(data, "registry", source=str(path))
    write_json_atomic(path, data)
    logger.debug("Wrote registry with %d allocation(s) to %s", len(registry.allocations), path)


def add_allocation(registry: Registry, slot: int, allocation: Allocation) -> Registry:
    """Return a new registry with ``allocation`` bound to ``slot`` (replacing any previous one)."""
    key = _slot_key(slot)
    return replace(registry, allocations={**registry.allocations, key: allocation})


def remove_allocation(registry: Registry, slot: int) -> Registry:
    """Return a new registry without ``slot``; absent slots are a no-op."""
    key = str(slot)
    return replace(
        registry,
        allocations={k: v for k, v in registry.allocations.items() if k != key},
    )


def _canonical(path: Path | str) -> Path:
    return Path(path).expanduser().resolve()


def find_by_path(registry: Registry, worktree_path: Path | str) -> Optional[Tuple[int, Allocation]]:
    """Find the allocation whose worktree path matches ``worktree_path``.

    Both sides are resolved to canonical absolute paths before comparing.
    """
    wanted = _canonical(worktree_path)
    for key, allocation in registry.allocations.items():
        if _canonical(allocation.worktree_path) == wanted:
            return int(key), allocation
    return None


def find_by_branch(registry: Registry, branch_name: str) -> Optional[Tuple[int, Allocation]]:
    """Find the lowest slot whose allocation is on ``branch_name``."""
    for slot in registry.slots():
        allocation = registry.allocations[str(slot)]
        if allocation.branch_name == branch_name:
            return slot, allocation
    return None


@contextmanager
def registry_lock(
    repo_root: Path | str,
    *,
    timeout: float = DEFAULT_LOCK_TIMEOUT,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
) -> Iterator[None]:
    """Hold an advisory lock on the registry for a read-modify-write span.

    Raises:
        ConflictError: If another wt process holds the lock past ``timeout``.
    """
    path = registry_path(repo_root)
    try:
        with acquire_file_lock(path, timeout=timeout, poll_interval=poll_interval):
            yield
    except LockTimeoutError as exc:
        raise ConflictError(
            f"Registry is locked by another wt process: {path}",
            context={"lock": str(lock_path_for(path))},
        ) from exc


__all__ = [
    "REGISTRY_FILENAME",
    "registry_path",
    "empty_registry",
    "read_registry",
    "write_registry",
    "add_allocation",
    "remove_allocation",
    "find_by_path",
    "find_by_branch",
    "registry_lock",
]
