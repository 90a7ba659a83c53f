"""Worktree lifecycle workflows.

These functions sequence the registry, slot allocator, env patcher and the
git / Postgres collaborators for the CLI commands. Every registry
read-modify-write runs under :func:`wt.core.registry.registry_lock`.
Post-setup commands run after the lock is released.
"""
from __future__ import annotations

import logging
import subprocess
import sys
from contextlib import AbstractContextManager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from wt.core import database, git
from wt.core.env_patcher import copy_and_patch_all_env_files
from wt.core.exceptions import CommandError, ConflictError, NotFoundError, ValidationError
from wt.core.models import Allocation, Registry, WtConfig
from wt.core.registry import (
    add_allocation,
    find_by_branch,
    find_by_path,
    read_registry,
    registry_lock,
    remove_allocation,
    write_registry,
)
from wt.core.slot_allocator import build_patch_context, resolve_slot
from wt.core.utils.subprocess import run_with_timeout
from wt.core.utils.time import utc_timestamp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemovalResult:
    slot: int
    worktree_path: str
    db_name: str
    db_dropped: bool
    worktree_removed: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slot": self.slot,
            "worktreePath": self.worktree_path,
            "dbName": self.db_name,
            "dbDropped": self.db_dropped,
            "worktreeRemoved": self.worktree_removed,
        }


@dataclass(frozen=True)
class DoctorIssue:
    """A problem found by :func:`run_doctor`.

    ``type`` is one of ``stale_entry``, ``missing_db``, ``missing_env``,
    ``orphaned_db``.
    """

    type: str
    detail: str
    slot: Optional[int] = None
    fixed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type, "detail": self.detail}
        if self.slot is not None:
            data["slot"] = self.slot
        data["fixed"] = self.fixed
        return data


def _lock(main_root: Path, config: WtConfig) -> AbstractContextManager:
    settings = config.registry_lock
    kwargs: Dict[str, float] = {}
    if "timeoutSeconds" in settings:
        kwargs["timeout"] = settings["timeoutSeconds"]
    if "pollIntervalSeconds" in settings:
        kwargs["poll_interval"] = settings["pollIntervalSeconds"]
    return registry_lock(main_root, **kwargs)


def _db_timeout(config: WtConfig) -> Optional[float]:
    return config.timeouts.get("database")


def parse_slot(value: str) -> Optional[int]:
    """Return ``value`` as a slot number if it is a plain decimal integer."""
    text = value.strip()
    if text.isdecimal() and str(int(text)) == text:
        return int(text)
    return None


def parse_remove_targets(raw_targets: Sequence[str]) -> List[str]:
    """Split comma-separated targets, trimming whitespace and dropping empties."""
    targets: List[str] = []
    for raw in raw_targets:
        targets.extend(part.strip() for part in raw.split(",") if part.strip())
    return targets


def run_post_setup(config: WtConfig, worktree_path: Path | str, *, install: bool = True) -> List[str]:
    """Run configured post-setup commands inside the worktree.

    Output goes to stderr so stdout stays reserved for command results.

    Returns:
        The commands that were run.

    Raises:
        CommandError: On the first command that fails or times out.
    """
    if not (config.auto_install and install and config.post_setup):
        return []

    ran: List[str] = []
    for command in config.post_setup:
        logger.info("Running: %s", command)
        try:
            run_with_timeout(
                command,
                "postSetup",
                timeouts=config.timeouts,
                shell=True,
                cwd=str(worktree_path),
                stdout=sys.stderr,
                check=True,
            )
        except subprocess.CalledProcessError as exc:
            raise CommandError(
                f"Post-setup command failed ({exc.returncode}): {command}",
                command=command,
                returncode=exc.returncode,
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise CommandError(
                f"Post-setup command timed out after {exc.timeout}s: {command}",
                command=command,
            ) from exc
        ran.append(command)
    return ran


def provision_slot(
    main_root: Path,
    config: WtConfig,
    slot: int,
    worktree_path: Path,
    branch_name: str,
) -> Allocation:
    """Create the slot database if needed and write patched env files.

    Returns the allocation to persist; the registry is not touched here.
    """
    context = build_patch_context(slot, config)
    database_url = database.read_database_url(main_root)
    timeout = _db_timeout(config)

    if database.database_exists(database_url, context.db_name, connect_timeout=timeout):
        logger.info("Database '%s' already exists, reusing.", context.db_name)
    else:
        logger.info("Creating database '%s'...", context.db_name)
        database.create_database(
            database_url, config.base_database_name, context.db_name, connect_timeout=timeout
        )

    logger.info("Patching %d env file(s)...", len(config.env_files))
    copy_and_patch_all_env_files(config.env_files, main_root, worktree_path, context)

    return Allocation(
        worktree_path=str(worktree_path),
        branch_name=branch_name,
        db_name=context.db_name,
        redis_db=context.redis_db,
        ports=dict(context.ports),
        created_at=utc_timestamp(),
    )


def create_new_worktree(
    main_root: Path | str,
    config: WtConfig,
    branch_name: str,
    *,
    slot: Optional[int] = None,
    install: bool = True,
) -> Tuple[int, Allocation]:
    """Create a git worktree for ``branch_name`` and isolate it in a slot.

    Raises:
        ValidationError: ``slot`` is outside ``[1, maxSlots]``.
        ConflictError: ``slot`` is taken or no slot is free.
    """
    root = Path(main_root)
    with _lock(root, config):
        registry = read_registry(root, max_slots=config.max_slots)
        chosen = resolve_slot(registry, config.max_slots, slot)
        logger.info("Creating worktree for '%s' in slot %d...", branch_name, chosen)

        base_path = root / config.base_worktree_path
        worktree_path = git.create_worktree(base_path, branch_name, repo_root=root, timeouts=config.timeouts)
        actual_branch = git.get_branch_name(worktree_path, timeouts=config.timeouts)

        allocation = provision_slot(root, config, chosen, worktree_path, actual_branch)
        write_registry(root, add_allocation(registry, chosen, allocation))

    run_post_setup(config, worktree_path, install=install)
    logger.info("Ready: slot %d, branch '%s'.", chosen, actual_branch)
    return chosen, allocation


def setup_worktree(
    main_root: Path | str,
    config: WtConfig,
    target_path: Path | str,
    *,
    install: bool = True,
) -> Tuple[int, Allocation]:
    """Isolate an existing worktree, reusing its slot if it already has one.

    Raises:
        ConflictError: ``target_path`` is the main worktree, or no slot is free.
    """
    root = Path(main_root)
    worktree_path = Path(target_path).resolve()
    if git.is_main_worktree(worktree_path, main_path=root):
        raise ConflictError(
            "Cannot setup the main worktree. Use this on secondary worktrees.",
            context={"code": "MAIN_WORKTREE", "path": str(worktree_path)},
        )

    with _lock(root, config):
        registry = read_registry(root, max_slots=config.max_slots)
        existing = find_by_path(registry, worktree_path)
        if existing is not None:
            slot = existing[0]
            logger.info("Reusing slot %d for %s", slot, worktree_path)
        else:
            slot = resolve_slot(registry, config.max_slots)
            logger.info("Allocating slot %d for %s", slot, worktree_path)

        branch_name = git.get_branch_name(worktree_path, timeouts=config.timeouts)
        allocation = provision_slot(root, config, slot, worktree_path, branch_name)
        write_registry(root, add_allocation(registry, slot, allocation))

    run_post_setup(config, worktree_path, install=install)
    return slot, allocation


def open_worktree(
    main_root: Path | str,
    config: WtConfig,
    slot_or_branch: str,
    *,
    install: bool = True,
) -> Tuple[int, Allocation, bool]:
    """Find a worktree by slot or branch, creating one for an unknown branch.

    Returns:
        ``(slot, allocation, created)``.

    Raises:
        NotFoundError: A slot number was given and it has no allocation.
    """
    root = Path(main_root)
    registry = read_registry(root)

    slot = parse_slot(slot_or_branch)
    if slot is not None:
        allocation = registry.get(slot)
        if allocation is None:
            raise NotFoundError(
                f"No allocation found for slot {slot}.",
                context={"code": "NOT_FOUND", "slot": slot},
            )
        logger.info("Opening slot %d (%s)", slot, allocation.branch_name)
        return slot, allocation, False

    found = find_by_branch(registry, slot_or_branch)
    if found is not None:
        logger.info("Opening slot %d (%s)", found[0], found[1].branch_name)
        return found[0], found[1], False

    logger.info("Branch '%s' not found in registry, creating...", slot_or_branch)
    slot, allocation = create_new_worktree(root, config, slot_or_branch, install=install)
    return slot, allocation, True


def _resolve_remove_slots(registry: Registry, targets: Sequence[str]) -> List[int]:
    slots: List[int] = []
    for target in targets:
        slot = parse_slot(target)
        if slot is not None:
            if registry.get(slot) is None:
                raise NotFoundError(
                    f"No allocation found for slot {slot}.",
                    context={"code": "NOT_FOUND", "slot": slot},
                )
        else:
            found = find_by_path(registry, target)
            if found is None:
                resolved = Path(target).resolve()
                raise NotFoundError(
                    f"No allocation found for path: {resolved}",
                    context={"code": "NOT_FOUND", "path": str(resolved)},
                )
            slot = found[0]
        if slot not in slots:
            slots.append(slot)
    return slots


def remove_worktrees(
    main_root: Path | str,
    config: WtConfig,
    targets: Sequence[str],
    *,
    keep_db: bool = False,
    remove_all: bool = False,
) -> List[RemovalResult]:
    """Remove worktrees, their databases, and their registry entries.

    Every target is resolved before anything is removed. The registry is
    written after each removal so a failure part-way keeps it accurate.

    Raises:
        ValidationError: No targets given and ``remove_all`` is False.
        NotFoundError: A target matches no allocation.
    """
    root = Path(main_root)
    with _lock(root, config):
        registry = read_registry(root)
        if remove_all:
            slots = registry.slots()
        else:
            parsed = parse_remove_targets(targets)
            if not parsed:
                raise ValidationError(
                    "No worktree targets given. Pass slot numbers or paths, or use --all.",
                    context={"code": "NO_TARGETS"},
                )
            slots = _resolve_remove_slots(registry, parsed)

        database_url = database.read_database_url(root) if slots and not keep_db else None
        results: List[RemovalResult] = []
        for slot in slots:
            allocation = registry.allocations[str(slot)]
            if database_url is not None:
                database.drop_database(
                    database_url,
                    allocation.db_name,
                    config.base_database_name,
                    connect_timeout=_db_timeout(config),
                )

            worktree_removed = False
            if Path(allocation.worktree_path).exists():
                git.remove_worktree(allocation.worktree_path, repo_root=root, timeouts=config.timeouts)
                worktree_removed = True

            registry = remove_allocation(registry, slot)
            write_registry(root, registry)
            logger.info("Removed slot %d (%s)", slot, allocation.worktree_path)
            results.append(
                RemovalResult(
                    slot=slot,
                    worktree_path=allocation.worktree_path,
                    db_name=allocation.db_name,
                    db_dropped=database_url is not None,
                    worktree_removed=worktree_removed,
                )
            )
    return results


def _like_prefix(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def run_doctor(main_root: Path | str, config: WtConfig, *, fix: bool = False) -> List[DoctorIssue]:
    """Check allocations against the filesystem and the database server.

    With ``fix``, stale registry entries are removed and orphaned slot
    databases are dropped. A database counts as orphaned only if no entry
    named it when the check started, so removing a stale entry never drops
    its database in the same pass.
    """
    root = Path(main_root)
    issues: List[DoctorIssue] = []
    timeout = _db_timeout(config)

    with _lock(root, config):
        registry = read_registry(root)
        database_url = database.read_database_url(root)
        registered = {a.db_name for a in registry.allocations.values()}

        for slot in registry.slots():
            allocation = registry.allocations[str(slot)]
            worktree = Path(allocation.worktree_path)

            if not worktree.exists():
                issues.append(
                    DoctorIssue("stale_entry", f"Path does not exist: {worktree}", slot=slot, fixed=fix)
                )
                if fix:
                    registry = remove_allocation(registry, slot)

            if not database.database_exists(database_url, allocation.db_name, connect_timeout=timeout):
                issues.append(DoctorIssue("missing_db", f"Database does not exist: {allocation.db_name}", slot=slot))

            if worktree.exists():
                for env_file in config.env_files:
                    if not (root / env_file.source).exists():
                        continue
                    if not (worktree / env_file.source).exists():
                        issues.append(DoctorIssue("missing_env", f"Missing env file: {env_file.source}", slot=slot))

        pattern = f"{_like_prefix(config.base_database_name)}\\_wt%"
        for db_name in database.list_databases_by_pattern(database_url, pattern, connect_timeout=timeout):
            if db_name in registered:
                continue
            issues.append(DoctorIssue("orphaned_db", f"Orphaned database: {db_name}", fixed=fix))
            if fix:
                database.drop_database(database_url, db_name, config.base_database_name, connect_timeout=timeout)

        if fix:
            write_registry(root, registry)

    return issues


__all__ = [
    "RemovalResult",
    "DoctorIssue",
    "parse_slot",
    "parse_remove_targets",
    "run_post_setup",
    "provision_slot",
    "create_new_worktree",
    "setup_worktree",
    "open_worktree",
    "remove_worktrees",
    "run_doctor",
]
