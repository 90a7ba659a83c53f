"""
wt core: registry store, slot allocator, env patcher, and the git /
Postgres collaborators they are orchestrated with.
"""
from __future__ import annotations

from .env_patcher import copy_and_patch_all_env_files, patch_env_content
from .exceptions import (
    CommandError,
    ConflictError,
    NotFoundError,
    PatchError,
    ValidationError,
    WtError,
)
from .models import (
    Allocation,
    EnvFileConfig,
    PatchConfig,
    PatchContext,
    PatchType,
    Registry,
    ServiceConfig,
    WtConfig,
)
from .registry import (
    add_allocation,
    find_by_path,
    read_registry,
    remove_allocation,
    write_registry,
)
from .slot_allocator import (
    build_patch_context,
    calculate_db_name,
    calculate_ports,
    find_available_slot,
    resolve_slot,
)

__all__ = [
    # registry
    "read_registry",
    "write_registry",
    "add_allocation",
    "remove_allocation",
    "find_by_path",
    # slot allocator
    "calculate_ports",
    "calculate_db_name",
    "find_available_slot",
    "resolve_slot",
    "build_patch_context",
    # env patcher
    "patch_env_content",
    "copy_and_patch_all_env_files",
    # models
    "Allocation",
    "EnvFileConfig",
    "PatchConfig",
    "PatchContext",
    "PatchType",
    "Registry",
    "ServiceConfig",
    "WtConfig",
    # errors
    "WtError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "PatchError",
    "CommandError",
]
