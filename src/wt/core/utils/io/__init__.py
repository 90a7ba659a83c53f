"""File I/O used by the registry, config loader and env patcher."""
from __future__ import annotations

from .core import PathLike, atomic_file, read_text, write_text
from .json import read_json, write_json_atomic
from .locking import LockTimeoutError, acquire_file_lock, lock_path_for
from .yaml import read_yaml

__all__ = [
    "PathLike",
    "atomic_file",
    "read_text",
    "write_text",
    "read_json",
    "write_json_atomic",
    "read_yaml",
    "LockTimeoutError",
    "acquire_file_lock",
    "lock_path_for",
]
