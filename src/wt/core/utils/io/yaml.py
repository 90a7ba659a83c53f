"""YAML reads for project config files."""
from __future__ import annotations

import fcntl
from typing import Any

import yaml

from .core import ENCODING, PathLike


def read_yaml(path: PathLike, default: Any = None) -> Any:
    """Load ``path`` with ``yaml.safe_load``.

    JSON is a YAML subset, so ``wt.config.json`` goes through here too.
    Empty documents yield ``default``; parse errors propagate as
    ``yaml.YAMLError``.
    """
    with open(path, "r", encoding=ENCODING) as handle:
        fcntl.flock(handle.fileno(), fcntl.LOCK_SH)
        try:
            data = yaml.safe_load(handle)
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
    return default if data is None else data


__all__ = ["read_yaml"]
