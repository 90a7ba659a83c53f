"""JSON documents on disk: shared-lock reads, atomic two-space-indented writes."""
from __future__ import annotations

import fcntl
import json
from pathlib import Path
from typing import Any

from .core import ENCODING, PathLike, atomic_file

_NO_DEFAULT = object()


def read_json(path: PathLike, *, default: Any = _NO_DEFAULT) -> Any:
    """Parse the JSON document at ``path``.

    A missing file returns ``default`` when one is given and raises
    ``FileNotFoundError`` otherwise. Malformed content always raises
    ``json.JSONDecodeError``.
    """
    try:
        handle = open(Path(path), "r", encoding=ENCODING)
    except FileNotFoundError:
        if default is _NO_DEFAULT:
            raise
        return default

    with handle:
        fcntl.flock(handle.fileno(), fcntl.LOCK_SH)
        try:
            return json.load(handle)
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


def write_json_atomic(path: PathLike, data: Any, *, indent: int = 2) -> None:
    """Replace ``path`` with ``data`` as JSON, keys in insertion order, newline-terminated."""
    with atomic_file(path) as handle:
        json.dump(data, handle, indent=indent, ensure_ascii=False)
        handle.write("\n")


__all__ = ["read_json", "write_json_atomic"]
