"""Byte-faithful text I/O and atomic replacement.

Env files and the allocation registry are both rewritten by replacing the
whole file: content goes to a sibling temp file which is fsync'd and then
renamed over the target, so a concurrent reader sees old or new content and
nothing in between.
"""
from __future__ import annotations

import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, TextIO, Union

PathLike = Union[str, Path]

ENCODING = "utf-8"


@contextmanager
def atomic_file(path: PathLike) -> Iterator[TextIO]:
    """Yield a handle whose content replaces ``path`` when the block exits cleanly.

    The parent directory is created on demand. Nothing is translated on
    write (``newline=""``), so ``\\r\\n`` survives. If the block raises, the
    temp file is removed and ``path`` is left untouched.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding=ENCODING, newline="") as handle:
            yield handle
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp, target)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def read_text(path: PathLike) -> str:
    """Return the file's text with line endings exactly as stored.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
    """
    with open(path, "r", encoding=ENCODING, newline="") as handle:
        return handle.read()


def write_text(path: PathLike, content: str) -> None:
    """Atomically replace ``path`` with ``content``."""
    with atomic_file(path) as handle:
        handle.write(content)


__all__ = ["PathLike", "atomic_file", "read_text", "write_text"]
