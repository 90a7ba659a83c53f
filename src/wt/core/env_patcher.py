"""Env file rewriting for a slot.

:func:`patch_env_content` rewrites dotenv-style text one line at a time.
Only ``NAME=value`` lines whose name has a rule are touched; every other
line (comments, blanks, ``export`` lines, lowercase names, anything
malformed) is kept byte for byte, including a trailing ``\\r`` on CRLF
files. A patched value keeps the quote character it was written with.

Values must fit on one line. A patched variable whose value opens a quote
that is not closed at the end of the same line is rejected with
:class:`PatchError` rather than guessed at.
"""
from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from wt.core.exceptions import PatchError, ValidationError
from wt.core.models import EnvFileConfig, PatchConfig, PatchContext, PatchType
from wt.core.utils.io import read_text, write_text

logger = logging.getLogger(__name__)

_ASSIGNMENT_RE = re.compile(r"^([A-Z_][A-Z0-9_]*)=(.*)$", re.DOTALL)
_REDIS_INDEX_RE = re.compile(r"/\d+$")
_URL_PORT_RE = re.compile(r":\d+")
_QUOTES = ('"', "'")


def parse_env_line(line: str) -> Optional[Tuple[str, str]]:
    """Split ``NAME=value`` into ``(name, raw value)``; None for any other line."""
    match = _ASSIGNMENT_RE.match(line)
    if not match:
        return None
    return match.group(1), match.group(2)


def unquote_value(raw: str) -> Tuple[str, str]:
    """Strip one layer of matching quotes, returning ``(quote, inner)``.

    ``quote`` is ``'"'``, ``"'"`` or ``""``.

    Raises:
        PatchError: If ``raw`` opens a quote it does not close.
    """
    if raw[:1] in _QUOTES:
        quote = raw[0]
        if len(raw) >= 2 and raw.endswith(quote):
            return quote, raw[1:-1]
        raise PatchError(
            f"Unterminated {quote} quote in value {raw!r}; "
            "multi-line values and trailing text after a quoted value are not supported",
            context={"value": raw},
        )
    return "", raw


def _service_port(patch: PatchConfig, context: PatchContext) -> int:
    service = patch.service
    if not service or service not in context.ports:
        raise PatchError(
            f"{patch.type.value} patch for {patch.var} requires a valid service name, got: {service}",
            context={"var": patch.var, "service": service, "known": sorted(context.ports)},
        )
    return context.ports[service]


def _patch_database(value: str, patch: PatchConfig, context: PatchContext) -> str:
    # Replace the last path segment before any ?query; the authority is never touched.
    base, sep, query = value.partition("?")
    scheme_end = base.find("://")
    path_start = base.find("/", scheme_end + 3) if scheme_end != -1 else 0
    if path_start == -1:
        return value
    idx = base.rfind("/", path_start)
    if idx == -1 or idx == len(base) - 1:
        return value
    return f"{base[: idx + 1]}{context.db_name}{sep}{query}"


def _patch_redis(value: str, patch: PatchConfig, context: PatchContext) -> str:
    if _REDIS_INDEX_RE.search(value):
        return _REDIS_INDEX_RE.sub(f"/{context.redis_db}", value)
    return f"{value}/{context.redis_db}"


def _patch_port(value: str, patch: PatchConfig, context: PatchContext) -> str:
    return str(_service_port(patch, context))


def _patch_url(value: str, patch: PatchConfig, context: PatchContext) -> str:
    port = _service_port(patch, context)
    return _URL_PORT_RE.sub(f":{port}", value, count=1)


_TRANSFORMS: Dict[PatchType, Callable[[str, PatchConfig, PatchContext], str]] = {
    PatchType.DATABASE: _patch_database,
    PatchType.REDIS: _patch_redis,
    PatchType.PORT: _patch_port,
    PatchType.URL: _patch_url,
}


def apply_patch(value: str, patch: PatchConfig, context: PatchContext) -> str:
    """Apply a single rule to an unquoted value."""
    return _TRANSFORMS[patch.type](value, patch, context)


def patch_env_content(
    content: str,
    patches: Sequence[PatchConfig],
    context: PatchContext,
) -> str:
    """Return ``content`` with every ruled variable rewritten for ``context``.

    ``port`` rules whose variable never appears are appended as new lines
    (before the final newline when the content ends with one). Rules of
    the other types need an existing value and are skipped when absent.
    """
    rules: Dict[str, PatchConfig] = {p.var: p for p in patches}
    found: set[str] = set()
    crlf = "\r\n" in content

    out: List[str] = []
    for line in content.split("\n"):
        body, eol = (line[:-1], "\r") if line.endswith("\r") else (line, "")
        parsed = parse_env_line(body)
        if parsed is None:
            out.append(line)
            continue

        name, raw = parsed
        rule = rules.get(name)
        if rule is None:
            out.append(line)
            continue

        found.add(name)
        quote, inner = unquote_value(raw)
        patched = apply_patch(inner, rule, context)
        out.append(f"{name}={quote}{patched}{quote}{eol}")

    eol = "\r" if crlf else ""
    appended = [
        f"{var}={_service_port(rule, context)}"
        for var, rule in rules.items()
        if var not in found and rule.type is PatchType.PORT
    ]

    if appended:
        if out[-1] == "":
            out[-1:-1] = [f"{line}{eol}" for line in appended]
        else:
            # No final newline: terminate the old last line, leave the new one bare.
            out[-1] += eol
            out.extend(f"{line}{eol}" for line in appended[:-1])
            out.append(appended[-1])

    return "\n".join(out)


def _target_within(root: Path, relative: str) -> Path:
    base = Path(os.path.normpath(root.absolute()))
    target = Path(os.path.normpath(base / relative))
    if Path(relative).is_absolute() or not target.is_relative_to(base):
        raise ValidationError(
            f"Env file path must be relative to the repository: {relative}",
            context={"source": relative},
        )
    return target


def copy_and_patch_all_env_files(
    env_files: Sequence[EnvFileConfig],
    source_root: Path | str,
    dest_root: Path | str,
    context: PatchContext,
) -> List[Path]:
    """Copy each configured env file from ``source_root`` to ``dest_root``, patched.

    Sources that do not exist are skipped. Each file is fully patched in
    memory before anything is written, and written atomically, so a
    :class:`PatchError` never leaves a partial file behind.

    Returns:
        The destination paths that were written.
    """
    src_root = Path(source_root)
    dst_root = Path(dest_root)
    written: List[Path] = []

    for env_file in env_files:
        source_path = _target_within(src_root, env_file.source)
        if not source_path.is_file():
            logger.debug("Skipping missing env file %s", source_path)
            continue

        content = read_text(source_path)
        patched = patch_env_content(content, env_file.patches, context)

        target_path = _target_within(dst_root, env_file.source)
        write_text(target_path, patched)
        logger.debug("Patched %s -> %s", source_path, target_path)
        written.append(target_path)

    return written


__all__ = [
    "parse_env_line",
    "unquote_value",
    "apply_patch",
    "patch_env_content",
    "copy_and_patch_all_env_files",
]
