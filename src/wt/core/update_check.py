"""Best-effort "newer version available" notice.

The latest published version is cached in ``~/.cache/wt-update-check.json``
and refreshed from PyPI at most once a day in a daemon thread, which the
CLI joins (bounded by the fetch timeout) before exiting. Every failure
here (network, cache, JSON) is ignored: the notice must never break a
command. Set ``WT_NO_UPDATE_CHECK=1`` to skip it entirely.
"""
from __future__ import annotations

import json
import logging
import os
import re
import threading
import time
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.error import URLError
from urllib.request import Request, urlopen

from wt.core.utils.io import read_json, write_json_atomic

logger = logging.getLogger(__name__)

PACKAGE_NAME = "wt-worktree"
CACHE_TTL_SECONDS = 24 * 60 * 60
FETCH_TIMEOUT_SECONDS = 3.0
DISABLE_ENV = "WT_NO_UPDATE_CHECK"

_LEADING_DIGITS = re.compile(r"\d+")


def default_cache_path() -> Path:
    return Path.home() / ".cache" / "wt-update-check.json"


def update_check_disabled() -> bool:
    return os.environ.get(DISABLE_ENV, "").strip().lower() in {"1", "true", "yes"}


def _version_parts(version: str) -> list[int]:
    parts = []
    for piece in version.split("."):
        match = _LEADING_DIGITS.match(piece)
        parts.append(int(match.group()) if match else 0)
    return parts


def is_newer(current: str, candidate: str) -> bool:
    """Return True if ``candidate`` is a newer dotted version than ``current``."""
    a, b = _version_parts(current), _version_parts(candidate)
    width = max(len(a), len(b))
    a += [0] * (width - len(a))
    b += [0] * (width - len(b))
    return b > a


def _read_cache(cache_path: Path) -> Optional[Dict[str, Any]]:
    try:
        data = read_json(cache_path, default=None)
    except (OSError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def get_update_notice(current_version: str, *, cache_path: Optional[Path] = None) -> str:
    """Return ``wt v<version>``, plus an upgrade hint when the cache knows a newer one."""
    cache = _read_cache(cache_path or default_cache_path())
    latest = str((cache or {}).get("latest") or "")
    if latest and is_newer(current_version, latest):
        return (
            f"wt v{current_version} (update available: {latest})\n"
            f"Run: pip install -U {PACKAGE_NAME}"
        )
    return f"wt v{current_version}"


def is_cache_fresh(*, cache_path: Optional[Path] = None, now: Optional[float] = None) -> bool:
    cache = _read_cache(cache_path or default_cache_path())
    if not cache:
        return False
    try:
        checked_at = float(cache["checkedAt"])
    except (KeyError, TypeError, ValueError):
        return False
    return (now if now is not None else time.time()) - checked_at < CACHE_TTL_SECONDS


def fetch_latest_version(package_name: str = PACKAGE_NAME, *, timeout: float = FETCH_TIMEOUT_SECONDS) -> Optional[str]:
    req = Request(f"https://pypi.org/pypi/{package_name}/json", headers={"Accept": "application/json"})
    with urlopen(req, timeout=timeout) as resp:
        payload = json.loads(resp.read().decode("utf-8"))
    version = (payload.get("info") or {}).get("version")
    return str(version) if version else None


def refresh_update_cache(package_name: str = PACKAGE_NAME, *, cache_path: Optional[Path] = None) -> None:
    """Fetch the latest version and write it to the cache; errors are ignored."""
    try:
        latest = fetch_latest_version(package_name)
        if not latest:
            return
        write_json_atomic(cache_path or default_cache_path(), {"latest": latest, "checkedAt": time.time()})
    except (URLError, OSError, ValueError) as exc:
        logger.debug("Update check failed: %s", exc)


def start_background_refresh(package_name: str = PACKAGE_NAME, *, cache_path: Optional[Path] = None) -> Optional[threading.Thread]:
    """Refresh a stale cache in a daemon thread. Returns the thread, if started."""
    if update_check_disabled() or is_cache_fresh(cache_path=cache_path):
        return None
    thread = threading.Thread(
        target=refresh_update_cache,
        args=(package_name,),
        kwargs={"cache_path": cache_path},
        name="wt-update-check",
        daemon=True,
    )
    thread.start()
    return thread


__all__ = [
    "is_newer",
    "get_update_notice",
    "is_cache_fresh",
    "fetch_latest_version",
    "refresh_update_cache",
    "start_background_refresh",
    "update_check_disabled",
]
