"""Timezone-aware time helpers."""
from __future__ import annotations

import re
from datetime import datetime, timezone

# Matches the timestamps written by utc_timestamp() and any other
# RFC 3339 / ISO 8601 date-time with an explicit offset.
ISO8601_PATTERN = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?(Z|[+-]\d{2}:\d{2})$"
)


def utc_now() -> datetime:
    """Return the current timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def utc_timestamp(dt: datetime | None = None) -> str:
    """Return an ISO 8601 UTC timestamp with millisecond precision and ``Z`` suffix."""
    value = (dt or utc_now()).astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def is_iso8601(value: str) -> bool:
    """Return True when ``value`` is a parseable ISO 8601 date-time with offset."""
    if not ISO8601_PATTERN.match(value):
        return False
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return False
    return True


__all__ = ["utc_now", "utc_timestamp", "is_iso8601", "ISO8601_PATTERN"]
