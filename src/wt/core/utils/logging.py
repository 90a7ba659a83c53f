"""CLI logging setup.

Progress messages go to stderr so stdout carries only command output.
In JSON mode nothing is written to stderr by logging at all.
"""

from __future__ import annotations

import logging
import sys

_WT_HANDLER: logging.Handler | None = None

_PLAIN_FORMAT = "%(message)s"
_VERBOSE_FORMAT = "%(levelname)s %(name)s: %(message)s"


def _level_from_name(name: str) -> int:
    value = logging.getLevelName(name.upper())
    return value if isinstance(value, int) else logging.INFO


def configure_cli_logging(*, verbose: bool = False, json_mode: bool = False, level: str | None = None) -> None:
    """Install the wt stderr handler on the ``wt`` logger.

    Idempotent per-process: a second call replaces the previous handler.
    """
    global _WT_HANDLER

    logger = logging.getLogger("wt")
    if _WT_HANDLER is not None:
        logger.removeHandler(_WT_HANDLER)
        _WT_HANDLER.close()
        _WT_HANDLER = None

    if json_mode:
        handler: logging.Handler = logging.NullHandler()
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_VERBOSE_FORMAT if verbose else _PLAIN_FORMAT))

    if level is not None:
        effective = _level_from_name(level)
    else:
        effective = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(effective)
    logger.addHandler(handler)
    # Keep records away from the root logger's lastResort stderr handler.
    logger.propagate = False
    _WT_HANDLER = handler


def reset_cli_logging_for_tests() -> None:
    """Test-only: drop the installed handler and restore propagation."""
    global _WT_HANDLER
    logger = logging.getLogger("wt")
    if _WT_HANDLER is not None:
        logger.removeHandler(_WT_HANDLER)
        _WT_HANDLER.close()
    _WT_HANDLER = None
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


__all__ = ["configure_cli_logging", "reset_cli_logging_for_tests"]
