"""Entry point for the ``wt`` executable.

Subcommands are discovered from :mod:`wt.cli.commands`: each public module
there becomes ``wt <module>``, described by its ``SUMMARY`` and wired up
through ``register_args(parser)`` and ``main(args) -> int``.
"""
from __future__ import annotations

import argparse
import importlib
import pkgutil
import sys
import threading
from dataclasses import dataclass
from functools import lru_cache
from types import ModuleType
from typing import Callable, Dict, List, Optional

from wt import __version__
from wt.cli import commands as commands_pkg
from wt.core import update_check
from wt.core.utils.logging import configure_cli_logging

DESCRIPTION = "Git worktree environment isolation: per-worktree databases, Redis indexes and ports"


@dataclass(frozen=True)
class Command:
    name: str
    module: ModuleType

    @property
    def summary(self) -> str:
        return getattr(self.module, "SUMMARY", self.name)

    @property
    def register_args(self) -> Optional[Callable[[argparse.ArgumentParser], None]]:
        return getattr(self.module, "register_args", None)

    @property
    def run(self) -> Optional[Callable[[argparse.Namespace], int]]:
        return getattr(self.module, "main", None)


@lru_cache(maxsize=1)
def discover_root_commands() -> Dict[str, Command]:
    """Import every public module of :mod:`wt.cli.commands`, keyed by command name."""
    found: Dict[str, Command] = {}
    for info in pkgutil.iter_modules(commands_pkg.__path__):
        if info.name.startswith("_") or info.ispkg:
            continue
        module = importlib.import_module(f"{commands_pkg.__name__}.{info.name}")
        found[info.name] = Command(info.name, module)
    return found


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="wt", description=DESCRIPTION)
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show debug logging (git and SQL commands) on stderr",
    )

    sub = parser.add_subparsers(dest="command", title="commands", metavar="<command>")
    for name, command in sorted(discover_root_commands().items()):
        cmd_parser = sub.add_parser(
            name,
            help=command.summary,
            description=getattr(command.module, "DESCRIPTION", None) or command.summary,
        )
        if command.register_args is not None:
            command.register_args(cmd_parser)
        if command.run is not None:
            cmd_parser.set_defaults(_run=command.run)
    return parser


def _emit_update_notice() -> Optional[threading.Thread]:
    """Print the version line (and upgrade hint) to stderr and start a cache refresh if it is stale."""
    if update_check.update_check_disabled():
        return None
    print(update_check.get_update_notice(__version__), file=sys.stderr)
    return update_check.start_background_refresh()


def main(argv: Optional[List[str]] = None) -> int:
    """Parse ``argv`` (default ``sys.argv[1:]``), run the chosen command and return its exit code."""
    parser = build_parser()
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)

    run = getattr(args, "_run", None)
    if run is None:
        parser.print_help()
        return 0

    configure_cli_logging(verbose=args.verbose, json_mode=bool(getattr(args, "json", False)))

    try:
        code = int(run(args) or 0)
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        return 130

    refresh = _emit_update_notice()
    if refresh is not None:
        # Daemon threads die with the interpreter; let the bounded fetch finish.
        refresh.join(timeout=update_check.FETCH_TIMEOUT_SECONDS)
    return code


if __name__ == "__main__":
    sys.exit(main())
