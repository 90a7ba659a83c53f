"""
wt CLI package.

Commands live one per module under ``wt.cli.commands`` and are discovered
by the dispatcher. Each module exposes ``SUMMARY``, ``register_args`` and
``main(args) -> int``.

Framework utilities for building CLI commands:
- _output: Output formatting (JSON/text modes)
- _args: Common argument registration helpers
- _utils: Shared CLI utilities
"""
from ._output import (
    OutputFormatter,
    allocation_payload,
    format_allocation_table,
    format_setup_summary,
)
from ._args import (
    add_json_flag,
    add_no_install_flag,
    add_repo_root_flag,
    add_standard_flags,
)
from ._utils import error_code, get_repo_root

__all__ = [
    # Output formatting
    "OutputFormatter",
    "allocation_payload",
    "format_allocation_table",
    "format_setup_summary",
    # Argument helpers
    "add_json_flag",
    "add_no_install_flag",
    "add_repo_root_flag",
    "add_standard_flags",
    # Utilities
    "error_code",
    "get_repo_root",
]
