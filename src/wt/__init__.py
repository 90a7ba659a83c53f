"""
wt - git worktree environment isolation

Gives each linked worktree its own database, Redis index, and port range
derived from a small integer slot, and writes patched env files into it.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
