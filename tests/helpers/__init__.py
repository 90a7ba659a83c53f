"""Test helper modules for the wt test suite.

- git_helpers: real temporary repositories and worktrees
- io_utils: writing configs, registries, and env files byte for byte
"""
from __future__ import annotations

from helpers.git_helpers import git, git_commit, git_create_branch, git_create_worktree, git_init, requires_git
from helpers.io_utils import read_env, write_env, write_json, write_registry_doc, write_yaml

__all__ = [
    "git",
    "git_commit",
    "git_create_branch",
    "git_create_worktree",
    "git_init",
    "requires_git",
    "read_env",
    "write_env",
    "write_json",
    "write_registry_doc",
    "write_yaml",
]
