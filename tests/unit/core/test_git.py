"""Tests for the git worktree provider against real repositories."""
from __future__ import annotations

from pathlib import Path

import pytest

from helpers.git_helpers import git, requires_git, git_create_branch, git_create_worktree, git_init
from wt.core import git as wt_git
from wt.core.exceptions import CommandError

PORCELAIN = """\
worktree /repo
HEAD 1111111111111111111111111111111111111111
branch refs/heads/main

worktree /repo/.worktrees/feat-auth
HEAD 2222222222222222222222222222222222222222
branch refs/heads/feat/auth

worktree /repo/.worktrees/detached
HEAD 3333333333333333333333333333333333333333
detached
"""


def test_parse_worktree_list() -> None:
    entries = wt_git.parse_worktree_list(PORCELAIN)
    assert [e["path"] for e in entries] == ["/repo", "/repo/.worktrees/feat-auth", "/repo/.worktrees/detached"]
    assert entries[1]["branch"] == "feat/auth"
    assert entries[1]["branch_ref"] == "refs/heads/feat/auth"
    assert "branch" not in entries[2]


@pytest.mark.parametrize(
    ("branch", "slug"),
    [("feat/auth", "feat-auth"), ("main", "main"), ("a/b/c", "a-b-c")],
)
def test_branch_slug(branch: str, slug: str) -> None:
    assert wt_git.branch_slug(branch) == slug


@requires_git
class TestWithRepository:
    @pytest.fixture
    def repo(self, tmp_path: Path) -> Path:
        return git_init(tmp_path / "repo").resolve()

    def test_main_worktree_is_detected_from_linked_worktree(self, repo: Path, tmp_path: Path) -> None:
        linked = tmp_path / "linked"
        git_create_worktree(repo, linked, "feat/linked")

        assert wt_git.get_main_worktree_path(linked).resolve() == repo
        assert wt_git.is_main_worktree(repo, main_path=repo)
        assert not wt_git.is_main_worktree(linked, main_path=repo)

    def test_create_worktree_with_new_branch(self, repo: Path) -> None:
        path = wt_git.create_worktree(repo / ".worktrees", "feat/new-thing", repo_root=repo)

        assert path == (repo / ".worktrees" / "feat-new-thing").resolve()
        assert path.is_dir()
        assert wt_git.get_branch_name(path) == "feat/new-thing"

    def test_create_worktree_checks_out_existing_branch(self, repo: Path) -> None:
        git_create_branch(repo, "existing")
        path = wt_git.create_worktree(repo / ".worktrees", "existing", repo_root=repo)
        assert wt_git.get_branch_name(path) == "existing"
        assert wt_git.branch_exists_locally("existing", cwd=repo)
        assert not wt_git.branch_exists_locally("never-made", cwd=repo)

    def test_remove_worktree(self, repo: Path) -> None:
        path = wt_git.create_worktree(repo / ".worktrees", "gone", repo_root=repo)
        (path / "dirty.txt").write_text("uncommitted")

        wt_git.remove_worktree(path, repo_root=repo)

        assert not path.exists()
        assert str(path) not in git(repo, "worktree", "list")

    def test_failures_become_command_errors(self, repo: Path) -> None:
        wt_git.create_worktree(repo / ".worktrees", "twice", repo_root=repo)
        with pytest.raises(CommandError) as excinfo:
            wt_git.create_worktree(repo / ".worktrees", "twice", repo_root=repo)
        assert excinfo.value.context["returncode"] != 0

    def test_outside_a_repository(self, tmp_path: Path) -> None:
        outside = tmp_path / "plain"
        outside.mkdir()
        with pytest.raises(CommandError):
            wt_git.get_main_worktree_path(outside)
