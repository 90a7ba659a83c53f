"""Tests for the worktree lifecycle workflows with fake git/Postgres collaborators."""
from __future__ import annotations

import shutil
import subprocess
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Set

import pytest

from helpers.io_utils import read_env, write_env
from wt.core import database, git, workflow
from wt.core.exceptions import CommandError, ConflictError, NotFoundError, PatchError, ValidationError
from wt.core.models import EnvFileConfig, PatchConfig, PatchType
from wt.core.registry import REGISTRY_FILENAME, add_allocation, read_registry, write_registry

MAIN_ENV = (
    "# main checkout\n"
    'DATABASE_URL="postgresql://u:p@localhost:5432/myapp?schema=public"\n'
    "REDIS_URL=redis://localhost:6379/0\n"
    "PORT=3000\n"
    "API_URL=http://localhost:4000/v1\n"
)


class FakeGit:
    def __init__(self) -> None:
        self.branches: Dict[Path, str] = {}
        self.created: List[str] = []
        self.removed: List[Path] = []

    def create_worktree(self, base_path, branch_name, *, repo_root=None, timeouts=None) -> Path:
        path = (Path(base_path) / git.branch_slug(branch_name)).resolve()
        path.mkdir(parents=True)
        self.branches[path] = branch_name
        self.created.append(branch_name)
        return path

    def get_branch_name(self, worktree_path, *, timeouts=None) -> str:
        return self.branches[Path(worktree_path).resolve()]

    def remove_worktree(self, worktree_path, *, repo_root=None, timeouts=None) -> None:
        path = Path(worktree_path)
        shutil.rmtree(path)
        self.removed.append(path)


class FakeDatabase:
    def __init__(self) -> None:
        self.existing: Set[str] = {"myapp"}
        self.created: List[tuple] = []
        self.dropped: List[str] = []

    def create_database(self, url, template, target, *, connect_timeout=None) -> None:
        self.created.append((template, target))
        self.existing.add(target)

    def drop_database(self, url, name, template, *, connect_timeout=None) -> None:
        if name == template:
            raise ConflictError("template")
        self.dropped.append(name)
        self.existing.discard(name)

    def database_exists(self, url, name, *, connect_timeout=None) -> bool:
        return name in self.existing

    def list_databases_by_pattern(self, url, pattern, *, connect_timeout=None) -> List[str]:
        return sorted(n for n in self.existing if n.startswith("myapp_wt"))


@pytest.fixture
def main_root(tmp_path: Path) -> Path:
    root = (tmp_path / "main").resolve()
    write_env(root / ".env", MAIN_ENV)
    return root


@pytest.fixture
def fake_git(monkeypatch: pytest.MonkeyPatch) -> FakeGit:
    fake = FakeGit()
    monkeypatch.setattr(git, "create_worktree", fake.create_worktree)
    monkeypatch.setattr(git, "get_branch_name", fake.get_branch_name)
    monkeypatch.setattr(git, "remove_worktree", fake.remove_worktree)
    return fake


@pytest.fixture
def fake_db(monkeypatch: pytest.MonkeyPatch) -> FakeDatabase:
    fake = FakeDatabase()
    for name in ("create_database", "drop_database", "database_exists", "list_databases_by_pattern"):
        monkeypatch.setattr(database, name, getattr(fake, name))
    return fake


@pytest.fixture
def post_setup_calls(monkeypatch: pytest.MonkeyPatch) -> List[dict]:
    calls: List[dict] = []

    def _run(cmd, timeout_type=None, **kwargs):
        calls.append({"cmd": cmd, "type": timeout_type, **kwargs})
        return subprocess.CompletedProcess(cmd, 0)

    monkeypatch.setattr(workflow, "run_with_timeout", _run)
    return calls


@pytest.fixture
def env(main_root, fake_git, fake_db, post_setup_calls):
    return main_root


class TestCreateNewWorktree:
    def test_allocates_slot_and_provisions_resources(
        self, env, sample_config, fake_git, fake_db, post_setup_calls
    ) -> None:
        slot, allocation = workflow.create_new_worktree(env, sample_config, "feat/auth")

        worktree = env / ".worktrees" / "feat-auth"
        assert slot == 1
        assert allocation.worktree_path == str(worktree)
        assert allocation.branch_name == "feat/auth"
        assert allocation.db_name == "myapp_wt1"
        assert allocation.redis_db == 1
        assert allocation.ports == {"web": 3100, "api": 4100}
        assert fake_db.created == [("myapp", "myapp_wt1")]
        assert read_env(worktree / ".env") == (
            "# main checkout\n"
            'DATABASE_URL="postgresql://u:p@localhost:5432/myapp_wt1?schema=public"\n'
            "REDIS_URL=redis://localhost:6379/1\n"
            "PORT=3100\n"
            "API_URL=http://localhost:4100/v1\n"
        )
        assert read_registry(env).get(1) == allocation
        assert post_setup_calls[0]["cmd"] == "npm install"
        assert post_setup_calls[0]["type"] == "postSetup"
        assert post_setup_calls[0]["cwd"] == str(worktree)
        assert post_setup_calls[0]["shell"] is True

    def test_next_worktree_gets_next_slot(self, env, sample_config) -> None:
        workflow.create_new_worktree(env, sample_config, "one")
        slot, allocation = workflow.create_new_worktree(env, sample_config, "two")
        assert slot == 2
        assert allocation.ports == {"web": 3200, "api": 4200}
        assert read_registry(env).slots() == [1, 2]

    def test_explicit_slot(self, env, sample_config) -> None:
        slot, allocation = workflow.create_new_worktree(env, sample_config, "feat/x", slot=7)
        assert slot == 7
        assert allocation.db_name == "myapp_wt7"

    def test_occupied_explicit_slot_fails_before_creating_anything(self, env, sample_config, fake_git) -> None:
        workflow.create_new_worktree(env, sample_config, "first", slot=3)
        with pytest.raises(ConflictError):
            workflow.create_new_worktree(env, sample_config, "second", slot=3)
        assert fake_git.created == ["first"]

    def test_no_free_slot(self, env, sample_config, fake_git) -> None:
        config = replace(sample_config, max_slots=1)
        workflow.create_new_worktree(env, config, "first")
        with pytest.raises(ConflictError) as excinfo:
            workflow.create_new_worktree(env, config, "second")
        assert excinfo.value.context["code"] == "NO_SLOTS"
        assert fake_git.created == ["first"]

    def test_existing_database_is_reused(self, env, sample_config, fake_db) -> None:
        fake_db.existing.add("myapp_wt1")
        workflow.create_new_worktree(env, sample_config, "feat/x")
        assert fake_db.created == []

    def test_no_install_skips_post_setup(self, env, sample_config, post_setup_calls) -> None:
        workflow.create_new_worktree(env, sample_config, "a", install=False)
        workflow.create_new_worktree(env, replace(sample_config, auto_install=False), "b")
        assert post_setup_calls == []

    def test_patch_failure_leaves_registry_untouched(self, env, sample_config) -> None:
        bad = replace(
            sample_config,
            env_files=[EnvFileConfig(".env", [PatchConfig("PORT", PatchType.PORT, "nope")])],
        )
        with pytest.raises(PatchError):
            workflow.create_new_worktree(env, bad, "feat/x")
        assert not (env / REGISTRY_FILENAME).exists()
        assert not (env / ".worktrees" / "feat-x" / ".env").exists()

    def test_post_setup_failure_raises_command_error(self, env, sample_config, monkeypatch) -> None:
        def _fail(cmd, timeout_type=None, **kwargs):
            raise subprocess.CalledProcessError(2, cmd)

        monkeypatch.setattr(workflow, "run_with_timeout", _fail)
        with pytest.raises(CommandError) as excinfo:
            workflow.create_new_worktree(env, sample_config, "feat/x")
        assert excinfo.value.context["returncode"] == 2
        # allocation was persisted before post-setup ran
        assert read_registry(env).slots() == [1]


class TestSetupWorktree:
    def test_refuses_main_worktree(self, env, sample_config) -> None:
        with pytest.raises(ConflictError) as excinfo:
            workflow.setup_worktree(env, sample_config, env)
        assert excinfo.value.context["code"] == "MAIN_WORKTREE"

    def test_allocates_then_reuses_slot(self, env, sample_config, fake_git, tmp_path) -> None:
        workflow.create_new_worktree(env, sample_config, "taken")
        existing = (tmp_path / "elsewhere").resolve()
        existing.mkdir()
        fake_git.branches[existing] = "feat/manual"

        slot, first = workflow.setup_worktree(env, sample_config, existing)
        assert slot == 2
        assert first.branch_name == "feat/manual"
        assert read_env(existing / ".env").count("PORT=3200") == 1

        fake_git.branches[existing] = "feat/renamed"
        again, second = workflow.setup_worktree(env, sample_config, existing)
        assert again == 2
        assert second.branch_name == "feat/renamed"
        assert read_registry(env).slots() == [1, 2]


class TestOpenWorktree:
    def test_open_by_slot_and_branch(self, env, sample_config) -> None:
        slot, allocation = workflow.create_new_worktree(env, sample_config, "feat/open")

        assert workflow.open_worktree(env, sample_config, str(slot)) == (slot, allocation, False)
        assert workflow.open_worktree(env, sample_config, "feat/open") == (slot, allocation, False)

    def test_unknown_slot(self, env, sample_config) -> None:
        with pytest.raises(NotFoundError):
            workflow.open_worktree(env, sample_config, "4")

    def test_unknown_branch_is_created(self, env, sample_config, fake_git) -> None:
        slot, allocation, created = workflow.open_worktree(env, sample_config, "feat/fresh", install=False)
        assert created is True
        assert slot == 1
        assert fake_git.created == ["feat/fresh"]


class TestRemoveWorktrees:
    def test_remove_by_slot_and_path(self, env, sample_config, fake_db, fake_git) -> None:
        for name in ("a", "b", "c"):
            workflow.create_new_worktree(env, sample_config, name)

        results = workflow.remove_worktrees(env, sample_config, ["1, ", str(env / ".worktrees" / "c")])

        assert [r.slot for r in results] == [1, 3]
        assert all(r.db_dropped and r.worktree_removed for r in results)
        assert fake_db.dropped == ["myapp_wt1", "myapp_wt3"]
        assert read_registry(env).slots() == [2]
        assert not (env / ".worktrees" / "a").exists()

    def test_keep_db(self, env, sample_config, fake_db) -> None:
        workflow.create_new_worktree(env, sample_config, "a")
        results = workflow.remove_worktrees(env, sample_config, ["1"], keep_db=True)
        assert fake_db.dropped == []
        assert results[0].db_dropped is False

    def test_missing_worktree_directory_still_frees_slot(self, env, sample_config, fake_git) -> None:
        _, allocation = workflow.create_new_worktree(env, sample_config, "a")
        shutil.rmtree(allocation.worktree_path)
        results = workflow.remove_worktrees(env, sample_config, ["1"])
        assert results[0].worktree_removed is False
        assert read_registry(env).slots() == []

    def test_unknown_target_removes_nothing(self, env, sample_config, fake_db) -> None:
        workflow.create_new_worktree(env, sample_config, "a")
        with pytest.raises(NotFoundError):
            workflow.remove_worktrees(env, sample_config, ["1", "9"])
        assert read_registry(env).slots() == [1]
        assert fake_db.dropped == []

    def test_no_targets(self, env, sample_config) -> None:
        with pytest.raises(ValidationError) as excinfo:
            workflow.remove_worktrees(env, sample_config, [" , "])
        assert excinfo.value.context["code"] == "NO_TARGETS"

    def test_remove_all(self, env, sample_config) -> None:
        workflow.create_new_worktree(env, sample_config, "a")
        workflow.create_new_worktree(env, sample_config, "b")
        results = workflow.remove_worktrees(env, sample_config, [], remove_all=True)
        assert [r.slot for r in results] == [1, 2]
        assert read_registry(env).allocations == {}


class TestDoctor:
    def test_healthy(self, env, sample_config) -> None:
        workflow.create_new_worktree(env, sample_config, "a")
        assert workflow.run_doctor(env, sample_config) == []

    def test_reports_issues(self, env, sample_config, fake_db, make_allocation) -> None:
        _, ok = workflow.create_new_worktree(env, sample_config, "a")
        (Path(ok.worktree_path) / ".env").unlink()
        fake_db.existing.discard("myapp_wt1")
        fake_db.existing.add("myapp_wt9")
        registry = add_allocation(read_registry(env), 4, make_allocation(4, str(env / "gone")))
        fake_db.existing.add("myapp_wt4")
        write_registry(env, registry)

        issues = {(i.type, i.slot) for i in workflow.run_doctor(env, sample_config)}

        assert issues == {
            ("missing_db", 1),
            ("missing_env", 1),
            ("stale_entry", 4),
            ("orphaned_db", None),
        }
        assert read_registry(env).slots() == [1, 4]
        assert "myapp_wt9" in fake_db.existing

    def test_fix_removes_stale_entries_and_orphans(self, env, sample_config, fake_db, make_allocation) -> None:
        workflow.create_new_worktree(env, sample_config, "a")
        fake_db.existing.add("myapp_wt9")
        write_registry(env, add_allocation(read_registry(env), 4, make_allocation(4, str(env / "gone"))))

        issues = workflow.run_doctor(env, sample_config, fix=True)

        fixed = {i.type for i in issues if i.fixed}
        assert fixed == {"stale_entry", "orphaned_db"}
        assert read_registry(env).slots() == [1]
        assert "myapp_wt9" in fake_db.dropped

    def test_fixing_stale_entry_keeps_its_database(self, env, sample_config, fake_db, make_allocation) -> None:
        write_registry(env, add_allocation(read_registry(env), 4, make_allocation(4, str(env / "gone"))))
        fake_db.existing.add("myapp_wt4")

        issues = workflow.run_doctor(env, sample_config, fix=True)

        assert [(i.type, i.slot) for i in issues] == [("stale_entry", 4)]
        assert read_registry(env).slots() == []
        assert "myapp_wt4" in fake_db.existing
        assert fake_db.dropped == []
