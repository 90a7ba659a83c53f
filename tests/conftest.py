import sys
from pathlib import Path

import pytest

# Keep the repository free of Python bytecode and __pycache__ artifacts during tests.
sys.dont_write_bytecode = True

TESTS_ROOT = Path(__file__).resolve().parent
REPO_ROOT = TESTS_ROOT.parent
SRC_ROOT = REPO_ROOT / "src"

# Make src/ importable as 'wt' and tests/ importable for 'helpers'
for p in (SRC_ROOT, TESTS_ROOT):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))


from wt.core.models import Allocation, EnvFileConfig, PatchConfig, PatchType, ServiceConfig, WtConfig
from wt.core.utils.logging import reset_cli_logging_for_tests

@pytest.fixture(autouse=True)
def _no_update_check(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Never reach PyPI or the user's cache from tests."""
    monkeypatch.setenv("WT_NO_UPDATE_CHECK", "1")
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.delenv("DATABASE_URL", raising=False)


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    reset_cli_logging_for_tests()


@pytest.fixture
def sample_config_dict() -> dict:
    """Raw config document as a project would write it."""
    return {
        "baseDatabaseName": "myapp",
        "services": [
            {"name": "web", "defaultPort": 3000},
            {"name": "api", "defaultPort": 4000},
        ],
        "envFiles": [
            {
                "source": ".env",
                "patches": [
                    {"var": "DATABASE_URL", "type": "database"},
                    {"var": "REDIS_URL", "type": "redis"},
                    {"var": "PORT", "type": "port", "service": "web"},
                    {"var": "API_URL", "type": "url", "service": "api"},
                ],
            }
        ],
    }


@pytest.fixture
def sample_config() -> WtConfig:
    return WtConfig(
        base_database_name="myapp",
        services=[ServiceConfig("web", 3000), ServiceConfig("api", 4000)],
        env_files=[
            EnvFileConfig(
                ".env",
                [
                    PatchConfig("DATABASE_URL", PatchType.DATABASE),
                    PatchConfig("REDIS_URL", PatchType.REDIS),
                    PatchConfig("PORT", PatchType.PORT, "web"),
                    PatchConfig("API_URL", PatchType.URL, "api"),
                ],
            )
        ],
        post_setup=["npm install"],
        registry_lock={"timeoutSeconds": 2.0, "pollIntervalSeconds": 0.01},
    )


@pytest.fixture
def make_allocation():
    """Factory for allocations with sensible defaults."""

    def _make(slot: int, worktree_path: str, branch: str = "feat/x", **overrides) -> Allocation:
        values = {
            "worktree_path": worktree_path,
            "branch_name": branch,
            "db_name": f"myapp_wt{slot}",
            "redis_db": slot,
            "ports": {"web": 3000 + slot * 100, "api": 4000 + slot * 100},
            "created_at": "2025-01-01T00:00:00.000Z",
        }
        values.update(overrides)
        return Allocation(**values)

    return _make
