"""
Domain models for wt.

Plain dataclasses for the persisted registry, the loaded configuration,
and the per-slot values handed to the env patcher. Serialized forms use
the camelCase keys of the on-disk documents; in-memory attributes are
snake_case.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

REGISTRY_VERSION = 1


class PatchType(str, Enum):
    """Kinds of env var rewrite rules."""

    DATABASE = "database"
    REDIS = "redis"
    PORT = "port"
    URL = "url"

    @property
    def needs_service(self) -> bool:
        return self in (PatchType.PORT, PatchType.URL)


@dataclass(frozen=True)
class ServiceConfig:
    """A service whose port is shifted per slot."""

    name: str
    default_port: int

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "defaultPort": self.default_port}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServiceConfig":
        return cls(name=str(data["name"]), default_port=int(data["defaultPort"]))


@dataclass(frozen=True)
class PatchConfig:
    """Declarative rewrite rule for a single env var."""

    var: str
    type: PatchType
    service: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"var": self.var, "type": self.type.value}
        if self.service is not None:
            data["service"] = self.service
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PatchConfig":
        service = data.get("service")
        return cls(
            var=str(data["var"]),
            type=PatchType(data["type"]),
            service=str(service) if service is not None else None,
        )


@dataclass(frozen=True)
class EnvFileConfig:
    """An env file (relative to the repo root) and the rules applied to it."""

    source: str
    patches: List[PatchConfig] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"source": self.source, "patches": [p.to_dict() for p in self.patches]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EnvFileConfig":
        return cls(
            source=str(data["source"]),
            patches=[PatchConfig.from_dict(p) for p in data.get("patches") or []],
        )


@dataclass(frozen=True)
class WtConfig:
    """Validated project configuration (``wt.config.yaml``)."""

    base_database_name: str
    services: List[ServiceConfig]
    env_files: List[EnvFileConfig]
    base_worktree_path: str = ".worktrees"
    port_stride: int = 100
    max_slots: int = 15
    post_setup: List[str] = field(default_factory=list)
    auto_install: bool = True
    timeouts: Dict[str, float] = field(default_factory=dict)
    registry_lock: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WtConfig":
        return cls(
            base_database_name=str(data["baseDatabaseName"]),
            services=[ServiceConfig.from_dict(s) for s in data["services"]],
            env_files=[EnvFileConfig.from_dict(e) for e in data.get("envFiles") or []],
            base_worktree_path=str(data.get("baseWorktreePath", ".worktrees")),
            port_stride=int(data.get("portStride", 100)),
            max_slots=int(data.get("maxSlots", 15)),
            post_setup=[str(c) for c in data.get("postSetup") or []],
            auto_install=bool(data.get("autoInstall", True)),
            timeouts={k: float(v) for k, v in (data.get("timeouts") or {}).items()},
            registry_lock={k: float(v) for k, v in (data.get("registryLock") or {}).items()},
        )


@dataclass(frozen=True)
class PatchContext:
    """Resolved values for one slot, consumed by the env patcher."""

    db_name: str
    redis_db: int
    ports: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class Allocation:
    """Resources bound to a slot, as persisted in the registry."""

    worktree_path: str
    branch_name: str
    db_name: str
    redis_db: int
    ports: Dict[str, int]
    created_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "worktreePath": self.worktree_path,
            "branchName": self.branch_name,
            "dbName": self.db_name,
            "redisDb": self.redis_db,
            "ports": dict(self.ports),
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Allocation":
        return cls(
            worktree_path=data["worktreePath"],
            branch_name=data["branchName"],
            db_name=data["dbName"],
            redis_db=data["redisDb"],
            ports=dict(data["ports"]),
            created_at=data["createdAt"],
        )


@dataclass(frozen=True)
class Registry:
    """Slot -> allocation map persisted at ``.worktree-registry.json``.

    Keys are decimal slot strings. Treat instances as immutable values;
    use :mod:`wt.core.registry` helpers to derive updated copies.
    """

    version: int = REGISTRY_VERSION
    allocations: Dict[str, Allocation] = field(default_factory=dict)

    def get(self, slot: int) -> Optional[Allocation]:
        return self.allocations.get(str(slot))

    def slots(self) -> List[int]:
        """Return occupied slots in ascending order."""
        return sorted(int(key) for key in self.allocations)

    def to_dict(self) -> Dict[str, Any]:
        ordered = sorted(self.allocations.items(), key=lambda item: int(item[0]))
        return {
            "version": self.version,
            "allocations": {key: alloc.to_dict() for key, alloc in ordered},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Registry":
        return cls(
            version=data["version"],
            allocations={
                str(key): Allocation.from_dict(value)
                for key, value in (data.get("allocations") or {}).items()
            },
        )


__all__ = [
    "REGISTRY_VERSION",
    "PatchType",
    "ServiceConfig",
    "PatchConfig",
    "EnvFileConfig",
    "WtConfig",
    "PatchContext",
    "Allocation",
    "Registry",
]
