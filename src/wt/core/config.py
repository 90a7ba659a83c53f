"""Project configuration loading.

The config file sits at the main worktree root as ``wt.config.yaml``,
``wt.config.yml`` or ``wt.config.json`` (first match wins; JSON is read
by the YAML parser). Bundled defaults from ``wt/data/config/defaults.yaml``
are merged underneath before validation.
"""
from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from wt.core.exceptions import NotFoundError, ValidationError
from wt.core.models import WtConfig
from wt.core.schemas import validate_payload
from wt.core.utils.io import read_yaml
from wt.data import read_yaml as read_data_yaml

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = ("wt.config.yaml", "wt.config.yml", "wt.config.json")


def find_config_file(repo_root: Path | str) -> Optional[Path]:
    """Return the first existing config file under ``repo_root``, if any."""
    root = Path(repo_root)
    for name in CONFIG_FILENAMES:
        candidate = root / name
        if candidate.is_file():
            return candidate
    return None


def load_defaults() -> Dict[str, Any]:
    return copy.deepcopy(read_data_yaml("config", "defaults.yaml"))


def _deep_merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _semantic_errors(data: Mapping[str, Any]) -> List[str]:
    errors: List[str] = []
    names = [s["name"] for s in data["services"]]
    seen: set[str] = set()
    for name in names:
        if name in seen:
            errors.append(f"services: duplicate service name {name!r}")
        seen.add(name)

    for i, env_file in enumerate(data["envFiles"]):
        for j, patch in enumerate(env_file["patches"]):
            where = f"envFiles.{i}.patches.{j}"
            if patch["type"] not in ("port", "url"):
                continue
            service = patch.get("service")
            if not service:
                errors.append(f"{where}: {patch['type']} patch for {patch['var']} requires 'service'")
            elif service not in seen:
                errors.append(f"{where}: unknown service {service!r}")
    return errors


def parse_config(raw: Any, *, source: str = "<config>") -> WtConfig:
    """Merge defaults under ``raw``, validate, and build a :class:`WtConfig`.

    Raises:
        ValidationError: Listing every schema and semantic violation.
    """
    if not isinstance(raw, Mapping):
        raise ValidationError(
            f"Config must be a mapping, got {type(raw).__name__}: {source}",
            context={"source": source},
        )
    data = _deep_merge(load_defaults(), raw)
    validate_payload(data, "config", source=source)

    errors = _semantic_errors(data)
    if errors:
        details = "\n".join(f"  - {e}" for e in errors)
        raise ValidationError(
            f"Invalid config in {source}:\n{details}",
            context={"source": source, "errors": errors},
        )
    return WtConfig.from_dict(data)


def load_config(repo_root: Path | str) -> WtConfig:
    """Load and validate the project config from the main worktree root.

    Raises:
        NotFoundError: If no config file exists.
        ValidationError: If the file cannot be parsed or is invalid.
    """
    path = find_config_file(repo_root)
    if path is None:
        raise NotFoundError(
            f"No wt config found in {repo_root} (expected one of: {', '.join(CONFIG_FILENAMES)})",
            context={"repoRoot": str(repo_root)},
        )
    try:
        raw = read_yaml(path, default={})
    except yaml.YAMLError as exc:
        raise ValidationError(f"Could not parse {path}: {exc}", context={"source": str(path)}) from exc

    logger.debug("Loaded config from %s", path)
    return parse_config(raw, source=str(path))


__all__ = [
    "CONFIG_FILENAMES",
    "find_config_file",
    "load_defaults",
    "parse_config",
    "load_config",
]
