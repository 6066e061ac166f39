"""Configuration management for ctxpack."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from ctxpack.exceptions import ConfigError

CTXPACK_DIR = ".ctxpack"
CONFIG_FILE = "config.json"
STORE_DB_FILE = "knowledge.db"


class AssemblyConfig(BaseModel):
    """Orchestrator knobs. Scoring weights and budget splits are not configurable."""

    default_max_tokens: int = 4000
    max_candidates: int = Field(default=200, ge=1)
    retrieval_timeout_s: float = Field(default=5.0, gt=0)  # Per collaborator phase
    infer_project: bool = True  # Scope unscoped queries to the most recently active project


class ProjectConfig(BaseModel):
    """Full workspace configuration."""

    name: str = ""
    root_path: str = "."
    default_project: str | None = None
    assembly: AssemblyConfig = Field(default_factory=AssemblyConfig)


def find_project_root(start: Path | None = None) -> Path | None:
    """Walk up from `start` looking for a .ctxpack directory."""
    current = (start or Path.cwd()).resolve()
    while current != current.parent:
        if (current / CTXPACK_DIR).is_dir():
            return current
        current = current.parent
    if (current / CTXPACK_DIR).is_dir():
        return current
    return None


def get_ctxpack_dir(root: Path) -> Path:
    """Get the .ctxpack directory for a workspace root."""
    return root / CTXPACK_DIR


def load_config(root: Path) -> ProjectConfig:
    """Load configuration from .ctxpack/config.json."""
    config_path = get_ctxpack_dir(root) / CONFIG_FILE
    if config_path.exists():
        try:
            data = json.loads(config_path.read_text())
            return ProjectConfig(**data)
        except (json.JSONDecodeError, ValidationError) as e:
            raise ConfigError(f"Invalid config file {config_path}: {e}") from e
    return ProjectConfig(name=root.name, root_path=str(root))


def save_config(root: Path, config: ProjectConfig) -> None:
    """Save configuration to .ctxpack/config.json."""
    cp_dir = get_ctxpack_dir(root)
    cp_dir.mkdir(parents=True, exist_ok=True)
    config_path = cp_dir / CONFIG_FILE
    config_path.write_text(json.dumps(config.model_dump(), indent=2))


def get_config_value(config: ProjectConfig, key: str) -> Any:
    """Read a nested config value using dot notation (e.g., 'assembly.max_candidates')."""
    target: Any = config.model_dump()
    for part in key.split("."):
        if not isinstance(target, dict) or part not in target:
            raise KeyError(f"Invalid config key: {key}")
        target = target[part]
    return target


def set_config_value(config: ProjectConfig, key: str, value: Any) -> ProjectConfig:
    """Set a nested config value using dot notation (e.g., 'assembly.max_candidates')."""
    parts = key.split(".")
    data = config.model_dump()
    target = data
    for part in parts[:-1]:
        if part not in target or not isinstance(target[part], dict):
            raise KeyError(f"Invalid config key: {key}")
        target = target[part]
    if parts[-1] not in target:
        raise KeyError(f"Invalid config key: {key}")
    target[parts[-1]] = value
    try:
        return ProjectConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid value for {key}: {value!r}") from e
