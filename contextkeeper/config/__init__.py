# contextkeeper/config/__init__.py
"""
Config loading. The file is re-read on every request because the environment
may change between calls.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from contextkeeper import env
from contextkeeper.errors import ConfigError
from contextkeeper.logger import get_logger

from .models import DEFAULT_HISTORY_PATTERNS, ProjectConfig, ProjectType

__all__ = [
    "DEFAULT_HISTORY_PATTERNS",
    "ProjectConfig",
    "ProjectType",
    "load_config",
    "default_config",
]

logger = get_logger("config")


def _parse(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yml", ".yaml"):
        data: Any = yaml.safe_load(text) or {}
    else:
        data = tomllib.loads(text)
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a table/mapping")
    return data


def load_config(root: Optional[Path] = None) -> ProjectConfig:
    """
    Locate, parse and validate the config file for *root*.

    Raises ConfigError when no file exists or it cannot be parsed/validated.
    """
    root = env.resolve_project_root(root)
    path = env.find_config_file(root)
    if path is None:
        raise ConfigError(
            f"No configuration found in {root} "
            f"(expected one of: {', '.join(env.CONFIG_CANDIDATES)})"
        )

    try:
        data = _parse(path)
    except OSError as exc:
        raise ConfigError(f"Cannot read {path}: {exc}") from exc
    except (tomllib.TOMLDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot parse {path}: {exc}") from exc

    try:
        config = ProjectConfig.model_validate({**data, "root": root, "source": path})
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise ConfigError(f"Invalid configuration in {path}: {problems}") from exc

    logger.debug("Loaded config %s for project %r", path, config.name)
    return config


def default_config(root: Optional[Path] = None) -> ProjectConfig:
    """Config used when a file is optional (e.g. saving work state)."""
    return ProjectConfig(root=env.resolve_project_root(root))
