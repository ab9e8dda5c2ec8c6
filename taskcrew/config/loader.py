"""Configuration loading and management."""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from taskcrew.config.models import TaskCrewConfig
from taskcrew.core.exceptions import ConfigurationError

CONFIG_DIR_NAME = ".taskcrew"


def load_config(
    project_config_path: Optional[Path] = None,
    global_config_path: Optional[Path] = None,
) -> TaskCrewConfig:
    """Load taskcrew configuration.

    Layers, later ones overriding earlier ones key by key:
    1. Defaults built into the models
    2. Global configuration ($XDG_CONFIG_HOME/taskcrew/config.yaml)
    3. Project configuration (.taskcrew/config.yaml in cwd or a parent)

    Args:
        project_config_path: Explicit path to project config file
        global_config_path: Explicit path to global config file

    Returns:
        Merged and validated configuration

    Raises:
        ConfigurationError: If configuration is invalid or cannot be loaded
    """
    config_data: Dict[str, Any] = {}

    for path in (
        global_config_path or _get_global_config_path(),
        project_config_path or _get_project_config_path(),
    ):
        if path and path.exists():
            config_data = _merge_config(config_data, _load_yaml_file(path))

    try:
        return TaskCrewConfig(**config_data).resolve_env_vars()
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed: {e}") from e


def save_config(config: TaskCrewConfig, config_path: Path) -> None:
    """Save configuration to a YAML file.

    Raises:
        ConfigurationError: If configuration cannot be saved
    """
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(
                config.model_dump(exclude_none=True, mode="json"),
                f,
                default_flow_style=False,
                sort_keys=False,
                indent=2,
                allow_unicode=True,
            )
    except OSError as e:
        raise ConfigurationError(
            f"Failed to save configuration to {config_path}: {e}"
        ) from e


def validate_config_file(config_path: Path) -> List[str]:
    """Validate a configuration file and return its error messages."""
    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        TaskCrewConfig(**_load_yaml_file(config_path))
    except ValidationError as e:
        return [
            f"{'.'.join(str(loc) for loc in error['loc'])}: {error['msg']}"
            for error in e.errors()
        ]
    return []


def _get_global_config_path() -> Path:
    xdg_config = os.getenv("XDG_CONFIG_HOME")
    base = Path(xdg_config) if xdg_config else Path.home() / ".config"
    return base / "taskcrew" / "config.yaml"


def _get_project_config_path() -> Optional[Path]:
    """Find .taskcrew/config.yaml in the current directory or its parents."""
    current = Path.cwd()

    for path in [current] + list(current.parents):
        config_dir = path / CONFIG_DIR_NAME
        if config_dir.is_dir():
            return config_dir / "config.yaml"

    return None


def _load_yaml_file(file_path: Path) -> Dict[str, Any]:
    """Load and parse a YAML mapping.

    Raises:
        ConfigurationError: If file cannot be read or is not a mapping
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {file_path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Failed to read {file_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration file must contain a YAML object, got {type(data).__name__}"
        )
    return data


def _merge_config(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge two configuration dictionaries recursively."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge_config(result[key], value)
        else:
            result[key] = value

    return result
