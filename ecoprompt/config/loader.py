"""
Configuration management and loading.

Handles application settings read from a YAML file and environment variables.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ecoprompt.core.modes import DEFAULT_MODE, DEFAULT_THEME, Mode, Settings
from ecoprompt.core.reference import DEFAULT_REFERENCE_PATH, DEFAULT_TIMEOUT_SECONDS
from ecoprompt.storage.db import DEFAULT_DB_PATH

CONFIG_ENV_VAR = "ECOPROMPT_CONFIG"
DEFAULT_CONFIG_PATH = "ecoprompt.yaml"


@dataclass(frozen=True)
class StorageConfig:
    """Where the key-value store lives."""
    path: str = DEFAULT_DB_PATH


@dataclass(frozen=True)
class ReferenceConfig:
    """Where the energy reference is loaded from."""
    source: str = str(DEFAULT_REFERENCE_PATH)
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    def __post_init__(self):
        """Validate timeout is positive."""
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")


@dataclass(frozen=True)
class AppConfig:
    """Complete application configuration."""
    storage: StorageConfig = field(default_factory=StorageConfig)
    reference: ReferenceConfig = field(default_factory=ReferenceConfig)
    defaults: Settings = field(default_factory=Settings)


def resolve_config_path(path: Optional[str] = None) -> Path:
    """Pick the config file: explicit path, then $ECOPROMPT_CONFIG, then ./ecoprompt.yaml."""
    return Path(path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH)


def load_app_config(path: Optional[str] = None) -> AppConfig:
    """Load and validate application configuration from a YAML file.

    A missing file at the default location yields the built-in defaults;
    a missing file that was asked for explicitly is an error.

    Args:
        path: Optional path to YAML configuration file

    Returns:
        Validated AppConfig object

    Raises:
        FileNotFoundError: If an explicitly given config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = resolve_config_path(path)
    if not config_path.exists():
        if path is not None:
            raise FileNotFoundError(f"Config file not found: {path}")
        return AppConfig()

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {config_path}: {e}")

    if not raw_config:
        return AppConfig()
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    allowed_top_keys = {'storage', 'reference', 'defaults'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    return AppConfig(
        storage=_parse_storage(_section(raw_config, 'storage')),
        reference=_parse_reference(_section(raw_config, 'reference')),
        defaults=_parse_defaults(_section(raw_config, 'defaults')),
    )


def _section(raw_config: Dict[str, Any], name: str) -> Dict[str, Any]:
    data = raw_config.get(name) or {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")
    return data


def _check_keys(data: Dict[str, Any], allowed: set, path: str) -> None:
    unknown_keys = set(data.keys()) - allowed
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")


def _parse_storage(data: Dict[str, Any]) -> StorageConfig:
    _check_keys(data, {'path'}, 'storage')
    db_path = data.get('path', DEFAULT_DB_PATH)
    if not isinstance(db_path, str) or not db_path.strip():
        raise ValueError("'path' in storage must be a non-empty string")
    return StorageConfig(path=db_path)


def _parse_reference(data: Dict[str, Any]) -> ReferenceConfig:
    _check_keys(data, {'source', 'timeout_seconds'}, 'reference')

    source = data.get('source', str(DEFAULT_REFERENCE_PATH))
    if not isinstance(source, str) or not source.strip():
        raise ValueError("'source' in reference must be a non-empty string")

    timeout = data.get('timeout_seconds', DEFAULT_TIMEOUT_SECONDS)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ValueError("'timeout_seconds' in reference must be > 0")

    return ReferenceConfig(source=source, timeout_seconds=float(timeout))


def _parse_defaults(data: Dict[str, Any]) -> Settings:
    """Parse and validate default settings.

    Args:
        data: Defaults section data

    Returns:
        Validated Settings used wherever stored settings are absent

    Raises:
        ValueError: If a value is invalid
    """
    _check_keys(data, {'mode', 'theme', 'grid_intensity'}, 'defaults')

    mode = data.get('mode', DEFAULT_MODE)
    if not isinstance(mode, str):
        raise ValueError("'mode' in defaults must be a string")
    try:
        mode = Mode(mode.lower()).value
    except ValueError:
        valid_modes = [m.value for m in Mode]
        raise ValueError(f"'mode' in defaults must be one of: {valid_modes}")

    theme = data.get('theme', DEFAULT_THEME)
    if not isinstance(theme, str) or not theme.strip():
        raise ValueError("'theme' in defaults must be a non-empty string")

    grid = data.get('grid_intensity')
    if grid is not None:
        if isinstance(grid, bool) or not isinstance(grid, (int, float)) or grid <= 0:
            raise ValueError("'grid_intensity' in defaults must be > 0")
        grid = float(grid)

    return Settings(mode=mode, theme=theme, grid_intensity=grid)
