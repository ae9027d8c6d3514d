"""Utility functions for configuration loading.

These helpers are used by the loaders for locating and reading the YAML
configuration file.
"""

import logging
from pathlib import Path
from typing import Any

import yaml

from routecache.core.defaults import DEFAULT_CONFIG_FILENAME
from routecache.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def find_config_file(path: str | Path | None = None, strict: bool = False) -> Path | None:
    """Locate the routecache YAML file.

    Args:
        path: Explicit path. When given, it is the only candidate.
        strict: Raise instead of returning None when an explicit path is missing

    Returns:
        First existing candidate, or None

    Raises:
        ConfigurationError: If strict and the explicit path does not exist
    """
    if path is not None:
        candidate = Path(path)
        if candidate.exists():
            return candidate
        if strict:
            raise ConfigurationError(
                f"Config file not found: {candidate}", details={"path": str(candidate)}
            )
        return None

    from routecache.core.config.settings import settings

    search_paths = [
        Path(settings.strategy_config_path),  # Configured location (priority)
        Path.cwd() / DEFAULT_CONFIG_FILENAME,  # Current directory
    ]
    for candidate in search_paths:
        if candidate.exists():
            return candidate
    return None


def read_yaml_section(section: str, path: str | Path | None = None, strict: bool = False) -> Any:
    """Read one top-level section of the YAML config.

    Returns None when the file or the section is missing. A file that
    cannot be read or parsed also gives None, unless ``strict`` is set.

    Raises:
        ConfigurationError: If strict and the file is missing (explicit
            path only), unreadable, unparseable or not a mapping
    """
    config_path = find_config_file(path, strict=strict)
    if config_path is None:
        return None

    try:
        with open(config_path) as f:
            config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        if strict:
            raise ConfigurationError(
                f"Failed to read {config_path}: {e}", details={"path": str(config_path)}
            ) from e
        logger.warning(f"Failed to read {config_path}: {e}")
        return None

    if config is None:
        return None
    if not isinstance(config, dict):
        if strict:
            raise ConfigurationError(
                f"{config_path} must hold a mapping of sections",
                details={"path": str(config_path), "type": type(config).__name__},
            )
        return None
    return config.get(section)
