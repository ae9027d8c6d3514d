"""Configuration management for routecache.

This package provides centralized configuration loading from environment
variables and routecache.yaml with validation and type safety.
"""

# YAML configuration loaders
from routecache.core.config.loaders import (
    load_cache_config,
    load_strategy_config,
    load_tracked_pairs,
)
from routecache.core.config.settings import Settings, settings

# Utility functions
from routecache.core.config.utils import (
    find_config_file,
    read_yaml_section,
)

__all__ = [
    # Settings
    "Settings",
    "settings",
    # Loaders
    "load_cache_config",
    "load_strategy_config",
    "load_tracked_pairs",
    # Utils
    "find_config_file",
    "read_yaml_section",
]
