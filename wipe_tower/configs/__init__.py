"""
Wipe tower configuration.

Loads ``tower.yaml`` into frozen dataclasses and validates it.
"""

from wipe_tower.configs.loader import (
    ConfigError,
    LayerState,
    TowerConfig,
    config_from_dict,
    load_config,
)

__all__ = [
    "ConfigError",
    "LayerState",
    "TowerConfig",
    "config_from_dict",
    "load_config",
]
