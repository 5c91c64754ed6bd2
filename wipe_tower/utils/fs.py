"""YAML loading for tower configuration and toolchange plans.

All paths use pathlib.Path for cross-platform compatibility.

Usage:
    from wipe_tower.utils import fs
    data = fs.load_yaml("tower.yaml")
"""

from pathlib import Path
from typing import Any, Dict, Union

import yaml


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """Load YAML file safely.

    Parameters
    ----------
    path : Union[str, Path]
        YAML file path

    Returns
    -------
    Dict[str, Any]
        Parsed YAML content

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    yaml.YAMLError
        If YAML parsing fails

    Notes
    -----
    Uses safe_load to prevent arbitrary code execution.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"YAML file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Failed to parse YAML file {path}: {e}") from e


def dump_yaml(data: Dict[str, Any]) -> str:
    """Serialize ``data`` to a YAML string with stable key order."""
    return yaml.safe_dump(data, sort_keys=False, default_flow_style=False)
