"""Configuration loader for the wipe tower.

Loads and validates ``tower.yaml`` into typed, frozen dataclasses.  The
process-wide settings (tower placement, line width, retraction, Z-hop,
flow) are supplied once per print; the per-layer state (Z, first-layer
flag, number of color changes) is updated by the caller as the print
advances.

Feed rates in this package are G-code ``F`` values (mm/min) and are
hardcoded in the toolchange phases; they are part of the tuned purge
process, not machine configuration.

Usage::

    from wipe_tower.configs.loader import load_config
    cfg = load_config()                      # default path
    cfg = load_config("/custom/tower.yaml")  # explicit path
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from wipe_tower.geometry.box import Point
from wipe_tower.utils.fs import load_yaml

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(Exception):
    """Raised when configuration validation fails."""

    pass


# ---------------------------------------------------------------------------
# Dataclasses -- mirror the YAML structure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TowerConfig:
    """Process-wide wipe tower settings.  All lengths in mm.

    Parameters
    ----------
    origin : Point
        Left-down corner of the tower on the bed.
    width : float
        Tower extent in X.
    wipe_area : float
        Height in Y of the band reserved for one toolchange.
    perimeter_width : float
        Extrusion line width; base unit of most offsets.
    retract : float
        Base retraction length of filament.
    z_hop : float
        Nozzle lift for travels over the tower.
    extrusion_flow : float
        Filament mm per mm of XY travel at nominal flow.
    """

    origin: Point
    width: float
    wipe_area: float
    perimeter_width: float
    retract: float
    z_hop: float
    extrusion_flow: float


@dataclass(frozen=True)
class LayerState:
    """Per-layer state of the tower.

    Parameters
    ----------
    z : float
        Print Z of the current layer; base for Z-hops.
    first_layer : bool
        ``True`` while printing the first layer (slower, more flow).
    color_changes : int
        Number of toolchange bands on the tower; the used tower height is
        ``wipe_area * color_changes``.
    """

    z: float = 0.0
    first_layer: bool = False
    color_changes: int = 1


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


def _require(data: dict[str, Any], key: str, section: str) -> Any:
    if key not in data:
        raise ConfigError(f"'{section}' is missing '{key}' field")
    return data[key]


def _parse_origin(raw: Any) -> Point:
    if isinstance(raw, dict):
        return Point(float(raw.get("x", 0.0)), float(raw.get("y", 0.0)))
    if isinstance(raw, (list, tuple)) and len(raw) == 2:
        return Point(float(raw[0]), float(raw[1]))
    raise ConfigError(
        f"tower.origin must be a mapping with x/y or a 2-item list, got {raw!r}"
    )


def _parse_tower(tower: dict[str, Any], extrusion: dict[str, Any]) -> TowerConfig:
    return TowerConfig(
        origin=_parse_origin(tower.get("origin", (0.0, 0.0))),
        width=float(_require(tower, "width_mm", "tower")),
        wipe_area=float(_require(tower, "wipe_area_mm", "tower")),
        perimeter_width=float(_require(extrusion, "perimeter_width_mm", "extrusion")),
        retract=float(_require(extrusion, "retract_mm", "extrusion")),
        z_hop=float(_require(extrusion, "z_hop_mm", "extrusion")),
        extrusion_flow=float(_require(extrusion, "flow", "extrusion")),
    )


def _validate_config(cfg: TowerConfig) -> None:
    """Cross-field checks that the YAML structure cannot express."""
    for name in ("width", "wipe_area", "perimeter_width", "extrusion_flow"):
        value = getattr(cfg, name)
        if value <= 0:
            raise ConfigError(f"{name} must be > 0, got {value}")
    if cfg.retract < 0:
        raise ConfigError(f"retract must be >= 0, got {cfg.retract}")
    if cfg.z_hop < 0:
        raise ConfigError(f"z_hop must be >= 0, got {cfg.z_hop}")
    if cfg.wipe_area < cfg.perimeter_width:
        logger.warning(
            "wipe_area %.3f mm is narrower than one perimeter (%.3f mm); "
            "toolchange patterns will overflow their band",
            cfg.wipe_area,
            cfg.perimeter_width,
        )
    if cfg.width < cfg.perimeter_width * 12:
        logger.warning(
            "Tower width %.3f mm leaves no room for the idle-layer zig-zags",
            cfg.width,
        )


def validate_layer(layer: LayerState) -> None:
    """Reject layer states that cannot describe a printed tower."""
    if layer.color_changes < 0:
        raise ConfigError(
            f"color_changes must be >= 0, got {layer.color_changes}"
        )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def config_from_dict(data: dict[str, Any]) -> TowerConfig:
    """Build and validate a ``TowerConfig`` from parsed YAML data.

    Raises
    ------
    ConfigError
        If a section or field is missing or a value is out of range.
    """
    if "tower" not in data:
        raise ConfigError("Missing 'tower' section")
    if "extrusion" not in data:
        raise ConfigError("Missing 'extrusion' section")
    try:
        cfg = _parse_tower(data["tower"], data["extrusion"])
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid tower configuration: {e}") from e
    _validate_config(cfg)
    return cfg


def load_config(path: str | Path | None = None) -> TowerConfig:
    """Load and validate the wipe tower configuration.

    Parameters
    ----------
    path : str | Path | None
        Path to ``tower.yaml``.  ``None`` loads the default shipped with
        the package.

    Returns
    -------
    TowerConfig
        Validated, immutable configuration.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ConfigError
        If validation fails.
    """
    if path is None:
        path = Path(__file__).parent / "tower.yaml"
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    logger.info("Loading configuration from %s", path)

    data: dict[str, Any] = load_yaml(path)
    if not data:
        raise ConfigError(f"Empty configuration file: {path}")

    cfg = config_from_dict(data)
    logger.info("Configuration loaded successfully")
    return cfg
