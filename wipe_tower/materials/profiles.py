"""Material classes and their toolchange motion profiles.

The ramming, cooling and speed-override values below are empirically
tuned for a single-extruder multi-material printer.  They are physical
process parameters: change them only together with print tests.

Only PVA and SCAFF have their own ramming/cooling sequence.  FLEX shares
the default sequence but prints slower after a change.  Every other
material, ``INVALID`` included, uses the default profile.

Ramming endpoints are given relative to the unload lane of the cleaning
box (``xl`` .. ``xr``) as an edge plus a signed offset in perimeter
widths, e.g. ``EdgeOffset("left", 2)`` is ``xl + 2 * perimeter_width``.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, replace
from typing import Literal

logger = logging.getLogger(__name__)


class MaterialType(enum.Enum):
    """Filament material classes known to the wipe tower."""

    PLA = "PLA"
    ABS = "ABS"
    PET = "PET"
    HIPS = "HIPS"
    FLEX = "FLEX"
    SCAFF = "SCAFF"
    EDGE = "EDGE"
    NGEN = "NGEN"
    PVA = "PVA"
    INVALID = "INVALID"


class WipeShape(enum.IntEnum):
    """Vertical orientation of a toolchange pattern.

    The value is the sign applied to every Y increment, so ``REVERSED``
    mirrors the pattern top-to-bottom.
    """

    NORMAL = 1
    REVERSED = -1


def parse_material(name: str) -> MaterialType:
    """Map a material name to its class, ignoring case.

    Parameters
    ----------
    name : str
        Material name as it appears in the filament settings
        (``"pla"``, ``"PVA"``, ...).

    Returns
    -------
    MaterialType
        Matching class, or ``MaterialType.INVALID`` when the name is not
        recognised.  Callers must check for ``INVALID``.
    """
    try:
        return MaterialType(name.upper())
    except ValueError:
        logger.debug("Unknown material name %r", name)
        return MaterialType.INVALID


# ---------------------------------------------------------------------------
# Motion profile records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class EdgeOffset:
    """X coordinate expressed relative to one edge of a lane."""

    side: Literal["left", "right"]
    widths: float

    def resolve(self, xl: float, xr: float, perimeter_width: float) -> float:
        base = xl if self.side == "left" else xr
        return base + self.widths * perimeter_width


@dataclass(frozen=True, slots=True)
class RamSegment:
    """One horizontal ramming pass.

    Parameters
    ----------
    start, end : EdgeOffset
        Pass endpoints.
    dy_factor : float
        Y increment before the pass, in units of ``shape * perimeter_width``.
    e : float
        Filament pushed during the pass (mm).
    feedrate : float
        Travel feed rate into the pass start (mm/min).
    """

    start: EdgeOffset
    end: EdgeOffset
    dy_factor: float
    e: float
    feedrate: float


@dataclass(frozen=True, slots=True)
class CoolingPulse:
    """Push/pull of the filament tip inside the cooling tube."""

    e_out: float
    e_in: float
    feedrate: float


@dataclass(frozen=True, slots=True)
class MotionProfile:
    """Material-specific parameters for the unload and change phases."""

    ramming: tuple[RamSegment, ...]
    cooling: tuple[CoolingPulse, ...]
    speed_override: int


# ---------------------------------------------------------------------------
# Profile table
# ---------------------------------------------------------------------------

_L = "left"
_R = "right"

DEFAULT_PROFILE = MotionProfile(
    ramming=(
        RamSegment(EdgeOffset(_L, 2), EdgeOffset(_R, -1), 1.2, 1.6, 4000),
        RamSegment(EdgeOffset(_R, -1), EdgeOffset(_L, 1), 1.2, 1.65, 4600),
        RamSegment(EdgeOffset(_L, 2), EdgeOffset(_R, -2), 1.2, 1.74, 5200),
    ),
    cooling=(
        CoolingPulse(3, -5, 1600),
        CoolingPulse(5, -5, 2000),
        CoolingPulse(5, -5, 2400),
        CoolingPulse(5, -3, 2400),
    ),
    speed_override=100,
)

PVA_PROFILE = MotionProfile(
    ramming=(
        RamSegment(EdgeOffset(_L, 2), EdgeOffset(_R, -1), 1.2, 3, 4000),
        RamSegment(EdgeOffset(_R, -1), EdgeOffset(_L, 1), 1.5, 3, 4500),
        RamSegment(EdgeOffset(_L, 2), EdgeOffset(_R, -2), 1.5, 3, 4800),
        RamSegment(EdgeOffset(_R, -1), EdgeOffset(_L, 1), 1.5, 3, 5000),
    ),
    cooling=(
        CoolingPulse(3, -5, 1600),
        CoolingPulse(5, -5, 2000),
        CoolingPulse(5, -5, 2200),
        CoolingPulse(5, -5, 2400),
        CoolingPulse(5, -5, 2400),
        CoolingPulse(5, -5, 2400),
    ),
    speed_override=80,
)

SCAFF_PROFILE = MotionProfile(
    ramming=(
        RamSegment(EdgeOffset(_L, 2), EdgeOffset(_R, -1), 3.0, 3, 4000),
        RamSegment(EdgeOffset(_R, -1), EdgeOffset(_L, 1), 3.0, 4, 4600),
        RamSegment(EdgeOffset(_L, 2), EdgeOffset(_R, -2), 3.0, 4.5, 5200),
    ),
    cooling=(
        CoolingPulse(3, -5, 1600),
        CoolingPulse(5, -5, 2000),
        CoolingPulse(5, -5, 2200),
        CoolingPulse(5, -5, 2200),
        CoolingPulse(5, -5, 2400),
    ),
    speed_override=35,
)

MOTION_PROFILES: dict[MaterialType, MotionProfile] = {
    MaterialType.PVA: PVA_PROFILE,
    MaterialType.SCAFF: SCAFF_PROFILE,
    MaterialType.FLEX: replace(DEFAULT_PROFILE, speed_override=35),
}

_MATERIAL_LABELS: dict[MaterialType, str] = {
    MaterialType.PVA: "#8 (PVA)",
    MaterialType.SCAFF: "#5 (Scaffold)",
    MaterialType.FLEX: "#4 (Flex)",
}


def motion_profile(material: MaterialType) -> MotionProfile:
    """Return the motion profile for ``material`` (default when unlisted)."""
    return MOTION_PROFILES.get(material, DEFAULT_PROFILE)


def material_label(material: MaterialType) -> str:
    """Return the label written into ``; material :`` comments."""
    return _MATERIAL_LABELS.get(material, "DEFAULT (PLA)")
