"""
Material handling.

Material name parsing and the per-material motion table consulted by the
toolchange unload and change phases.
"""

from wipe_tower.materials.profiles import (
    CoolingPulse,
    EdgeOffset,
    MaterialType,
    MotionProfile,
    RamSegment,
    WipeShape,
    material_label,
    motion_profile,
    parse_material,
)

__all__ = [
    "CoolingPulse",
    "EdgeOffset",
    "MaterialType",
    "MotionProfile",
    "RamSegment",
    "WipeShape",
    "material_label",
    "motion_profile",
    "parse_material",
]
