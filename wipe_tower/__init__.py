"""
Wipe Tower Package.

G-code generator for the wipe tower of a single-extruder multi-material
printer: purges and primes the nozzle at every toolchange and keeps the
tower growing on layers without one.

Subpackages:
    geometry: Points and axis-aligned boxes
    gcode: State-tracking G-code writer
    materials: Material parsing and motion profiles
    toolchange: Five-phase toolchange sequence
    layout: Color bands, first-layer brim, idle-layer grid
    configs: Tower configuration loading and validation
    utils: YAML, logging, plan schemas, dry-run interpreter
"""

from wipe_tower.materials.profiles import MaterialType, WipeShape, parse_material
from wipe_tower.tower import WipeTower

__all__ = [
    "MaterialType",
    "WipeShape",
    "WipeTower",
    "parse_material",
    "geometry",
    "gcode",
    "materials",
    "toolchange",
    "layout",
    "configs",
    "utils",
]
