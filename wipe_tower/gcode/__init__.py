"""
G-code emission module.

Stateful writer that tracks position, feed rate and extrusion flow and
emits only the fields of each move that change.
"""

from wipe_tower.gcode.writer import GCodeWriter

__all__ = ["GCodeWriter"]
