"""
Wipe tower geometry.

Points and axis-aligned boxes used to place purge motions inside the
tower's reserved bands.
"""

from wipe_tower.geometry.box import Box, Point

__all__ = ["Box", "Point"]
