"""
Wipe tower layout and scaffolding.

Per-toolchange bands, the first-layer brim and the idle-layer grid.
"""

from wipe_tower.layout.scaffolding import box_for_color, first_layer_brim, idle_layer_fill

__all__ = ["box_for_color", "first_layer_brim", "idle_layer_fill"]
