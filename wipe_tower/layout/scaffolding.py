"""Wipe tower layout -- color bands, first-layer brim and idle-layer fill.

The tower is split along +Y into bands of height ``wipe_area``, one per
toolchange.  On layers where a band sees no toolchange, it is still
printed as an "empty grid" so the tower keeps growing evenly.

Band ``n`` starts half a perimeter below ``origin.y + n * wipe_area`` so
neighbouring bands overlap by half a line.
"""

from __future__ import annotations

import logging

import numpy as np

from wipe_tower.configs.loader import LayerState, TowerConfig
from wipe_tower.gcode.writer import GCodeWriter
from wipe_tower.geometry.box import Box, Point

logger = logging.getLogger(__name__)

# Random +X shift of the idle-fill start corner (mm), inclusive bounds.
SEAM_JITTER_MIN = 5
SEAM_JITTER_MAX = 20

# Extra flow of the brim loops.
BRIM_FLOW_FACTOR = 1.1


def box_for_color(cfg: TowerConfig, index: int) -> Box:
    """Band reserved for the ``index``-th toolchange of a layer.

    Examples
    --------
    Tower at (0, 0), width 60, band 10, perimeter 0.4: ``index=0`` spans
    x in [0, 60] and y in [-0.2, 9.8].
    """
    origin = cfg.origin + Point(0.0, cfg.wipe_area * index - cfg.perimeter_width / 2)
    return Box.from_origin(origin, cfg.width, cfg.wipe_area)


def _fill_region(
    cfg: TowerConfig, order: int, total: int, first_layer_offset: float,
) -> Box:
    """From the bottom of band ``order`` to one line above band ``total``'s seam."""
    bottom = box_for_color(cfg, order).ld.y + first_layer_offset
    top = box_for_color(cfg, total).ld.y + cfg.perimeter_width
    origin = Point(cfg.origin.x, bottom)
    return Box.from_origin(origin, cfg.width, top - bottom)


def first_layer_brim(
    cfg: TowerConfig,
    layer: LayerState,
    side_only: bool = False,
    y_offset: float = 0.0,
) -> str:
    """G-code of the first-layer brim around the tower.

    Parameters
    ----------
    cfg : TowerConfig
        Tower settings.
    layer : LayerState
        Current layer; ``color_changes`` sets the brim height.
    side_only : bool
        ``True`` strokes only the left and right edges (4 lines each),
        ``False`` prints 4 full loops growing outward.
    y_offset : float
        Side-only mode: inset of the strokes from both tower ends (mm).
    """
    pw = cfg.perimeter_width
    tower = Box.from_origin(
        cfg.origin, cfg.width, cfg.wipe_area * layer.color_changes - pw / 2
    )

    writer = GCodeWriter(z=layer.z, extrusion_flow=cfg.extrusion_flow * BRIM_FLOW_FACTOR)
    writer.append(";-------------------------------------\n"
                  "; CP WIPE TOWER FIRST LAYER BRIM START\n")

    # Prime 10 lines left of the tower's left edge.
    prime_offset = Point(pw * 10, 0)
    (writer
        .z_hop(cfg.z_hop, 7200)
        .travel_to(tower.lu - prime_offset, 6000)
        .z_hop(0, 7200)
        .move_explicit_to(tower.ld - prime_offset, cfg.retract, 2400)
        .feedrate(2100))

    if side_only:
        for i in range(4):
            x_offset = i * pw
            writer.travel_to(tower.ld + Point(-x_offset, y_offset))
            writer.extrude_to(tower.lu + Point(-x_offset, -y_offset))
        writer.travel_to(tower.rd + Point(4 * pw, y_offset), 7000).feedrate(2100)
        for i in range(4):
            x_offset = i * pw
            writer.travel_to(tower.rd + Point(x_offset, y_offset))
            writer.extrude_to(tower.ru + Point(x_offset, -y_offset))
    else:
        box = Box(
            ld=tower.ld + Point(-pw / 2, 0),
            lu=tower.lu + Point(-pw / 2, pw),
            rd=tower.rd + Point(pw / 2, 0),
            ru=tower.ru + Point(pw / 2, pw),
        )
        for _ in range(4):
            (writer
                .travel_to(box.ld)
                .extrude_to(box.lu).extrude_to(box.ru)
                .extrude_to(box.rd).extrude_to(box.ld))
            box.expand(pw)

    # Wipe along the front edge.
    (writer
        .travel_to(tower.ld, 7000)
        .travel_to(tower.rd)
        .travel_to(tower.ld)
        .append("; CP WIPE TOWER FIRST LAYER BRIM END\n"
                ";-----------------------------------\n"))

    logger.debug("First layer brim (side_only=%s) at z=%.3f", side_only, layer.z)
    return writer.gcode


def idle_layer_fill(
    cfg: TowerConfig,
    layer: LayerState,
    order: int,
    total: int,
    layer_index: int,
    after_toolchange: bool,
    first_layer_offset: float = 0.0,
    rng: np.random.RandomState | None = None,
    start: Point | None = None,
) -> str:
    """G-code of the empty grid filling bands ``order`` .. ``total``.

    Parameters
    ----------
    cfg : TowerConfig
        Tower settings.
    layer : LayerState
        Current layer; the first layer prints at half speed.
    order : int
        First band without a toolchange on this layer.
    total : int
        Number of bands on the tower; the grid closes at its seam.
    layer_index : int
        Print layer number, written to the header comment.
    after_toolchange : bool
        ``True`` when the nozzle is already on the tower.  Otherwise the
        grid starts with a retracted, Z-hopped travel.
    first_layer_offset : float
        Shift of the grid's bottom edge (mm).
    rng : np.random.RandomState, optional
        Source of the start-point jitter.  Seed it for reproducible
        output; ``None`` uses a fresh unseeded generator.
    start : Point, optional
        Nozzle position left by the preceding toolchange.  When the grid
        follows a toolchange without a known position, the nozzle first
        travels to the grid corner.
    """
    if rng is None:
        rng = np.random.RandomState()

    pw = cfg.perimeter_width
    speed_factor = 0.5 if layer.first_layer else 1.0
    region = _fill_region(cfg, order, total, first_layer_offset)

    writer = GCodeWriter(z=layer.z, extrusion_flow=cfg.extrusion_flow, start=start)
    (writer
        .append(";--------------------\n"
                "; CP EMPTY GRID START\n")
        .comment_with_value(" layer #", layer_index))

    if after_toolchange and writer.pos is None:
        writer.travel_to(region.ld, 7000)

    if not after_toolchange:
        # Shift the start in +X so seams do not line up layer over layer.
        jitter = int(rng.randint(SEAM_JITTER_MIN, SEAM_JITTER_MAX + 1))
        (writer
            .retract(cfg.retract * 1.5, 3600)
            .z_hop(cfg.z_hop, 7200)
            .travel(region.ld.x + jitter, region.ld.y, 7000)
            .z_hop(0, 7200)
            .move_explicit_to(region.ld, cfg.retract * 1.5, 3600))

    # Outer loop, then the loop inset by half a line.
    box = region.copy()
    (writer
        .extrude_to(box.lu, 2400 * speed_factor)
        .extrude_to(box.ru)
        .extrude_to(box.rd)
        .extrude_to(box.ld + Point(pw / 2, 0)))

    box.expand(-pw / 2)
    (writer
        .extrude_to(box.lu, 3200 * speed_factor)
        .extrude_to(box.ru)
        .extrude_to(box.rd)
        .extrude_to(box.ld + Point(pw / 2, 0))
        .extrude_to(box.ld + Point(pw / 2, pw / 2)))

    # Left connectors.
    (writer
        .extrude_to(region.ld + Point(pw * 3, pw), 2900 * speed_factor)
        .extrude_to(region.lu + Point(pw * 3, -pw))
        .extrude_to(region.lu + Point(pw * 6, -pw))
        .extrude_to(region.ld + Point(pw * 6, pw)))

    if region.height > 4:
        writer.feedrate(3200 * speed_factor)
        step = (cfg.width - pw * 12.0) / 12.0
        low = region.ld.y
        high = region.lu.y
        for _ in range(3):
            writer.extrude(writer.x + step, low + pw * 8)
            writer.extrude(writer.x, high - pw * 8)
            writer.extrude(writer.x + step, high - pw)
            writer.extrude(writer.x + step, high - pw * 8)
            writer.extrude(writer.x, low + pw * 8)
            writer.extrude(writer.x + step, low + pw)

    # Right connectors, then wipe along the front edge.
    (writer
        .extrude_to(region.ru + Point(-pw * 6, -pw), 2900 * speed_factor)
        .extrude_to(region.ru + Point(-pw * 3, -pw))
        .extrude_to(region.rd + Point(-pw * 3, pw))
        .extrude_to(region.rd + Point(-pw, pw))
        .travel_to(region.ld + Point(pw, pw / 2), 7200)
        .travel_to(region.rd + Point(-pw, pw / 2))
        .append("; CP EMPTY GRID END\n"
                ";------------------\n\n\n\n\n\n\n"))

    return writer.gcode
