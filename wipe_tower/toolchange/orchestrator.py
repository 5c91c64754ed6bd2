"""Toolchange orchestrator -- one full purge sequence per call.

Runs the preamble (Z-hop, travel to the band, motor current up), the
UNLOAD phase and, unless the change is the last one in the file, the
CHANGE, LOAD, WIPE and DONE phases, then the trailer (motor current
back to normal, extruder counter reset).

Each call builds its own ``GCodeWriter``; nothing is shared between
calls.  The returned position is where the nozzle is left and is the
caller's anchor for the next toolchange or for resuming the print.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import NamedTuple

from wipe_tower.configs.loader import LayerState, TowerConfig
from wipe_tower.gcode.writer import GCodeWriter
from wipe_tower.geometry.box import Box, Point
from wipe_tower.materials.profiles import MaterialType, WipeShape
from wipe_tower.toolchange import phases
from wipe_tower.utils.logging_config import log_context

logger = logging.getLogger(__name__)


class ToolchangeError(Exception):
    """Raised when the wipe of a toolchange could not terminate."""

    pass


@dataclass(frozen=True, slots=True)
class ToolchangeRequest:
    """Parameters of one toolchange event.

    Parameters
    ----------
    tool : int
        Tool index selected after the change.
    current_material, new_material : MaterialType
        Outgoing and incoming filament.
    space_available : float
        Height of the band reserved for this change (mm).  A band shorter
        than one perimeter is still laid out; the pattern overflows it.
    temperature : int
        New hotend target set during the unload; 0 keeps the current one.
    shape : WipeShape
        Vertical orientation of the pattern inside the band.
    count : int
        Sequence number of the change, written to the header comment.
    wipe_start_y : float
        Band start relative to the tower origin (mm).
    last_in_file : bool
        Only unload; no filament follows.
    color_init : bool
        First load of this color (primes 3 lines instead of 5).
    """

    tool: int
    current_material: MaterialType
    new_material: MaterialType
    space_available: float
    temperature: int = 0
    shape: WipeShape = WipeShape.NORMAL
    count: int = 0
    wipe_start_y: float = 0.0
    last_in_file: bool = False
    color_init: bool = False


class ToolchangeResult(NamedTuple):
    """G-code of one toolchange and the nozzle position it ends at."""

    gcode: str
    position: Point


def cleaning_box(cfg: TowerConfig, request: ToolchangeRequest) -> Box:
    """Box reserved for ``request``; its top keeps half a line of overlap."""
    origin = cfg.origin + Point(0.0, request.wipe_start_y)
    return Box.from_origin(
        origin, cfg.width, request.space_available - cfg.perimeter_width / 2
    )


def _entry_point(cfg: TowerConfig, box: Box, shape: WipeShape) -> Point:
    pw = cfg.perimeter_width
    corner = box.ld if shape == WipeShape.NORMAL else box.lu
    return corner + Point(pw, shape * pw)


def _check_request(cfg: TowerConfig, request: ToolchangeRequest) -> None:
    if cfg.perimeter_width <= 0:
        raise ToolchangeError(
            f"perimeter_width must be > 0 for the wipe to terminate, "
            f"got {cfg.perimeter_width}"
        )
    if request.space_available < cfg.perimeter_width:
        logger.warning(
            "Band of %.3f mm is narrower than one perimeter; the wipe will "
            "overflow it",
            request.space_available,
        )
    for material in (request.current_material, request.new_material):
        if material is MaterialType.INVALID:
            logger.warning("INVALID material, using the default motion profile")


def toolchange(
    cfg: TowerConfig,
    layer: LayerState,
    request: ToolchangeRequest,
) -> ToolchangeResult:
    """Generate the G-code of one toolchange on the wipe tower.

    Parameters
    ----------
    cfg : TowerConfig
        Process-wide tower settings.
    layer : LayerState
        Current layer (Z, first-layer flag).
    request : ToolchangeRequest
        The change to perform.

    Returns
    -------
    ToolchangeResult
        Accumulated G-code and the writer's final position.

    Raises
    ------
    ToolchangeError
        If ``perimeter_width`` is not positive, so the wipe could not
        terminate.
    """
    _check_request(cfg, request)
    shape = WipeShape(request.shape)
    box = cleaning_box(cfg, request)

    with log_context(toolchange=request.count):
        logger.debug(
            "Toolchange T%d %s -> %s, band y=%.3f h=%.3f, shape=%s",
            request.tool,
            request.current_material.value,
            request.new_material.value,
            request.wipe_start_y,
            request.space_available,
            shape.name,
        )

        writer = GCodeWriter(z=layer.z, extrusion_flow=cfg.extrusion_flow)
        (writer
            .append(";--------------------\n"
                    "; CP TOOLCHANGE START\n")
            .comment_with_value(" toolchange #", request.count)
            .comment_material(request.current_material)
            .append(";--------------------\n")
            .speed_override(100)
            .z_hop(cfg.z_hop, 7200)
            .retract(cfg.retract / 2, 3600)
            .travel_to(_entry_point(cfg, box, shape), 7200)
            .z_hop(0, 7200)
            .deretract(cfg.retract / 2, 3600)
            .deretract(cfg.retract, 1500)
            .set_extruder_trimpot(phases.TRIMPOT_RAMMING)
            .flush_planner_queue())

        phases.unload(
            writer, cfg, box, request.current_material, shape, request.temperature
        )

        if not request.last_in_file:
            phases.change(writer, request.tool, request.new_material)
            phases.load(writer, cfg, box, shape, request.color_init)
            passes = phases.wipe(writer, cfg, layer, box, shape)
            phases.done(writer, box, shape)
            logger.debug("Wipe finished after %d passes", passes)

        (writer
            .set_extruder_trimpot(phases.TRIMPOT_NORMAL)
            .flush_planner_queue()
            .reset_extruder()
            .append("; CP TOOLCHANGE END\n"
                    ";------------------\n"
                    "\n\n"))

    return ToolchangeResult(writer.gcode, writer.pos)
