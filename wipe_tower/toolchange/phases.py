"""The five phases of a wipe-tower toolchange.

Each phase appends to the shared writer inside the reserved cleaning box:

UNLOAD
    Ram the molten material out of the melt zone in zig-zag passes, pull
    the filament tip into the cooling tube and cool it with short
    push/pull pulses.
CHANGE
    Select the new tool and apply the new material's speed override.
LOAD
    Feed the new filament while moving left/right, then prime 3 or 5 lines.
WIPE
    Zig-zag across the box at increasing speed until the band is full.
DONE
    Trace the box perimeter and wipe the nozzle along its top edge.

``shape`` is a ``WipeShape``; its value (+1/-1) signs every Y increment
so a REVERSED change fills its band from the top down.
"""

from __future__ import annotations

from wipe_tower.configs.loader import LayerState, TowerConfig
from wipe_tower.gcode.writer import GCodeWriter
from wipe_tower.geometry.box import Box
from wipe_tower.materials.profiles import MaterialType, WipeShape, motion_profile

# Feed-rate ceiling of the wipe zig-zag (mm/min).
WIPE_SPEED_MAX = 4800.0
WIPE_SPEED_START = 4200.0
WIPE_SPEED_STEP = 50.0

# Filament tip forming after ramming: (length mm, feed mm/min).
_TIP_RETRACTS = ((15.0, 5000.0), (50.0, 5400.0), (15.0, 3000.0))
_TIP_DERETRACT = (12.0, 2000.0)

# Loading moves: (target side, length mm, feed mm/min).
_LOAD_PASSES = (("right", 20.0, 1400.0), ("left", 40.0, 3000.0),
                ("right", 20.0, 1600.0), ("left", 10.0, 1000.0))

TRIMPOT_RAMMING = 750
TRIMPOT_NORMAL = 550


def unload(
    writer: GCodeWriter,
    cfg: TowerConfig,
    box: Box,
    material: MaterialType,
    shape: WipeShape,
    temperature: int,
) -> None:
    """Ram, form the tip and cool the outgoing filament."""
    pw = cfg.perimeter_width
    xl = box.ld.x + pw / 2
    xr = box.rd.x - pw / 2
    y_step = shape * pw
    profile = motion_profile(material)

    writer.append("; CP TOOLCHANGE UNLOAD\n")

    for seg in profile.ramming:
        writer.ram(
            seg.start.resolve(xl, xr, pw),
            seg.end.resolve(xl, xr, pw),
            y_step * seg.dy_factor,
            seg.e,
            seg.feedrate,
        )

    for length, feed in _TIP_RETRACTS:
        writer.retract(length, feed)
    writer.deretract(*_TIP_DERETRACT)

    if temperature != 0:
        writer.set_extruder_temp(temperature, wait=False)

    writer.travel(writer.x, writer.y + y_step * 0.8, 1600)
    for pulse in profile.cooling:
        writer.cool(xl, xr, pulse.e_out, pulse.e_in, pulse.feedrate)

    writer.flush_planner_queue()


def change(writer: GCodeWriter, tool: int, new_material: MaterialType) -> None:
    """Select ``tool``; go slow for flexible and soluble materials."""
    writer.append("; CP TOOLCHANGE CHANGE\n")
    writer.set_tool(tool)
    writer.speed_override(motion_profile(new_material).speed_override)
    writer.flush_planner_queue()


def load(
    writer: GCodeWriter,
    cfg: TowerConfig,
    box: Box,
    shape: WipeShape,
    color_init: bool,
) -> None:
    """Feed the new filament and prime it.

    Loading while moving spreads the excess material instead of leaving a
    blob at one spot.  Three lines are primed for the first load of a
    color, five otherwise.
    """
    pw = cfg.perimeter_width
    xl = box.ld.x + pw
    xr = box.rd.x - pw

    writer.append("; CP TOOLCHANGE LOAD\n")
    for side, length, feed in _LOAD_PASSES:
        writer.deretract_move_x(xr if side == "right" else xl, length, feed)

    writer.extrude(xr, writer.y, 1600)
    dy = shape * pw * 0.85
    passes = 1 if color_init else 2
    for _ in range(passes):
        writer.travel(xr, writer.y + dy, 2200)
        writer.extrude(xl, writer.y)
        writer.travel(xl, writer.y + dy)
        writer.extrude(xr, writer.y)

    writer.set_extruder_trimpot(TRIMPOT_NORMAL)


def wipe(
    writer: GCodeWriter,
    cfg: TowerConfig,
    layer: LayerState,
    box: Box,
    shape: WipeShape,
) -> int:
    """Wipe the new filament until the end of the cleaning box.

    The last pass is not clamped to the box edge: the loop stops after the
    first pass that ends beyond ``edge -/+ perimeter_width``, so the
    pattern may overshoot the band by up to one line pitch.

    Returns
    -------
    int
        Number of wipe passes (pairs of lines) emitted.
    """
    pw = cfg.perimeter_width
    flow = cfg.extrusion_flow * (1.18 if layer.first_layer else 1.0)
    wipe_coeff = 0.5 if layer.first_layer else 1.0
    writer.set_extrusion_flow(flow).append("; CP TOOLCHANGE WIPE\n")

    xl = box.ld.x + 2.0 * pw
    xr = box.rd.x - 2.0 * pw
    dy = shape * pw * 0.7
    speed = WIPE_SPEED_START

    passes = 0
    narrow = True
    while True:
        speed = min(WIPE_SPEED_MAX, speed + WIPE_SPEED_STEP)
        writer.feedrate(speed * wipe_coeff)
        if narrow:
            writer.extrude(xl - pw / 2, writer.y + dy)
            writer.extrude(xr + pw, writer.y)
        else:
            writer.extrude(xl - pw, writer.y + dy)
            writer.extrude(xr + pw * 2, writer.y)
        speed = min(WIPE_SPEED_MAX, speed + WIPE_SPEED_STEP)
        writer.feedrate(speed * wipe_coeff)
        writer.extrude(xr + pw, writer.y + dy)
        writer.extrude(xl - pw, writer.y)
        passes += 1
        narrow = not narrow

        if shape == WipeShape.NORMAL:
            if writer.y > box.lu.y - pw:
                break
        elif writer.y < box.ld.y + pw:
            break

    writer.set_extrusion_flow(cfg.extrusion_flow)
    return passes


def done(writer: GCodeWriter, box: Box, shape: WipeShape) -> None:
    """Draw a perimeter around the cleaning box and wipe the nozzle."""
    if shape == WipeShape.REVERSED:
        box = box.flipped()

    writer.append("; CP TOOLCHANGE DONE\n")
    writer.travel_to(box.lu, 7000)
    writer.extrude_to(box.ld, 3200).extrude_to(box.rd)
    writer.extrude_to(box.ru).extrude_to(box.lu)
    writer.travel_to(box.ru, 7200).travel_to(box.lu)
    writer.feedrate(6000)
