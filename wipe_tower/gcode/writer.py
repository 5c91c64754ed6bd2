"""G-code writer -- incremental, state-tracking command emitter.

The writer remembers the last commanded XY position, the feed rate and
the extrusion-flow coefficient, and writes only the fields of a ``G1``
move that actually change.  All tower components emit through one writer
instance per call; the text buffer is append-only.

Units and formats:
    Coordinates are machine millimetres, ``F`` is mm/min and ``E`` is
    millimetres of filament (relative extrusion).  X/Y/Z are written with
    3 decimals, E with 4, F and integer parameters with none.  Python's
    format mini-language is locale independent, so the decimal point is
    always ``.`` and no digit grouping is emitted.

Position tracking:
    A fresh writer has no known position (``pos is None``).  The first
    coordinate write therefore always carries both X and Y.

Z-hops:
    ``z_hop`` writes an absolute Z of ``layer_z + hop`` without changing
    the tracked layer Z, so ``z_hop(0)`` returns the nozzle to the layer.
"""

from __future__ import annotations

from io import StringIO

from wipe_tower.geometry.box import Point
from wipe_tower.materials.profiles import MaterialType, material_label


# ---------------------------------------------------------------------------
# Field formatting
# ---------------------------------------------------------------------------


def _fmt_x(x: float) -> str:
    return f"X{x:.3f}"


def _fmt_y(y: float) -> str:
    return f"Y{y:.3f}"


def _fmt_z(z: float) -> str:
    return f"Z{z:.3f}"


def _fmt_e(e: float) -> str:
    return f"E{e:.4f}"


def _fmt_f(f: float) -> str:
    return f"F{f:.0f}"


# ---------------------------------------------------------------------------
# Writer
# ---------------------------------------------------------------------------


class GCodeWriter:
    """Append-only G-code emitter with diff-based field output.

    Every command method returns the writer itself, so sequences read as
    one chained expression::

        writer.z_hop(0.6, 7200).travel(10.0, 5.0).z_hop(0, 7200)

    Parameters
    ----------
    z : float
        Layer Z used as the base for Z-hops.
    extrusion_flow : float
        Filament millimetres per millimetre of XY travel for ``extrude``.
    start : Point | None
        Known nozzle position, e.g. where the previous toolchange ended.
        ``None`` makes the first coordinate write explicit.
    """

    def __init__(
        self,
        z: float = 0.0,
        extrusion_flow: float = 0.0,
        start: Point | None = None,
    ) -> None:
        self._buf = StringIO()
        self._pos: Point | None = start
        self._z = z
        self._feedrate = 0.0
        self._extrusion_flow = extrusion_flow

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def gcode(self) -> str:
        """All text emitted so far."""
        return self._buf.getvalue()

    @property
    def pos(self) -> Point | None:
        """Last commanded XY position, ``None`` before the first move."""
        return self._pos

    @property
    def x(self) -> float:
        return self._require_pos().x

    @property
    def y(self) -> float:
        return self._require_pos().y

    @property
    def z(self) -> float:
        return self._z

    @property
    def current_feedrate(self) -> float:
        return self._feedrate

    @property
    def extrusion_flow(self) -> float:
        return self._extrusion_flow

    def set_z(self, z: float) -> GCodeWriter:
        """Set the layer Z used as the Z-hop base.  Emits nothing."""
        self._z = z
        return self

    def set_extrusion_flow(self, flow: float) -> GCodeWriter:
        """Set the extrusion-flow coefficient.  Emits nothing."""
        self._extrusion_flow = flow
        return self

    def _require_pos(self) -> Point:
        if self._pos is None:
            raise RuntimeError("Writer position is unknown before the first move")
        return self._pos

    # ------------------------------------------------------------------
    # Motion
    # ------------------------------------------------------------------

    def feedrate(self, f: float) -> GCodeWriter:
        """Emit a feed-rate-only ``G1`` when ``f`` differs from the current one."""
        if f != self._feedrate:
            self._buf.write(f"G1 {_fmt_f(f)}\n")
            self._feedrate = f
        return self

    def move_explicit(
        self, x: float, y: float, e: float = 0.0, f: float = 0.0,
    ) -> GCodeWriter:
        """Linear move to ``(x, y)`` pushing ``e`` mm of filament.

        Only fields that differ from the tracked state are written.  A
        request that changes nothing is dropped.

        Parameters
        ----------
        x, y : float
            Target position (mm).
        e : float
            Relative extrusion (mm); 0 for a travel.
        f : float
            Feed rate (mm/min); 0 keeps the current feed rate.
        """
        pos = self._pos
        if (
            pos is not None
            and x == pos.x
            and y == pos.y
            and e == 0
            and (f == 0 or f == self._feedrate)
        ):
            return self

        fields: list[str] = []
        if pos is None or x != pos.x:
            fields.append(_fmt_x(x))
        if pos is None or y != pos.y:
            fields.append(_fmt_y(y))
        if e != 0:
            fields.append(_fmt_e(e))
        if f != 0 and f != self._feedrate:
            fields.append(_fmt_f(f))
            self._feedrate = f
        self._buf.write("G1 " + " ".join(fields) + "\n")
        self._pos = Point(x, y)
        return self

    def move_explicit_to(self, dest: Point, e: float = 0.0, f: float = 0.0) -> GCodeWriter:
        return self.move_explicit(dest.x, dest.y, e, f)

    def travel(self, x: float, y: float, f: float = 0.0) -> GCodeWriter:
        """Non-extruding move.  ``f=0`` keeps the current feed rate."""
        return self.move_explicit(x, y, 0.0, f)

    def travel_to(self, dest: Point, f: float = 0.0) -> GCodeWriter:
        return self.move_explicit(dest.x, dest.y, 0.0, f)

    def extrude(self, x: float, y: float, f: float = 0.0) -> GCodeWriter:
        """Printing move; ``E`` is the XY length times the flow coefficient."""
        pos = self._require_pos()
        e = Point(x, y).distance_to(pos) * self._extrusion_flow
        return self.move_explicit(x, y, e, f)

    def extrude_to(self, dest: Point, f: float = 0.0) -> GCodeWriter:
        return self.extrude(dest.x, dest.y, f)

    def deretract(self, e: float, f: float = 0.0) -> GCodeWriter:
        """Push ``e`` mm of filament without moving (negative pulls)."""
        if e == 0 and (f == 0 or f == self._feedrate):
            return self
        fields: list[str] = []
        if e != 0:
            fields.append(_fmt_e(e))
        if f != 0 and f != self._feedrate:
            fields.append(_fmt_f(f))
            self._feedrate = f
        self._buf.write("G1 " + " ".join(fields) + "\n")
        return self

    def retract(self, e: float, f: float = 0.0) -> GCodeWriter:
        """Pull ``e`` mm of filament without moving."""
        return self.deretract(-e, f)

    def deretract_move_x(self, x: float, e: float, f: float = 0.0) -> GCodeWriter:
        """Move along X at the current Y while pushing ``e`` mm."""
        return self.move_explicit(x, self.y, e, f)

    def z_hop(self, hop: float, f: float = 0.0) -> GCodeWriter:
        """Move Z to ``layer_z + hop``.  The tracked layer Z is unchanged."""
        line = f"G1 {_fmt_z(self._z + hop)}"
        if f != 0 and f != self._feedrate:
            line += f" {_fmt_f(f)}"
            self._feedrate = f
        self._buf.write(line + "\n")
        return self

    def ram(self, x1: float, x2: float, dy: float, e: float, f: float) -> GCodeWriter:
        """Travel to ``(x1, y + dy)`` at ``f``, then push ``e`` mm moving to ``x2``."""
        self.travel(x1, self.y + dy, f)
        return self.move_explicit(x2, self.y, e)

    def cool(self, x1: float, x2: float, e1: float, e2: float, f: float) -> GCodeWriter:
        """Two horizontal moves at the current Y, extruding ``e1`` then ``e2``."""
        self.move_explicit(x1, self.y, e1, f)
        return self.move_explicit(x2, self.y, e2)

    # ------------------------------------------------------------------
    # Machine commands
    # ------------------------------------------------------------------

    def set_tool(self, tool: int) -> GCodeWriter:
        self._buf.write(f"T{int(tool)}\n")
        return self

    def set_extruder_temp(self, temperature: int, wait: bool = False) -> GCodeWriter:
        """``M109`` (wait) or ``M104`` (no wait) hotend target."""
        code = 109 if wait else 104
        self._buf.write(f"M{code} S{int(temperature)}\n")
        return self

    def speed_override(self, percent: int) -> GCodeWriter:
        self._buf.write(f"M220 S{int(percent)}\n")
        return self

    def set_extruder_trimpot(self, current: int) -> GCodeWriter:
        """Set the extruder motor current via the digital trimpot."""
        self._buf.write(f"M907 E{int(current)}\n")
        return self

    def flush_planner_queue(self) -> GCodeWriter:
        self._buf.write("G4 S0\n")
        return self

    def reset_extruder(self) -> GCodeWriter:
        """Zero the firmware's extruder position counter."""
        self._buf.write("G92 E0.0\n")
        return self

    # ------------------------------------------------------------------
    # Text
    # ------------------------------------------------------------------

    def comment(self, text: str) -> GCodeWriter:
        self._buf.write(f"; {text}\n")
        return self

    def comment_with_value(self, text: str, value: int) -> GCodeWriter:
        self._buf.write(f";{text}{int(value)}\n")
        return self

    def comment_material(self, material: MaterialType) -> GCodeWriter:
        self._buf.write(f"; material : {material_label(material)}\n")
        return self

    def append(self, text: str) -> GCodeWriter:
        self._buf.write(text)
        return self
