"""Offline G-code interpreter for dry-run checks of tower output.

Provides:
    - Dry-run execution: parse emitted G-code without hardware
    - Extrusion accounting: total pushed/pulled filament (relative E)
    - Time estimation: constant-velocity model honouring M220 overrides
    - Event capture: tool selections, temperature targets, CP markers

Used by:
    - Tests: check end positions, extrusion totals and phase markers
    - CLI ``--summary``: report what a plan will do before printing

Tracks:
    - Current position (X, Y, Z); X/Y are ``None`` until first commanded
    - Feed rate (F in mm/min, modal)
    - Extruder position since the last ``G92 E0``

Understands the dialect written by ``GCodeWriter``: G1, G4, G92, T<n>,
M104, M109, M220, M907.  Other commands are counted and ignored.

Usage:
    from wipe_tower.utils import gcode_vm

    vm = gcode_vm.GCodeVM()
    vm.load_string(result.gcode)
    summary = vm.run()
    print(f"Extruded {summary['total_extrusion_mm']:.2f} mm")
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union
import logging
import math
import re

logger = logging.getLogger(__name__)

_FIELD_RE = re.compile(r'([XYZEFSPT])\s*([-+]?(?:\d+(?:\.\d*)?|\.\d+))', re.IGNORECASE)


@dataclass(frozen=True)
class Move:
    """One executed G1 line."""
    x: Optional[float]
    y: Optional[float]
    z: float
    e: float
    feed: float
    line_no: int


class GCodeVM:
    """Offline G-code virtual machine for tower output.

    Parameters
    ----------
    start_z : float
        Z assumed before the first Z move, default 0.0
    dwell_time_s : float
        Time charged for a ``G4 S0`` planner flush (seconds), default 0.0

    Attributes
    ----------
    x, y : Optional[float]
        Current XY position in mm, None until commanded
    z : float
        Current Z in mm
    feed : float
        Current feed rate (mm/min)
    moves : List[Move]
        Executed G1 moves in order
    """

    def __init__(self, start_z: float = 0.0, dwell_time_s: float = 0.0):
        self.start_z = start_z
        self.dwell_time_s = dwell_time_s
        self.gcode_lines: List[str] = []
        self.reset()

    def load_file(self, path: Union[str, Path]) -> None:
        """Load G-code file for execution.

        Raises
        ------
        FileNotFoundError
            If file doesn't exist
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"G-code file not found: {path}")

        with open(path, 'r') as f:
            self.gcode_lines = f.readlines()

        logger.info("Loaded %d G-code lines from %s", len(self.gcode_lines), path)

    def load_string(self, gcode: str) -> None:
        """Load G-code from string."""
        self.gcode_lines = gcode.splitlines(keepends=True)
        logger.debug("Loaded %d G-code lines from string", len(self.gcode_lines))

    def reset(self) -> None:
        """Reset VM state to an unknown XY position."""
        self.x: Optional[float] = None
        self.y: Optional[float] = None
        self.z: float = self.start_z
        self.feed: float = 0.0
        self.speed_factor: float = 1.0
        self.extruder_pos: float = 0.0
        self.total_extrusion: float = 0.0
        self.total_time: float = 0.0
        self.moves: List[Move] = []
        self.tools: List[int] = []
        self.temperatures: List[Tuple[int, bool]] = []
        self.extruder_currents: List[int] = []
        self.markers: List[str] = []
        self.unknown: List[str] = []

    @staticmethod
    def parse_fields(line: str) -> Dict[str, float]:
        """Parse letter/number fields after the command word.

        Examples
        --------
        >>> GCodeVM.parse_fields("G1 X10.000 E0.5000 F1200")
        {'X': 10.0, 'E': 0.5, 'F': 1200.0}
        """
        parts = line.split(None, 1)
        if len(parts) < 2:
            return {}
        return {m.group(1).upper(): float(m.group(2)) for m in _FIELD_RE.finditer(parts[1])}

    def _move_time(self, nx: Optional[float], ny: Optional[float], nz: float) -> float:
        if self.feed <= 0:
            return 0.0
        dx = (nx - self.x) if nx is not None and self.x is not None else 0.0
        dy = (ny - self.y) if ny is not None and self.y is not None else 0.0
        dz = nz - self.z
        dist = math.sqrt(dx * dx + dy * dy + dz * dz)
        return dist / (self.feed * self.speed_factor / 60.0)

    def execute_line(self, line: str, line_no: int = 0) -> None:
        """Execute a single G-code line and update VM state."""
        line = line.strip()
        if not line:
            return
        if line.startswith(';'):
            text = line.lstrip(';').strip()
            if text.startswith('CP '):
                self.markers.append(text)
            return
        if ';' in line:
            line = line.split(';', 1)[0].strip()

        word = line.split(None, 1)[0].upper()
        fields = self.parse_fields(line)

        if word in ('G1', 'G0', 'G01', 'G00'):
            if 'F' in fields:
                self.feed = fields['F']
            nx = fields.get('X', self.x)
            ny = fields.get('Y', self.y)
            nz = fields.get('Z', self.z)
            e = fields.get('E', 0.0)
            self.total_time += self._move_time(nx, ny, nz)
            self.x, self.y, self.z = nx, ny, nz
            self.extruder_pos += e
            self.total_extrusion += e
            self.moves.append(Move(nx, ny, nz, e, self.feed, line_no))
        elif word == 'G4':
            self.total_time += fields.get('S', 0.0) or self.dwell_time_s
        elif word == 'G92':
            if 'E' in fields:
                self.extruder_pos = fields['E']
        elif word.startswith('T') and word[1:].isdigit():
            self.tools.append(int(word[1:]))
        elif word in ('M104', 'M109'):
            self.temperatures.append((int(fields.get('S', 0)), word == 'M109'))
        elif word == 'M220':
            self.speed_factor = fields.get('S', 100.0) / 100.0
        elif word == 'M907':
            self.extruder_currents.append(int(fields.get('E', 0)))
        else:
            self.unknown.append(line)
            logger.debug("Ignoring unsupported command at line %d: %s", line_no, line)

    def run(self) -> Dict[str, Any]:
        """Execute loaded G-code and return results.

        Returns
        -------
        Dict[str, Any]
            Results dictionary with keys:
                - time_estimate_s: float
                - move_count: int
                - final_pos: Tuple[Optional[float], Optional[float], float]
                - total_extrusion_mm: float (net relative E)
                - tools: List[int]
                - temperatures: List[Tuple[int, bool]] (target, wait)
                - markers: List[str] (CP comments)
                - unknown: List[str]

        Raises
        ------
        RuntimeError
            If no G-code loaded
        """
        if not self.gcode_lines:
            raise RuntimeError("No G-code loaded, call load_file() or load_string() first")

        self.reset()
        for i, line in enumerate(self.gcode_lines, start=1):
            self.execute_line(line, line_no=i)

        logger.debug(
            "VM execution complete: %d moves, %.1fs estimated",
            len(self.moves), self.total_time,
        )
        return {
            'time_estimate_s': self.total_time,
            'move_count': len(self.moves),
            'final_pos': (self.x, self.y, self.z),
            'total_extrusion_mm': self.total_extrusion,
            'tools': list(self.tools),
            'temperatures': list(self.temperatures),
            'markers': list(self.markers),
            'unknown': list(self.unknown),
        }


def summarize_gcode(gcode: str) -> Dict[str, Any]:
    """Run ``gcode`` through a fresh VM and return its results."""
    vm = GCodeVM()
    vm.load_string(gcode)
    return vm.run()
