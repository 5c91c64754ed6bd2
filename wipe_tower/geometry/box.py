"""Planar geometry for the wipe tower -- points and axis-aligned boxes.

All coordinates are in **millimetres**, absolute machine XY.  The tower
grows in +Y: band 0 sits at the tower origin, band *n* at
``origin.y + n * wipe_area``.

Corner naming follows the tower's front view::

    lu ---------- ru
    |              |
    ld ---------- rd

``l``/``r`` is left/right (X), ``d``/``u`` is down/up (Y).
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Point:
    """2-D point in machine millimetres."""

    x: float
    y: float

    def __add__(self, other: Point) -> Point:
        return Point(self.x + other.x, self.y + other.y)

    def __sub__(self, other: Point) -> Point:
        return Point(self.x - other.x, self.y - other.y)

    def distance_to(self, other: Point) -> float:
        """Euclidean distance between two points."""
        dx = self.x - other.x
        dy = self.y - other.y
        return (dx * dx + dy * dy) ** 0.5


@dataclass(slots=True)
class Box:
    """Quadrilateral region defined by its four named corners.

    Boxes are mutable: ``expand`` and ``translate`` modify the corners in
    place and return the box so calls can be chained.  Use ``copy`` before
    modifying a box that is shared.

    Parameters
    ----------
    ld, lu, rd, ru : Point
        Left-down, left-up, right-down and right-up corners.
    """

    ld: Point
    lu: Point
    rd: Point
    ru: Point

    @classmethod
    def from_origin(cls, origin: Point, width: float, height: float) -> Box:
        """Build an axis-aligned box from its left-down corner.

        Parameters
        ----------
        origin : Point
            Left-down corner.
        width, height : float
            Extent in +X and +Y (mm).  Negative values are accepted and
            produce an inverted box.
        """
        return cls(
            ld=origin,
            lu=Point(origin.x, origin.y + height),
            rd=Point(origin.x + width, origin.y),
            ru=Point(origin.x + width, origin.y + height),
        )

    @property
    def width(self) -> float:
        return self.rd.x - self.ld.x

    @property
    def height(self) -> float:
        return self.lu.y - self.ld.y

    def expand(self, delta: float) -> Box:
        """Grow every corner outward by ``delta`` on both axes.

        A negative ``delta`` shrinks the box.  ``expand(d)`` followed by
        ``expand(-d)`` restores the original corners.
        """
        self.ld = self.ld + Point(-delta, -delta)
        self.lu = self.lu + Point(-delta, delta)
        self.rd = self.rd + Point(delta, -delta)
        self.ru = self.ru + Point(delta, delta)
        return self

    def translate(self, offset: Point) -> Box:
        """Shift all corners by ``offset``."""
        self.ld = self.ld + offset
        self.lu = self.lu + offset
        self.rd = self.rd + offset
        self.ru = self.ru + offset
        return self

    def copy(self) -> Box:
        return Box(self.ld, self.lu, self.rd, self.ru)

    def flipped(self) -> Box:
        """Return a copy with the top and bottom corner pairs swapped.

        Used to mirror a toolpath vertically: a path that starts at ``lu``
        of the flipped box starts at ``ld`` of the original.
        """
        return Box(ld=self.lu, lu=self.ld, rd=self.ru, ru=self.rd)
