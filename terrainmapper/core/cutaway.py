"""Cutaway geometry: the vertical plane through a movement segment.

A movement segment start -> end defines a vertical plane. Slicing 3D terrain
with that plane yields 2D "cutaway" shapes where:
- x is the signed horizontal distance from start along the segment direction
- y is elevation (up is positive)

Cutaway polygons share one orientation: the left extreme is a vertical edge
traversed upward, the top surface is traversed with increasing x, the right
extreme is a vertical edge traversed downward and the bottom closes the loop
with decreasing x. That is clockwise with y pointing up.

Provides:
- CutawayFrame / to_2d / from_2d: projection between 3D and cutaway space
- AABB2d: bounding box queries used to reject irrelevant shapes cheaply
- CutawayPolygon: containment, edge iteration and line/segment intersections
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import cached_property
from math import inf, isfinite
from typing import TYPE_CHECKING, Iterator, Optional, Sequence, Union

import numpy as np
from shapely.geometry import LineString, Point, Polygon, box
from shapely.geometry.base import BaseGeometry

from terrainmapper.constants import GeometryConfig
from terrainmapper.core.point_pool import CutawayPoint, PointPool
from terrainmapper.core.tolerance import almost_equal

if TYPE_CHECKING:
    from terrainmapper.model.elevated_point import ElevatedPoint

logger = logging.getLogger(__name__)

Axes = Sequence[str]
XY_AXES: tuple[str, ...] = ("x", "y")
X_AXIS: tuple[str, ...] = ("x",)


# =============================================================================
# PROJECTION
# =============================================================================


class CutawayFrame:
    """The vertical plane through start -> end, with conversions both ways.

    Example:
        frame = CutawayFrame(start, end)
        pt2d = frame.to_2d(ElevatedPoint(x=5, y=0, elevation=10))
        pt3d = frame.from_2d(pt2d)
    """

    def __init__(self, start: ElevatedPoint, end: ElevatedPoint):
        self.start = start
        self.end = end
        self.origin = np.array(start.xy, dtype=float)
        delta = np.array(end.xy, dtype=float) - self.origin
        self.length = float(np.hypot(*delta))
        if self.length <= GeometryConfig.EPSILON:
            self.direction = np.array(GeometryConfig.DEGENERATE_DIRECTION, dtype=float)
            self.length = 0.0
        else:
            self.direction = delta / self.length
        # Left-hand normal of the horizontal direction
        self.normal = np.array([-self.direction[1], self.direction[0]])

    def to_2d(self, point: ElevatedPoint, pool: Optional[PointPool] = None) -> CutawayPoint:
        rel = np.array(point.xy, dtype=float) - self.origin
        x = float(rel @ self.direction)
        offset = float(rel @ self.normal)
        t0 = x / self.length if self.length else 0.0
        if pool is not None:
            return pool.acquire(x, point.elevation, t0, offset)
        return CutawayPoint(x, point.elevation, t0, offset)

    def from_2d(self, pt2d: CutawayPoint) -> ElevatedPoint:
        from terrainmapper.model.elevated_point import ElevatedPoint

        xy = self.origin + self.direction * pt2d.x + self.normal * pt2d.offset
        return ElevatedPoint(x=float(xy[0]), y=float(xy[1]), elevation=pt2d.y)

    def horizontal_at(self, x: float) -> tuple[float, float]:
        """Map x/y of the point at cutaway distance x on the segment line."""
        xy = self.origin + self.direction * x
        return (float(xy[0]), float(xy[1]))


def to_2d(
    point: ElevatedPoint,
    start: ElevatedPoint,
    end: ElevatedPoint,
    pool: Optional[PointPool] = None,
) -> CutawayPoint:
    """Project a 3D point into the cutaway plane of start -> end."""
    return CutawayFrame(start, end).to_2d(point, pool)


def from_2d(pt2d: CutawayPoint, start: ElevatedPoint, end: ElevatedPoint) -> ElevatedPoint:
    """Reconstruct the 3D point for a cutaway point of start -> end."""
    return CutawayFrame(start, end).from_2d(pt2d)


# =============================================================================
# BOUNDING BOX
# =============================================================================


@dataclass
class AABB2d:
    """Axis-aligned bounding box in the cutaway plane.

    An empty box (no points) has infinite inverted bounds and contains nothing.
    """

    min_x: float = inf
    min_y: float = inf
    max_x: float = -inf
    max_y: float = -inf

    @classmethod
    def from_points(cls, points: Sequence[CutawayPoint]) -> AABB2d:
        if not points:
            return cls()
        xs = np.array([p.x for p in points], dtype=float)
        ys = np.array([p.y for p in points], dtype=float)
        return cls(min_x=float(xs.min()), min_y=float(ys.min()), max_x=float(xs.max()), max_y=float(ys.max()))

    @classmethod
    def from_polygon(cls, poly: CutawayPolygon) -> AABB2d:
        return cls.from_points(poly.points)

    @classmethod
    def union(cls, boxes: Sequence[AABB2d]) -> AABB2d:
        out = cls()
        for b in boxes:
            out.min_x = min(out.min_x, b.min_x)
            out.min_y = min(out.min_y, b.min_y)
            out.max_x = max(out.max_x, b.max_x)
            out.max_y = max(out.max_y, b.max_y)
        return out

    @property
    def is_empty(self) -> bool:
        return self.min_x > self.max_x or self.min_y > self.max_y

    def _axis_range(self, axis: str) -> tuple[float, float]:
        if axis == "x":
            return (self.min_x, self.max_x)
        if axis == "y":
            return (self.min_y, self.max_y)
        raise ValueError(f"Unknown axis '{axis}', expected 'x' or 'y'")

    def contains_point(self, pt: CutawayPoint, axes: Axes = XY_AXES) -> bool:
        """Whether pt lies within the box along the given axes (edges included)."""
        eps = GeometryConfig.EPSILON
        for axis in axes:
            lo, hi = self._axis_range(axis)
            v = pt.x if axis == "x" else pt.y
            if v < lo - eps or v > hi + eps:
                return False
        return True

    def overlaps_segment(self, a: CutawayPoint, b: CutawayPoint, axes: Axes = XY_AXES) -> bool:
        """Whether segment a|b touches the box along the given axes."""
        if self.is_empty:
            return False
        eps = GeometryConfig.EPSILON
        if set(axes) != set(XY_AXES):
            for axis in axes:
                lo, hi = self._axis_range(axis)
                va, vb = (a.x, b.x) if axis == "x" else (a.y, b.y)
                if max(va, vb) < lo - eps or min(va, vb) > hi + eps:
                    return False
            return True
        if a.almost_equal(b):
            return self.contains_point(a)
        rect = box(self.min_x - eps, self.min_y - eps, self.max_x + eps, self.max_y + eps)
        return rect.intersects(LineString([a.xy, b.xy]))

    def overlaps(self, other: AABB2d) -> bool:
        eps = GeometryConfig.EPSILON
        return not (
            other.max_x < self.min_x - eps
            or other.min_x > self.max_x + eps
            or other.max_y < self.min_y - eps
            or other.min_y > self.max_y + eps
        )


# =============================================================================
# POLYGON
# =============================================================================

PointLike = Union[CutawayPoint, tuple[float, float]]


def _as_point(p: PointLike) -> CutawayPoint:
    if isinstance(p, CutawayPoint):
        return CutawayPoint(p.x, p.y)
    return CutawayPoint(float(p[0]), float(p[1]))


def _pairs(coords: Sequence) -> list[CutawayPoint]:
    """Accept [(x, y), ...], [CutawayPoint, ...] or a flat [x0, y0, x1, y1, ...]."""
    if coords and not isinstance(coords[0], (CutawayPoint, tuple, list)):
        if len(coords) % 2:
            raise ValueError(f"Flat coordinate list needs an even length, got {len(coords)}")
        return [CutawayPoint(float(coords[i]), float(coords[i + 1])) for i in range(0, len(coords), 2)]
    return [_as_point(p) for p in coords]


def _drop_duplicates(points: list[CutawayPoint]) -> list[CutawayPoint]:
    """Remove consecutive near-duplicate vertices, including a repeated closing vertex."""
    out: list[CutawayPoint] = []
    for p in points:
        if out and out[-1].almost_equal(p):
            continue
        out.append(p)
    if len(out) > 1 and out[0].almost_equal(out[-1]):
        out.pop()
    return out


def _geometry_points(geom: BaseGeometry) -> list[tuple[float, float]]:
    """Flatten an intersection result into points (segment overlaps yield their endpoints)."""
    if geom.is_empty:
        return []
    kind = geom.geom_type
    if kind == "Point":
        return [(geom.x, geom.y)]
    if kind in ("LineString", "LinearRing"):
        coords = list(geom.coords)
        return [coords[0], coords[-1]]
    if kind in ("MultiPoint", "MultiLineString", "GeometryCollection"):
        return [xy for part in geom.geoms for xy in _geometry_points(part)]
    logger.debug(f"Ignoring {kind} in intersection result")
    return []


class CutawayPolygon:
    """A closed polygon in the cutaway plane.

    Vertices are held in the cutaway orientation (see module docstring). The
    optional holes only arise from combining several shapes and take part in
    containment and intersection tests, not in edge iteration.

    Attributes:
        points: Outer ring vertices, unclosed
        holes: Inner rings, unclosed
        start: Start of the 3D segment this cutaway was taken along (if known)
        end: End of the 3D segment (if known)
    """

    def __init__(
        self,
        points: Sequence,
        start: Optional[ElevatedPoint] = None,
        end: Optional[ElevatedPoint] = None,
        holes: Sequence[Sequence] = (),
    ):
        self.points: tuple[CutawayPoint, ...] = tuple(_drop_duplicates(_pairs(points)))
        if len(self.points) < 3:
            raise ValueError(f"CutawayPolygon needs at least 3 distinct vertices, got {len(self.points)}")
        self.holes: tuple[tuple[CutawayPoint, ...], ...] = tuple(
            tuple(ring) for ring in (_drop_duplicates(_pairs(h)) for h in holes) if len(ring) >= 3
        )
        self.start = start
        self.end = end

    @classmethod
    def from_cutaway_points(
        cls,
        coords: Sequence,
        start: Optional[ElevatedPoint] = None,
        end: Optional[ElevatedPoint] = None,
    ) -> CutawayPolygon:
        """Build from cutaway coordinates, flat ([x0, y0, x1, y1, ...]) or paired."""
        return cls(coords, start, end)

    # ----- Shape access ----- #

    @cached_property
    def shape(self) -> Polygon:
        """Shapely polygon for containment and intersection tests."""
        return Polygon([p.xy for p in self.points], [[p.xy for p in ring] for ring in self.holes])

    @cached_property
    def aabb(self) -> AABB2d:
        return AABB2d.from_polygon(self)

    @property
    def is_clockwise(self) -> bool:
        return not self.shape.exterior.is_ccw

    @cached_property
    def frame(self) -> Optional[CutawayFrame]:
        if self.start is None or self.end is None:
            return None
        return CutawayFrame(self.start, self.end)

    def iterate_points(self) -> Iterator[CutawayPoint]:
        yield from self.points

    def iterate_edges(self, close: bool = True) -> Iterator[tuple[CutawayPoint, CutawayPoint]]:
        """Yield outer-ring edges (A, B) in vertex order; close adds last -> first."""
        n = len(self.points)
        for i in range(n - 1):
            yield self.points[i], self.points[i + 1]
        if close:
            yield self.points[-1], self.points[0]

    def _all_ring_edges(self) -> Iterator[tuple[CutawayPoint, CutawayPoint]]:
        yield from self.iterate_edges(close=True)
        for ring in self.holes:
            for i in range(len(ring)):
                yield ring[i], ring[(i + 1) % len(ring)]

    # ----- Containment ----- #

    def contains(self, x: float, y: float) -> bool:
        """True only for points strictly inside; edge points are not inside."""
        return self.shape.contains(Point(x, y))

    def column_intervals(self, x: float) -> list[tuple[float, float]]:
        """Solid elevation intervals of the column immediately to the right of x.

        Vertical edges at x are resolved by looking just past them in the
        direction of travel: a left edge is solid, a right edge is not. Returns
        (bottom, top) pairs sorted bottom to top; empty past the right extreme.
        """
        eps = GeometryConfig.EPSILON
        ys: list[float] = []
        for a, b in self._all_ring_edges():
            lo, hi = (a, b) if a.x < b.x else (b, a)
            if almost_equal(lo.x, hi.x):
                continue  # Vertical.
            if x < lo.x - eps or x >= hi.x - eps:
                continue
            if almost_equal(x, lo.x):
                ys.append(lo.y)
            else:
                ys.append(lo.y + (x - lo.x) * (hi.y - lo.y) / (hi.x - lo.x))
        ys.sort()
        if len(ys) % 2:
            logger.debug(f"Odd number of column crossings ({len(ys)}) at x={x}; dropping the highest")
            ys.pop()
        return [(ys[i], ys[i + 1]) for i in range(0, len(ys), 2)]

    # ----- Intersections ----- #

    def segment_intersections(
        self,
        a: CutawayPoint,
        b: CutawayPoint,
        pool: Optional[PointPool] = None,
    ) -> list[CutawayPoint]:
        """Intersections of segment a|b with the polygon boundary.

        Returned points are ordered from a to b; each carries t0, its
        fraction along a -> b.
        """
        if a.almost_equal(b):
            return []
        geom = LineString([a.xy, b.xy]).intersection(self.shape.boundary)
        return self._ordered_points(_geometry_points(geom), a, b, pool)

    def line_intersections(
        self,
        a: CutawayPoint,
        b: CutawayPoint,
        pool: Optional[PointPool] = None,
    ) -> list[CutawayPoint]:
        """Intersections of the infinite line through a and b with the boundary.

        t0 is measured along a -> b and may fall outside [0, 1].
        """
        if a.almost_equal(b):
            return []
        bounds = self.aabb
        reach = abs(a.x) + abs(a.y) + (bounds.max_x - bounds.min_x) + (bounds.max_y - bounds.min_y)
        reach += max(abs(bounds.min_x), abs(bounds.max_x), abs(bounds.min_y), abs(bounds.max_y)) + 1.0
        d = np.array([b.x - a.x, b.y - a.y], dtype=float)
        d /= float(np.hypot(*d))
        p0 = (a.x - d[0] * reach, a.y - d[1] * reach)
        p1 = (a.x + d[0] * reach, a.y + d[1] * reach)
        geom = LineString([p0, p1]).intersection(self.shape.boundary)
        return self._ordered_points(_geometry_points(geom), a, b, pool)

    def _ordered_points(
        self,
        coords: list[tuple[float, float]],
        a: CutawayPoint,
        b: CutawayPoint,
        pool: Optional[PointPool],
    ) -> list[CutawayPoint]:
        dx = b.x - a.x
        dy = b.y - a.y
        denom = dx * dx + dy * dy
        tagged = sorted(((((x - a.x) * dx + (y - a.y) * dy) / denom, x, y) for x, y in coords), key=lambda e: e[0])
        out: list[CutawayPoint] = []
        for t0, x, y in tagged:
            if out and almost_equal(out[-1].x, x) and almost_equal(out[-1].y, y):
                continue
            out.append(pool.acquire(x, y, t0) if pool is not None else CutawayPoint(x, y, t0))
        return out

    def line_segment_intersects(self, a: CutawayPoint, b: CutawayPoint) -> bool:
        """Whether segment a|b touches the polygon boundary anywhere."""
        if a.almost_equal(b):
            return self.shape.boundary.distance(Point(a.xy)) <= GeometryConfig.EPSILON
        return LineString([a.xy, b.xy]).intersects(self.shape.boundary)

    def line_segment_crosses(self, a: CutawayPoint, b: CutawayPoint) -> bool:
        """Whether segment a|b passes through the polygon interior (not just along an edge)."""
        if a.almost_equal(b):
            return self.contains(a.x, a.y)
        return LineString([a.xy, b.xy]).relate_pattern(self.shape, "1********")

    # ----- Misc ----- #

    def __len__(self) -> int:
        return len(self.points)

    def __repr__(self) -> str:
        bounds = self.aabb
        extent = f"x=[{bounds.min_x:.1f}, {bounds.max_x:.1f}]" if isfinite(bounds.min_x) else "empty"
        return f"CutawayPolygon({len(self.points)} vertices, {extent})"
