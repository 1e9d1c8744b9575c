"""Vertical queries against cutaway polygons.

CutawayHandler answers, for one polygon, where a point sits relative to the
solid (OUTSIDE/BELOW/GROUND/ABOVE), which elevation a mover lands on when
entering the shape at that x, and how the top surface runs toward a
destination. CutawayRegion presents the same queries across all the polygons
one terrain volume (or floor, or the scene) produces along a segment.

Classification looks at the column immediately to the right of x, the
direction of travel. On a left vertical edge the column is solid, so only the
edge top is GROUND; on a right vertical edge the column beyond is open (or
lower), so the point is ABOVE whatever lies there. The horizontal extent is
half-open: the right extreme itself is OUTSIDE.
"""

from __future__ import annotations

import logging
from enum import IntEnum
from math import hypot, inf, isfinite
from typing import Any, Optional, Sequence

from terrainmapper.core.cutaway import AABB2d, CutawayPolygon
from terrainmapper.core.point_pool import CutawayPoint, PointPool
from terrainmapper.core.tolerance import almost_between, almost_equal
from terrainmapper.constants import GeometryConfig

logger = logging.getLogger(__name__)


class ElevationLocation(IntEnum):
    """Vertical relationship of a point to a shape."""

    OUTSIDE = 0  # x not covered, or below the whole shape
    BELOW = 2  # inside solid
    GROUND = 4  # on the top surface
    ABOVE = 8  # over the top surface


def _on_segment(p: CutawayPoint, a: CutawayPoint, b: CutawayPoint) -> bool:
    dx = b.x - a.x
    dy = b.y - a.y
    denom = dx * dx + dy * dy
    if denom == 0:
        return p.almost_equal(a)
    t = max(0.0, min(1.0, ((p.x - a.x) * dx + (p.y - a.y) * dy) / denom))
    return hypot(a.x + t * dx - p.x, a.y + t * dy - p.y) <= GeometryConfig.EPSILON


class CutawayHandler:
    """Queries over a single cutaway polygon.

    Args:
        polygon: The cutaway shape
        pool: Pool for returned temporary points (plain points if None)
    """

    def __init__(self, polygon: CutawayPolygon, pool: Optional[PointPool] = None):
        self.polygon = polygon
        self.pool = pool
        self.aabb: AABB2d = polygon.aabb

    @property
    def min_x(self) -> float:
        return self.aabb.min_x

    @property
    def max_x(self) -> float:
        return self.aabb.max_x

    def _point(self, x: float, y: float, t0: Optional[float] = None) -> CutawayPoint:
        if self.pool is not None:
            return self.pool.acquire(x, y, t0)
        return CutawayPoint(x, y, t0)

    # ----- Classification ----- #

    def covers_x(self, x: float) -> bool:
        """Whether the shape has solid in the column just right of x."""
        return bool(self.polygon.column_intervals(x))

    def classify(self, pt: CutawayPoint) -> tuple[ElevationLocation, float]:
        """Location of pt and the entry elevation that goes with it.

        The entry elevation is the top of the solid interval pt is in or on
        (BELOW/GROUND), the nearest top under pt (ABOVE), or -inf (OUTSIDE).
        """
        intervals = self.polygon.column_intervals(pt.x)
        if not intervals:
            # Right extreme included: OUTSIDE here, not ABOVE with a -inf floor
            return ElevationLocation.OUTSIDE, -inf

        surface_under = None
        for bottom, top in intervals:
            if almost_equal(pt.y, top):
                return ElevationLocation.GROUND, top
            if bottom - GeometryConfig.EPSILON <= pt.y < top:
                return ElevationLocation.BELOW, top
            if top < pt.y:
                surface_under = top
        if surface_under is None:
            return ElevationLocation.OUTSIDE, -inf
        return ElevationLocation.ABOVE, surface_under

    def elevation_type(self, pt: CutawayPoint) -> ElevationLocation:
        return self.classify(pt)[0]

    def elevation_upon_entry(self, pt: CutawayPoint) -> float:
        """Elevation a mover at pt ends up at on entering this shape; -inf if outside."""
        return self.classify(pt)[1]

    # ----- Surface walk ----- #

    def _find_start_edge(self, a: CutawayPoint, edges: Sequence[tuple[CutawayPoint, CutawayPoint]]) -> Optional[int]:
        for i, (A, B) in enumerate(edges):
            if a.almost_equal(B):
                continue
            if _on_segment(a, A, B):
                return i
        return None

    def surface_walk(
        self,
        a: CutawayPoint,
        b: Optional[CutawayPoint] = None,
        _depth: int = 0,
    ) -> list[CutawayPoint]:
        """Trace the top boundary from a toward increasing x.

        Stops at b's x, or where the boundary turns back (x decreasing) when b
        is None or not reached. If the boundary turns back right after climbing
        a vertical edge, the climb is an overhang: the walk jumps to the true
        top at that x and continues from there.

        Args:
            a: Start point; must lie on a polygon edge
            b: Destination (only its x matters, plus its y on a vertical edge)

        Returns:
            Traced points starting with a copy of a; empty if a is not on an edge.
        """
        edges = list(self.polygon.iterate_edges(close=True))
        n = len(edges)
        if _depth > n:
            logger.warning(f"Surface walk gave up after {_depth} overhang jumps on {self.polygon}")
            return []
        start = self._find_start_edge(a, edges)
        if start is None:
            return []

        A, B = edges[start]
        if B.x < A.x - GeometryConfig.EPSILON:
            # On the underside: restart from the surface above
            top = self.elevation_upon_entry(a)
            if not isfinite(top) or almost_equal(top, a.y):
                return []
            return self.surface_walk(self._point(a.x, top), b, _depth + 1)

        eps = GeometryConfig.EPSILON
        out = [self._point(a.x, a.y, a.t0)]
        prev_climb = False
        for k in range(n):
            A, B = edges[(start + k) % n]
            if k > 0:
                if B.x < A.x - eps:
                    if not prev_climb:
                        break
                    top = self.elevation_upon_entry(A)
                    if not isfinite(top) or almost_equal(top, A.y):
                        break
                    rest = self.surface_walk(self._point(A.x, top), b, _depth + 1)
                    out.extend(p for p in rest if not p.almost_equal(out[-1]))
                    break
                if not A.almost_equal(out[-1]):
                    out.append(self._point(A.x, A.y))
            head = out[-1]
            vertical = almost_equal(A.x, B.x)

            if b is not None and B.x >= b.x - eps:
                if vertical:
                    if almost_equal(b.y, head.y):
                        pass
                    elif almost_between(b.y, head.y, B.y):
                        out.append(self._point(b.x, b.y))
                    else:
                        out.append(self._point(B.x, B.y))
                elif not almost_equal(head.x, b.x):
                    y = A.y + (b.x - A.x) * (B.y - A.y) / (B.x - A.x)
                    out.append(self._point(b.x, y))
                break

            prev_climb = vertical and B.y > A.y
        return out

    # ----- Delegated intersection tests (no bounds pre-check) ----- #

    def segment_intersections(self, a: CutawayPoint, b: CutawayPoint) -> list[CutawayPoint]:
        return self.polygon.segment_intersections(a, b, self.pool)

    def line_segment_intersects(self, a: CutawayPoint, b: CutawayPoint) -> bool:
        return self.polygon.line_segment_intersects(a, b)

    def line_segment_crosses(self, a: CutawayPoint, b: CutawayPoint) -> bool:
        return self.polygon.line_segment_crosses(a, b)

    def __repr__(self) -> str:
        return f"CutawayHandler({self.polygon!r})"


class CutawayRegion:
    """All cutaway handlers produced by one source along a segment.

    The source is the terrain volume, floor overlay or scene the polygons came
    from. It provides is_ramp, is_elevated, plateau_elevation and
    top_elevation, which let flat shapes skip the geometric entry lookup.

    Attributes:
        source: Collaborator the cutaways were taken from
        handlers: One CutawayHandler per polygon
        aabb: Union of the handlers' bounding boxes
    """

    def __init__(self, source: Any, polygons: Sequence[CutawayPolygon], pool: Optional[PointPool] = None):
        self.source = source
        self.handlers: list[CutawayHandler] = [CutawayHandler(p, pool) for p in polygons]
        self.aabb: AABB2d = AABB2d.union([h.aabb for h in self.handlers])

    @property
    def polygons(self) -> list[CutawayPolygon]:
        return [h.polygon for h in self.handlers]

    @property
    def name(self) -> str:
        return getattr(self.source, "name", "") or type(self.source).__name__

    def classify(self, pt: CutawayPoint) -> tuple[ElevationLocation, float]:
        """Combined location: BELOW wins outright, then GROUND, then the highest ABOVE."""
        best = (ElevationLocation.OUTSIDE, -inf)
        for handler in self.handlers:
            if not handler.aabb.contains_point(pt, ("x",)):
                continue
            location, entry = handler.classify(pt)
            if location == ElevationLocation.BELOW:
                return location, entry
            if location == ElevationLocation.GROUND:
                if best[0] != ElevationLocation.GROUND or entry > best[1]:
                    best = (location, entry)
            elif location == ElevationLocation.ABOVE and best[0] != ElevationLocation.GROUND:
                if entry > best[1]:
                    best = (location, entry)
        return best

    def elevation_type(self, pt: CutawayPoint) -> ElevationLocation:
        return self.classify(pt)[0]

    def elevation_upon_entry(self, pt: CutawayPoint) -> float:
        """Landing elevation at pt's x; -inf where no polygon covers x.

        Flat sources answer with their constant top directly.
        """
        covering = [h for h in self.handlers if h.covers_x(pt.x)]
        if not covering:
            return -inf
        if not self.source.is_ramp:
            return self.source.plateau_elevation if self.source.is_elevated else self.source.top_elevation
        return max(h.elevation_upon_entry(pt) for h in covering)

    def surface_walk(self, a: CutawayPoint, b: Optional[CutawayPoint] = None) -> list[CutawayPoint]:
        for handler in self.handlers:
            trace = handler.surface_walk(a, b)
            if trace:
                return trace
        return []

    def contains(self, x: float, y: float) -> bool:
        return any(h.polygon.contains(x, y) for h in self.handlers)

    def segment_intersections(self, a: CutawayPoint, b: CutawayPoint) -> list[CutawayPoint]:
        """Boundary intersections of a|b across all polygons, ordered from a."""
        hits = [pt for h in self.handlers if h.aabb.overlaps_segment(a, b) for pt in h.segment_intersections(a, b)]
        hits.sort(key=lambda p: p.t0)
        return hits

    def line_segment_intersects(self, a: CutawayPoint, b: CutawayPoint) -> bool:
        return any(h.aabb.overlaps_segment(a, b) and h.line_segment_intersects(a, b) for h in self.handlers)

    def line_segment_crosses(self, a: CutawayPoint, b: CutawayPoint) -> bool:
        return any(h.aabb.overlaps_segment(a, b) and h.line_segment_crosses(a, b) for h in self.handlers)

    def __repr__(self) -> str:
        return f"CutawayRegion({self.name}, {len(self.handlers)} cutaways)"
