"""TokenElevationHandler - elevation-aware paths for moving tokens.

Given a straight horizontal movement from start to end, works out the 3D
waypoints a mover actually follows over the terrain along that line:

**Walking (construct_walking_path):**
    Repeatedly finds the support controlling the current point (see
    nearest_support), moves vertically onto it if floating above or buried
    in it, then walks its top surface toward the destination. Whenever a walk
    segment runs into another shape, control switches there.

**Burrowing (construct_burrowing_path):**
    Walks first, then replaces detours with straight tunnels wherever a
    diagonal between two waypoints stays inside solid terrain the whole way.

**Flying (construct_flying_path):**
    Walks first, joins up with a reverse walk from the destination when the
    destination cannot be reached directly, then replaces detours with
    straight flights wherever a diagonal stays clear of all solid terrain.

All geometry happens in the cutaway plane of the (slightly extended) segment.
Every entry point verifies its result and degrades to the straight line
[start, end] on any error, logging the cause.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from math import atan2, isfinite, isnan
from typing import Callable, Optional

import numpy as np
from shapely.geometry import LineString, Point

from terrainmapper.constants import GeometryConfig, PathConfig
from terrainmapper.core.cutaway import X_AXIS, CutawayFrame, CutawayPolygon
from terrainmapper.core.cutaway_handler import CutawayRegion, ElevationLocation
from terrainmapper.core.point_pool import CutawayPoint, PointPool
from terrainmapper.core.polygon_union import PolygonUnion, ShapelyPolygonUnion
from terrainmapper.core.tolerance import almost_equal
from terrainmapper.model.elevated_point import ElevatedPoint
from terrainmapper.model.movement_mode import MovementMode
from terrainmapper.model.scene import Scene

logger = logging.getLogger(__name__)

BELOW = ElevationLocation.BELOW
GROUND = ElevationLocation.GROUND
ABOVE = ElevationLocation.ABOVE
OUTSIDE = ElevationLocation.OUTSIDE


class PathConstructionError(RuntimeError):
    """Path construction hit a state that indicates a geometry bug."""


class PathVerificationError(PathConstructionError):
    """A constructed path failed the sanity checks."""


class DuplicateWaypointError(PathConstructionError):
    """The final two waypoints of a walk coincide."""


class PathConnectionError(PathConstructionError):
    """Forward and reverse flight paths could not be joined."""


@dataclass
class Support:
    """The shape controlling a mover's resting elevation at one point.

    Attributes:
        region: The controlling region, None if nothing covers the point
        location: Where the point sits relative to the region
        elevation: Entry elevation (where the mover lands or is pushed to)
    """

    region: Optional[CutawayRegion]
    location: ElevationLocation
    elevation: float

    @property
    def found(self) -> bool:
        return self.region is not None


@dataclass
class PathResult:
    """Outcome of one path query.

    Attributes:
        points: Waypoints from start to end
        degraded: True if construction failed and points is the straight line
        cause: The error behind a degraded result
    """

    points: list[ElevatedPoint]
    degraded: bool = False
    cause: Optional[BaseException] = None


class TokenElevationHandler:
    """Builds terrain-following paths through one scene.

    Each path query re-initializes the handler for its segment; nothing
    survives between queries except the point pool.

    Example:
        handler = TokenElevationHandler(scene)
        waypoints = handler.construct_path(start, end, burrowing=True)
    """

    def __init__(
        self,
        scene: Scene,
        union: Optional[PolygonUnion] = None,
        pool: Optional[PointPool] = None,
    ):
        self.scene = scene
        self.union = union or ShapelyPolygonUnion()
        self.pool = pool or PointPool()

        self.origin_start: Optional[ElevatedPoint] = None
        self.origin_end: Optional[ElevatedPoint] = None
        self.start: Optional[ElevatedPoint] = None
        self.end: Optional[ElevatedPoint] = None
        self.frame: Optional[CutawayFrame] = None
        self.start2d: Optional[CutawayPoint] = None
        self.end2d: Optional[CutawayPoint] = None
        self.regions: list[CutawayRegion] = []
        self.floors: list[CutawayRegion] = []
        self.scene_region: Optional[CutawayRegion] = None
        self._combined: Optional[list[CutawayPolygon]] = None
        self.partial_path: list[CutawayPoint] = []

    # =========================================================================
    # SETUP
    # =========================================================================

    def initialize(self, start: ElevatedPoint, end: ElevatedPoint) -> None:
        """Build the cutaway regions for the segment start -> end.

        Both endpoints are pushed ENDPOINT_EXTENSION past each other so no
        cutaway ends exactly at a path endpoint.
        """
        self.origin_start = start
        self.origin_end = end

        delta = np.array(end.xy, dtype=float) - np.array(start.xy, dtype=float)
        length = float(np.hypot(*delta))
        if length <= GeometryConfig.EPSILON:
            direction = np.array(GeometryConfig.DEGENERATE_DIRECTION, dtype=float)
        else:
            direction = delta / length
        ext = direction * GeometryConfig.ENDPOINT_EXTENSION
        self.start = ElevatedPoint(x=start.x - ext[0], y=start.y - ext[1], elevation=start.elevation)
        self.end = ElevatedPoint(x=end.x + ext[0], y=end.y + ext[1], elevation=end.elevation)
        self.frame = CutawayFrame(self.start, self.end)
        self.start2d = self.frame.to_2d(start)
        self.end2d = self.frame.to_2d(end)

        volumes = self.scene.filter_volumes_by_segment(self.start, self.end)
        floors = self.scene.filter_floors_by_segment(self.start, self.end)
        self.regions = [r for r in (self._region_for(v) for v in volumes) if r.handlers]
        self.floors = [r for r in (self._region_for(f) for f in floors) if r.handlers]
        self.scene_region = self._region_for(self.scene)
        self._combined = None
        logger.debug(
            f"Initialized {start} -> {end}: {len(self.regions)}/{len(volumes)} volumes, "
            f"{len(self.floors)}/{len(floors)} floors cut"
        )

    def _region_for(self, source) -> CutawayRegion:
        return CutawayRegion(source, source.cutaway(self.start, self.end), self.pool)

    @property
    def all_regions(self) -> list[CutawayRegion]:
        regions = self.regions + self.floors
        if self.scene_region is not None:
            regions.append(self.scene_region)
        return regions

    @property
    def region_cutaways(self) -> dict:
        """Cutaway polygons keyed by the volume, floor or scene they came from."""
        return {r.source: r.polygons for r in self.all_regions}

    @property
    def combined_cutaways(self) -> list[CutawayPolygon]:
        """Union of every cutaway (volumes, floors, scene), built on first use."""
        if self._combined is None:
            polygons = [p for r in self.all_regions for p in r.polygons]
            self._combined = self.union.union(polygons)
        return self._combined

    def to_2d(self, point: ElevatedPoint) -> CutawayPoint:
        return self.frame.to_2d(point, self.pool)

    def from_2d(self, pt2d: CutawayPoint) -> ElevatedPoint:
        if pt2d.almost_equal(self.start2d):
            return self.origin_start
        if pt2d.almost_equal(self.end2d):
            return self.origin_end
        return self.frame.from_2d(pt2d)

    # =========================================================================
    # SUPPORT SELECTION
    # =========================================================================

    def nearest_support(self, pt: CutawayPoint, exclude: Optional[CutawayRegion] = None) -> Support:
        """Choose the region that controls the mover's elevation at pt.

        Ranking, applied in order:
        1. Any region pt is buried in (BELOW); the highest entry wins.
        2. Any region pt stands on (GROUND); if several, the one whose surface
           leaves pt at the steepest upward angle, so a ramp beats the floor
           it starts from.
        3. Any region pt floats over (ABOVE); the highest entry wins.

        Args:
            pt: Point in this handler's cutaway plane
            exclude: Region to ignore (used to get unstuck)

        Returns:
            Support with region None if no region covers pt.
        """
        below: Optional[Support] = None
        above: Optional[Support] = None
        grounded: list[Support] = []
        for region in self.all_regions:
            if region is exclude or not region.aabb.contains_point(pt, X_AXIS):
                continue
            location, entry = region.classify(pt)
            if location == BELOW:
                if below is None or entry > below.elevation:
                    below = Support(region, location, entry)
            elif location == GROUND:
                grounded.append(Support(region, location, entry))
            elif location == ABOVE:
                if above is None or entry > above.elevation:
                    above = Support(region, location, entry)

        if below is not None:
            return below
        if len(grounded) == 1:
            return grounded[0]
        if grounded:
            return max(grounded, key=lambda s: self._departure_angle(s.region, pt))
        if above is not None:
            return above
        return Support(None, OUTSIDE, float("-inf"))

    def _departure_angle(self, region: CutawayRegion, pt: CutawayPoint) -> float:
        trace = region.surface_walk(pt, self.end2d)
        for q in trace[1:]:
            if not q.almost_equal(pt):
                return atan2(q.y - pt.y, q.x - pt.x)
        return float("-inf")

    # =========================================================================
    # WALKING
    # =========================================================================

    def _push(self, path: list[CutawayPoint], x: float, y: float) -> CutawayPoint:
        if almost_equal(path[-1].x, x) and almost_equal(path[-1].y, y):
            return path[-1]
        pt = self.pool.acquire(x, y)
        path.append(pt)
        return pt

    def _first_crossing(
        self, p: CutawayPoint, q: CutawayPoint, current: CutawayRegion
    ) -> Optional[tuple[CutawayPoint, CutawayRegion]]:
        """Earliest point after p where p|q meets a region other than current."""
        best = None
        for region in self.all_regions:
            if region is current or not region.aabb.overlaps_segment(p, q):
                continue
            for hit in region.segment_intersections(p, q):
                if hit.almost_equal(p):
                    continue
                if best is None or hit.t0 < best[0].t0:
                    best = (hit, region)
                break
        return best

    def _walk_2d(self) -> list[CutawayPoint]:
        """Surface-following path in cutaway coordinates."""
        a, b = self.start2d, self.end2d
        eps = GeometryConfig.EPSILON
        path = [self.pool.copy(a)]
        self.partial_path = path
        curr = path[0]
        support = self.nearest_support(curr)
        stalled = False

        for _ in range(PathConfig.MAX_ITERATIONS):
            if not support.found:
                logger.warning(f"No support under {curr}; stopping walk")
                break
            moved = False
            if support.location in (ABOVE, BELOW) and not almost_equal(curr.y, support.elevation):
                curr = self._push(path, curr.x, support.elevation)
                moved = True

            trace = support.region.surface_walk(curr, b)
            for p, q in zip(trace, trace[1:]):
                if q.almost_equal(p):
                    continue
                hit = self._first_crossing(p, q, support.region)
                if hit is not None:
                    curr = self._push(path, hit[0].x, hit[0].y)
                    moved = True
                    logger.debug(f"Walk on {support.region.name} ran into {hit[1].name} at {curr}")
                    break
                curr = self._push(path, q.x, q.y)
                moved = True

            if curr.x >= b.x - eps:
                break
            if not moved:
                if stalled:
                    logger.warning(f"Walk made no progress at {curr} on {support.region.name}; stopping")
                    break
                stalled = True
                support = self.nearest_support(curr, exclude=support.region)
                continue
            stalled = False
            support = self.nearest_support(curr)
        else:
            logger.warning(f"Walk hit the {PathConfig.MAX_ITERATIONS} iteration cap; returning partial path")

        self._adjust_endpoint(path)
        return path

    def _adjust_endpoint(self, path: list[CutawayPoint]) -> None:
        """Reconcile the final segment with the exact destination."""
        if len(path) < 2:
            return
        p, q = path[-2], path[-1]
        if p.almost_equal(q):
            raise DuplicateWaypointError(f"Walk ended with duplicate waypoints {p} and {q}")
        b = self.end2d
        dx, dy = q.x - p.x, q.y - p.y
        t = ((b.x - p.x) * dx + (b.y - p.y) * dy) / (dx * dx + dy * dy)
        t = min(max(t, 0.0), 1.0)
        closest = CutawayPoint(p.x + t * dx, p.y + t * dy)
        if closest.almost_equal(p):
            path.pop()
        elif not closest.almost_equal(q):
            path[-1] = self.pool.acquire(closest.x, closest.y)

    # =========================================================================
    # SHORTCUTS (burrowing and flying)
    # =========================================================================

    def _hits_only_at_ends(self, p: CutawayPoint, q: CutawayPoint) -> bool:
        for poly in self.combined_cutaways:
            if not poly.aabb.overlaps_segment(p, q):
                continue
            for hit in poly.segment_intersections(p, q, self.pool):
                if not (hit.almost_equal(p) or hit.almost_equal(q)):
                    return False
        return True

    def _midpoint_inside(self, p: CutawayPoint, q: CutawayPoint) -> bool:
        mx, my = (p.x + q.x) / 2, (p.y + q.y) / 2
        return any(poly.contains(mx, my) for poly in self.combined_cutaways)

    def tunnel_clear(self, p: CutawayPoint, q: CutawayPoint) -> bool:
        """Whether the diagonal p|q stays inside solid terrain end to end."""
        return self._midpoint_inside(p, q) and self._hits_only_at_ends(p, q)

    def flight_clear(self, p: CutawayPoint, q: CutawayPoint) -> bool:
        """Whether the diagonal p|q stays out of solid terrain end to end."""
        return not self._midpoint_inside(p, q) and self._hits_only_at_ends(p, q)

    def _reduce(
        self,
        path: list[CutawayPoint],
        clear: Callable[[CutawayPoint, CutawayPoint], bool],
        start_locations: tuple[ElevationLocation, ...],
        test_moves: tuple[ElevationLocation, ...],
        anchor_moves: tuple[ElevationLocation, ...],
    ) -> list[CutawayPoint]:
        """Replace detours with straight diagonals between anchor waypoints.

        Each move is typed by how it changes the point: GROUND when x
        advances, BELOW when rising in place, ABOVE when falling in place.
        Shortcuts are tried from the earliest anchor on test_moves; the point
        before each anchor_move becomes an anchor.
        """
        eps = GeometryConfig.EPSILON
        anchors = [0] if self.nearest_support(path[0]).location in start_locations else []
        prev = path[0]
        i = 1
        iterations = 0
        while i < len(path):
            iterations += 1
            if iterations > PathConfig.MAX_ITERATIONS:
                logger.warning(f"Shortcut pass hit the {PathConfig.MAX_ITERATIONS} iteration cap")
                break
            curr = path[i]
            if curr.x > prev.x + eps:
                move = GROUND
            elif curr.y > prev.y:
                move = BELOW
            else:
                move = ABOVE

            if move in test_moves:
                for k, anchor in enumerate(anchors):
                    if anchor >= i - 1:
                        break
                    if clear(path[anchor], curr):
                        del path[anchor + 1 : i]
                        anchors = anchors[: k + 1]
                        i = anchor + 1
                        break
            if move in anchor_moves and (not anchors or anchors[-1] < i - 1):
                anchors.append(i - 1)
            prev = path[i]
            i += 1
        return path

    def _burrow_2d(self) -> list[CutawayPoint]:
        path = self._walk_2d()
        b = self.end2d
        if (
            not path[-1].almost_equal(b)
            and self.nearest_support(b).location == BELOW
            and self.tunnel_clear(path[-1], b)
        ):
            path.append(self.pool.copy(b))
        return self._reduce(
            path,
            self.tunnel_clear,
            start_locations=(BELOW, GROUND),
            test_moves=(GROUND, ABOVE),
            anchor_moves=(GROUND, BELOW),
        )

    def _fly_2d(self) -> list[CutawayPoint]:
        path = self._walk_2d()
        b = self.end2d
        last = path[-1]
        if not almost_equal(last.y, b.y) and b.y > last.y and not self.flight_clear(last, b):
            path = self._connect_reverse(path)
        if (
            not path[-1].almost_equal(b)
            and self.nearest_support(b).location == ABOVE
            and self.flight_clear(path[-1], b)
        ):
            path.append(self.pool.copy(b))
        return self._reduce(
            path,
            self.flight_clear,
            start_locations=(ABOVE, GROUND),
            test_moves=(GROUND, BELOW),
            anchor_moves=(GROUND, ABOVE),
        )

    def _connect_reverse(self, path: list[CutawayPoint]) -> list[CutawayPoint]:
        """Join the forward walk with a walk from the destination back to the start.

        The join is the intersection found earliest along the reverse walk.

        Raises:
            PathConnectionError: If the two walks never meet.
        """
        reverse_3d = self.construct_path_for(
            self.scene, self.origin_end, self.origin_start, MovementMode(walking=True), self.union
        )
        rev = [self.to_2d(pt) for pt in reverse_3d]
        forward = LineString([p.xy for p in path]) if len(path) > 1 else Point(path[0].xy)

        for k in range(len(rev) - 1):
            seg = LineString([rev[k].xy, rev[k + 1].xy]) if not rev[k].almost_equal(rev[k + 1]) else Point(rev[k].xy)
            hits = seg.intersection(forward)
            if hits.is_empty:
                continue
            coords = [c for g in getattr(hits, "geoms", [hits]) for c in g.coords]
            ix = min(coords, key=lambda c: np.hypot(c[0] - rev[k].x, c[1] - rev[k].y))

            # Forward points strictly before the join
            along = forward.project(Point(ix)) if len(path) > 1 else 0.0
            walked = 0.0
            j = 1
            while j < len(path):
                walked += path[j - 1].distance_to(path[j])
                if walked >= along - GeometryConfig.EPSILON:
                    break
                j += 1

            joined = path[:j]
            for x, y in [ix] + [p.xy for p in reversed(rev[: k + 1])]:
                self._push(joined, x, y)
            logger.debug(f"Joined forward ({len(path)} pts) and reverse ({len(rev)} pts) walks at {ix}")
            return joined

        raise PathConnectionError(f"Forward and reverse walks between {self.origin_start} and {self.origin_end} never meet")

    # =========================================================================
    # VERIFICATION AND ENTRY POINTS
    # =========================================================================

    @staticmethod
    def verify_path(points: list[ElevatedPoint]) -> None:
        """Reject paths that indicate a construction bug.

        Raises:
            PathVerificationError: Empty, too long, NaN coordinates or
                elevations beyond MAX_ABS_ELEVATION.
        """
        if not points:
            raise PathVerificationError("Path is empty")
        if len(points) > PathConfig.MAX_WAYPOINTS:
            raise PathVerificationError(f"Path has {len(points)} waypoints (max {PathConfig.MAX_WAYPOINTS})")
        for pt in points:
            if isnan(pt.x) or isnan(pt.y) or isnan(pt.elevation):
                raise PathVerificationError(f"Path contains NaN coordinates: {pt}")
            if not isfinite(pt.elevation) or abs(pt.elevation) > PathConfig.MAX_ABS_ELEVATION:
                raise PathVerificationError(f"Path elevation out of range: {pt}")

    def _run(
        self,
        label: str,
        start: ElevatedPoint,
        end: ElevatedPoint,
        build: Callable[[], list[CutawayPoint]],
    ) -> PathResult:
        self.partial_path = []
        try:
            with self.pool.session():
                self.initialize(start, end)
                points = [self.from_2d(p) for p in build()]
            self.verify_path(points)
        except Exception as err:
            partial = [p.xy for p in self.partial_path]
            logger.error(
                f"{label} path from {start} to {end} failed ({err!r}); partial path {partial}; "
                f"falling back to a straight line",
                exc_info=True,
            )
            return PathResult([start, end], degraded=True, cause=err)
        logger.debug(f"{label} path from {start} to {end}: {len(points)} waypoints")
        return PathResult(points)

    def construct_walking_path(self, start: ElevatedPoint, end: ElevatedPoint) -> list[ElevatedPoint]:
        return self._run("Walking", start, end, self._walk_2d).points

    def construct_burrowing_path(self, start: ElevatedPoint, end: ElevatedPoint) -> list[ElevatedPoint]:
        return self._run("Burrowing", start, end, self._burrow_2d).points

    def construct_flying_path(self, start: ElevatedPoint, end: ElevatedPoint) -> list[ElevatedPoint]:
        return self._run("Flying", start, end, self._fly_2d).points

    def construct_path_result(
        self,
        start: ElevatedPoint,
        end: ElevatedPoint,
        flying: bool = False,
        burrowing: bool = False,
        walking: Optional[bool] = None,
        mode: Optional[MovementMode] = None,
    ) -> PathResult:
        """Like construct_path, but reports whether the result is a fallback."""
        if mode is None:
            if walking is None:
                walking = not (flying or burrowing)
            mode = MovementMode(walking=walking, flying=flying, burrowing=burrowing)

        if mode.is_unconstrained:
            logger.debug(f"Unconstrained ({mode}) move from {start} to {end}")
            return PathResult([start, end])
        if mode.flying:
            return self._run("Flying", start, end, self._fly_2d)
        if mode.burrowing:
            return self._run("Burrowing", start, end, self._burrow_2d)
        return self._run("Walking", start, end, self._walk_2d)

    def construct_path(
        self,
        start: ElevatedPoint,
        end: ElevatedPoint,
        flying: bool = False,
        burrowing: bool = False,
        walking: Optional[bool] = None,
        mode: Optional[MovementMode] = None,
    ) -> list[ElevatedPoint]:
        """Waypoints a mover follows from start to end, honoring terrain.

        Args:
            start: Where the mover is
            end: Where the mover is going
            flying: Mover can fly
            burrowing: Mover can burrow
            walking: Mover walks; defaults to True unless flying or burrowing
            mode: Explicit MovementMode, overrides the flags

        Returns:
            Ordered waypoints from start to end. Never raises: on internal
            errors the straight line [start, end] is returned.
        """
        return self.construct_path_result(start, end, flying, burrowing, walking, mode).points

    @staticmethod
    def construct_path_for(
        scene: Scene,
        start: ElevatedPoint,
        end: ElevatedPoint,
        mode: MovementMode,
        union: Optional[PolygonUnion] = None,
    ) -> list[ElevatedPoint]:
        """Stateless form of construct_path using a fresh handler."""
        return TokenElevationHandler(scene, union).construct_path(start, end, mode=mode)
