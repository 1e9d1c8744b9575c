"""TerrainVolume - a designer-placed region with a plateau or ramp top.

A volume is a map footprint (shapely polygon, holes allowed) extruded
vertically. Elevated volumes have a flat plateau top, or a ramp rising from
ramp_floor to the plateau along ramp_direction, optionally in discrete steps.
Non-elevated volumes (plain effect regions) produce no cutaways.

Cutaways are taken along the horizontal line of a 3D segment: each stretch of
the line inside the footprint becomes one CutawayPolygon with vertical left
and right edges, the ramp/plateau profile on top and a flat bottom.
"""

from __future__ import annotations

import logging
from math import ceil, cos, radians, sin
from typing import Optional, Sequence, Union

import numpy as np
from shapely.geometry import LineString, MultiPolygon, Point, Polygon, box
from shapely.geometry.base import BaseGeometry
from shapely.ops import linemerge

from terrainmapper.constants import GeometryConfig, VolumeConfig
from terrainmapper.core.cutaway import CutawayFrame, CutawayPolygon
from terrainmapper.core.point_pool import CutawayPoint
from terrainmapper.model.elevated_point import ElevatedPoint

logger = logging.getLogger(__name__)

Footprint = Union[Polygon, MultiPolygon]


def as_footprint(footprint: Union[BaseGeometry, Sequence[tuple[float, float]]]) -> Footprint:
    """Coerce a shapely geometry or an (x, y) vertex list into a valid footprint."""
    if not isinstance(footprint, BaseGeometry):
        footprint = Polygon(footprint)
    if not isinstance(footprint, (Polygon, MultiPolygon)):
        raise ValueError(f"Footprint must be a Polygon or MultiPolygon, got {footprint.geom_type}")
    if footprint.is_empty or footprint.area <= 0:
        raise ValueError("Footprint must have a positive area")
    return footprint


def segment_line(start: ElevatedPoint, end: ElevatedPoint) -> BaseGeometry:
    """Horizontal projection of a 3D segment (a point if start/end share x/y)."""
    if start.xy == end.xy:
        return Point(start.xy)
    return LineString([start.xy, end.xy])


def footprint_intervals(footprint: Footprint, frame: CutawayFrame) -> list[tuple[float, float]]:
    """Cutaway x-intervals where the frame's segment line lies inside the footprint."""
    if frame.length == 0:
        return []
    line = LineString([frame.start.xy, frame.end.xy])
    inside = footprint.intersection(line)
    if inside.is_empty:
        return []
    if inside.geom_type == "MultiLineString":
        inside = linemerge(inside)
    parts = getattr(inside, "geoms", [inside])

    intervals = []
    for part in parts:
        if part.geom_type != "LineString":
            continue  # Touching at a single point has no extent
        xs = [frame.to_2d(ElevatedPoint(x=c[0], y=c[1])).x for c in (part.coords[0], part.coords[-1])]
        x0, x1 = min(xs), max(xs)
        if x1 - x0 > GeometryConfig.EPSILON:
            intervals.append((x0, x1))
    intervals.sort()
    return intervals


class TerrainVolume:
    """A vertically extruded map region.

    Args:
        footprint: Map-space outline (shapely Polygon/MultiPolygon or vertex list)
        plateau_elevation: Top of the volume; None for a non-elevated region
        ramp_floor: Low end of the ramp; None for a flat plateau
        ramp_direction: Direction the ramp rises, degrees (0 = +x, 90 = +y)
        ramp_step_size: Step height for a stepped ramp; 0 for a smooth ramp
        bottom: Lowest elevation of the solid
        top: Upper extent of a non-elevated region
        name: Label for logs and charts

    Example:
        ramp = TerrainVolume(box(0, 0, 100, 50), plateau_elevation=20, ramp_floor=0)
        ramp.elevation_at(50, 25)  # 10.0
    """

    def __init__(
        self,
        footprint: Union[BaseGeometry, Sequence[tuple[float, float]]],
        plateau_elevation: Optional[float] = None,
        ramp_floor: Optional[float] = None,
        ramp_direction: float = 0.0,
        ramp_step_size: float = 0.0,
        bottom: float = VolumeConfig.MIN_ELEVATION,
        top: float = VolumeConfig.MAX_ELEVATION,
        name: str = "",
    ):
        self.footprint = as_footprint(footprint)
        if ramp_floor is not None and plateau_elevation is None:
            raise ValueError("A ramp needs a plateau elevation to rise to")
        if ramp_floor is not None and ramp_floor > plateau_elevation:
            raise ValueError(f"Ramp floor {ramp_floor} is above plateau {plateau_elevation}")
        if ramp_step_size < 0:
            raise ValueError(f"Ramp step size must not be negative, got {ramp_step_size}")
        if plateau_elevation is not None and plateau_elevation <= bottom:
            raise ValueError(f"Plateau {plateau_elevation} must be above the bottom {bottom}")

        self._plateau_elevation = plateau_elevation
        self.ramp_floor = ramp_floor
        self.ramp_direction = ramp_direction
        self.ramp_step_size = ramp_step_size
        self.bottom = bottom
        self.top = top
        self.name = name

        theta = radians(ramp_direction)
        self._ramp_axis = np.array([cos(theta), sin(theta)])
        coords = np.array(self._outline_coords())
        along = coords @ self._ramp_axis
        self._ramp_min = float(along.min())
        self._ramp_max = float(along.max())

    def _outline_coords(self) -> list[tuple[float, float]]:
        polys = self.footprint.geoms if isinstance(self.footprint, MultiPolygon) else [self.footprint]
        return [c for p in polys for c in p.exterior.coords]

    # ----- Collaborator surface ----- #

    @property
    def is_elevated(self) -> bool:
        return self._plateau_elevation is not None

    @property
    def is_ramp(self) -> bool:
        return self.is_elevated and self.ramp_floor is not None

    @property
    def plateau_elevation(self) -> float:
        if self._plateau_elevation is None:
            return self.top
        return self._plateau_elevation

    @property
    def top_elevation(self) -> float:
        """Highest elevation of the region (plateau if elevated, else its upper extent)."""
        return self.plateau_elevation

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        return self.footprint.bounds

    def segment_in_bounds(self, start: ElevatedPoint, end: ElevatedPoint) -> bool:
        """Whether the segment's horizontal line touches the footprint bounding box."""
        return box(*self.bounds).intersects(segment_line(start, end))

    # ----- Elevation profile ----- #

    def _elevation_at_fraction(self, frac: float) -> float:
        frac = min(max(frac, 0.0), 1.0)
        delta = self.plateau_elevation - self.ramp_floor
        if self.ramp_step_size <= 0:
            return self.ramp_floor + frac * delta
        n_steps = ceil(delta / self.ramp_step_size)
        passed = sum(1 for i in range(n_steps) if frac >= (i + 1) / (n_steps + 1))
        return min(self.ramp_floor + passed * self.ramp_step_size, self.plateau_elevation)

    def _fraction_at(self, x: float, y: float) -> float:
        span = self._ramp_max - self._ramp_min
        if span <= 0:
            return 1.0
        return (float(np.array([x, y]) @ self._ramp_axis) - self._ramp_min) / span

    def elevation_at(self, x: float, y: float) -> float:
        """Top elevation at a map location (the footprint is not checked)."""
        if not self.is_ramp:
            return self.plateau_elevation
        return self._elevation_at_fraction(self._fraction_at(x, y))

    def _step_breaks(self, frame: CutawayFrame, x0: float, x1: float) -> list[float]:
        """Cutaway x positions of step risers strictly inside (x0, x1)."""
        if self.ramp_step_size <= 0:
            return []
        rate = float(frame.direction @ self._ramp_axis)
        if abs(rate) <= GeometryConfig.EPSILON:
            return []
        origin = float(frame.origin @ self._ramp_axis)
        span = self._ramp_max - self._ramp_min
        n_steps = ceil((self.plateau_elevation - self.ramp_floor) / self.ramp_step_size)
        breaks = []
        for i in range(n_steps):
            s = self._ramp_min + span * (i + 1) / (n_steps + 1)
            x = (s - origin) / rate
            if x0 + GeometryConfig.EPSILON < x < x1 - GeometryConfig.EPSILON:
                breaks.append(x)
        return sorted(breaks)

    def _top_profile(self, frame: CutawayFrame, x0: float, x1: float) -> list[tuple[float, float]]:
        """Top surface vertices from x0 to x1, with vertical risers at step breaks."""
        if not self.is_ramp:
            return [(x0, self.plateau_elevation), (x1, self.plateau_elevation)]

        def elevation(x: float) -> float:
            return self.elevation_at(*frame.horizontal_at(x))

        if self.ramp_step_size <= 0:
            return [(x0, elevation(x0)), (x1, elevation(x1))]

        edges = [x0] + self._step_breaks(frame, x0, x1) + [x1]
        profile = []
        for left, right in zip(edges[:-1], edges[1:]):
            level = elevation((left + right) / 2)
            profile.extend([(left, level), (right, level)])
        return profile

    def cutaway(self, start: ElevatedPoint, end: ElevatedPoint) -> list[CutawayPolygon]:
        """Cross-sections of this volume in the vertical plane through start -> end."""
        if not self.is_elevated:
            return []
        frame = CutawayFrame(start, end)
        polygons = []
        for x0, x1 in footprint_intervals(self.footprint, frame):
            top = self._top_profile(frame, x0, x1)
            coords = [(x0, self.bottom)] + top + [(x1, self.bottom)]
            polygons.append(CutawayPolygon([CutawayPoint(x, y) for x, y in coords], start, end))
        logger.debug(f"{self} cut into {len(polygons)} cutaways")
        return polygons

    def __repr__(self) -> str:
        kind = "ramp" if self.is_ramp else ("plateau" if self.is_elevated else "region")
        label = f"'{self.name}' " if self.name else ""
        return f"TerrainVolume({label}{kind}, top={self.top_elevation})"
