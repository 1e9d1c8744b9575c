"""Cutaway geometry: the vertical plane through a movement segment.

- tolerance: almost-equal float comparisons
- point_pool: CutawayPoint and the PointPool recycling them
- cutaway: 3D <-> cutaway projection, AABB2d, CutawayPolygon
- polygon_union: PolygonUnion protocol and the shapely implementation
- cutaway_handler: ElevationLocation, CutawayHandler, CutawayRegion
"""

from terrainmapper.core.cutaway import AABB2d, CutawayFrame, CutawayPolygon, from_2d, to_2d
from terrainmapper.core.cutaway_handler import CutawayHandler, CutawayRegion, ElevationLocation
from terrainmapper.core.point_pool import CutawayPoint, PointPool
from terrainmapper.core.polygon_union import PolygonUnion, ShapelyPolygonUnion
from terrainmapper.core.tolerance import almost_between, almost_equal, almost_greater_than, almost_less_than

__all__ = [
    # Projection and primitives
    "CutawayFrame",
    "to_2d",
    "from_2d",
    "AABB2d",
    "CutawayPolygon",
    "CutawayPoint",
    "PointPool",
    # Union
    "PolygonUnion",
    "ShapelyPolygonUnion",
    # Handlers
    "ElevationLocation",
    "CutawayHandler",
    "CutawayRegion",
    # Tolerance
    "almost_equal",
    "almost_less_than",
    "almost_greater_than",
    "almost_between",
]
