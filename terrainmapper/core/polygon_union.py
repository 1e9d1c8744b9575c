"""Polygon union service for combining cutaways into one obstacle set.

Shortcut tests during burrowing and flying need the merged cross-section of
every shape along the path. Clipping is delegated to a PolygonUnion so the
geometry library stays swappable; ShapelyPolygonUnion is the default.
"""

import logging
from typing import Protocol, Sequence

from shapely.geometry import MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.geometry.polygon import orient
from shapely.ops import unary_union
from shapely.validation import make_valid

from terrainmapper.constants import GeometryConfig
from terrainmapper.core.cutaway import CutawayPolygon

logger = logging.getLogger(__name__)


class PolygonUnion(Protocol):
    """Anything that can merge cutaway polygons into non-overlapping ones."""

    def union(self, polygons: Sequence[CutawayPolygon]) -> list[CutawayPolygon]:
        ...


def _polygon_parts(geom: BaseGeometry) -> list[Polygon]:
    if geom.is_empty:
        return []
    if isinstance(geom, Polygon):
        return [geom]
    if isinstance(geom, MultiPolygon):
        return list(geom.geoms)
    if hasattr(geom, "geoms"):
        return [part for g in geom.geoms for part in _polygon_parts(g)]
    # Points and lines left over from make_valid carry no area
    return []


class ShapelyPolygonUnion:
    """PolygonUnion backed by shapely's unary_union.

    Output polygons are oriented clockwise (y up), the cutaway convention, so
    no orientation flipping is needed before or after the union.
    """

    def __init__(self, min_area: float = GeometryConfig.EPSILON):
        self.min_area = min_area

    def union(self, polygons: Sequence[CutawayPolygon]) -> list[CutawayPolygon]:
        if not polygons:
            return []
        shapes = [p.shape if p.shape.is_valid else make_valid(p.shape) for p in polygons]
        merged = unary_union(shapes)

        result: list[CutawayPolygon] = []
        for part in _polygon_parts(merged):
            if part.area <= self.min_area:
                continue
            part = orient(part, sign=-1.0)
            shell = list(part.exterior.coords)[:-1]
            holes = [list(ring.coords)[:-1] for ring in part.interiors]
            result.append(CutawayPolygon(shell, holes=holes))

        logger.debug(f"Union of {len(polygons)} cutaways -> {len(result)} combined polygons")
        return result
