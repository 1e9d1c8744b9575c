"""Scene - the world a mover travels in.

Holds the baseline floor elevation plus the designer-placed terrain volumes
and floor overlays. The baseline floor is itself a support: wherever no
volume governs, movers rest on it.
"""

from __future__ import annotations

import logging
from typing import Iterable

from terrainmapper.constants import GeometryConfig, VolumeConfig
from terrainmapper.core.cutaway import CutawayFrame, CutawayPolygon
from terrainmapper.core.point_pool import CutawayPoint
from terrainmapper.model.elevated_point import ElevatedPoint
from terrainmapper.model.floor_overlay import FloorOverlay
from terrainmapper.model.terrain_volume import TerrainVolume

logger = logging.getLogger(__name__)


class Scene:
    """Baseline floor plus terrain volumes and floor overlays.

    Example:
        scene = Scene(floor_elevation=0.0, volumes=[plateau], floors=[bridge])
        scene.filter_volumes_by_segment(start, end)
    """

    name = "scene"
    is_ramp = False
    is_elevated = False

    def __init__(
        self,
        floor_elevation: float = 0.0,
        volumes: Iterable[TerrainVolume] = (),
        floors: Iterable[FloorOverlay] = (),
    ):
        self.floor_elevation = floor_elevation
        self.volumes: list[TerrainVolume] = list(volumes)
        self.floors: list[FloorOverlay] = list(floors)

    @property
    def plateau_elevation(self) -> float:
        return self.floor_elevation

    @property
    def top_elevation(self) -> float:
        return self.floor_elevation

    def add_volume(self, volume: TerrainVolume) -> None:
        self.volumes.append(volume)

    def add_floor(self, floor: FloorOverlay) -> None:
        self.floors.append(floor)

    def elevated_volumes(self) -> list[TerrainVolume]:
        """Volumes that affect mover elevation (plain effect regions do not)."""
        return [v for v in self.volumes if v.is_elevated]

    def filter_volumes_by_segment(self, start: ElevatedPoint, end: ElevatedPoint) -> list[TerrainVolume]:
        return [v for v in self.elevated_volumes() if v.segment_in_bounds(start, end)]

    def filter_floors_by_segment(self, start: ElevatedPoint, end: ElevatedPoint) -> list[FloorOverlay]:
        return [f for f in self.floors if f.segment_in_bounds(start, end)]

    def cutaway(self, start: ElevatedPoint, end: ElevatedPoint) -> list[CutawayPolygon]:
        """The baseline floor as one deep slab spanning the whole segment."""
        frame = CutawayFrame(start, end)
        if frame.length:
            x0, x1 = 0.0, frame.length
        else:
            x0, x1 = -GeometryConfig.ENDPOINT_EXTENSION, GeometryConfig.ENDPOINT_EXTENSION
        top = self.floor_elevation
        bottom = top - VolumeConfig.SCENE_FLOOR_DEPTH
        corners = [(x0, bottom), (x0, top), (x1, top), (x1, bottom)]
        return [CutawayPolygon([CutawayPoint(x, y) for x, y in corners], start, end)]

    def __repr__(self) -> str:
        return f"Scene(floor={self.floor_elevation}, volumes={len(self.volumes)}, floors={len(self.floors)})"
