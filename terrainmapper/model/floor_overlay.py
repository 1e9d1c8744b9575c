"""FloorOverlay - a flat elevated platform independent of terrain volumes.

Floors (balconies, bridges, tile tops) are thin slabs: a mover can stand on
them, walk under them and fall onto them, but they do not fill the space
below like a terrain volume does.
"""

from typing import Sequence, Union

from shapely.geometry.base import BaseGeometry

from terrainmapper.constants import VolumeConfig
from terrainmapper.model.terrain_volume import TerrainVolume


class FloorOverlay(TerrainVolume):
    """A slab of FLOOR_THICKNESS whose top is the given elevation.

    Example:
        bridge = FloorOverlay(box(40, -5, 60, 5), elevation=30, name="bridge")
    """

    def __init__(
        self,
        footprint: Union[BaseGeometry, Sequence[tuple[float, float]]],
        elevation: float,
        name: str = "",
    ):
        super().__init__(
            footprint,
            plateau_elevation=elevation,
            bottom=elevation - VolumeConfig.FLOOR_THICKNESS,
            name=name,
        )

    @property
    def elevation(self) -> float:
        return self.plateau_elevation

    def __repr__(self) -> str:
        label = f"'{self.name}' " if self.name else ""
        return f"FloorOverlay({label}elevation={self.elevation})"
