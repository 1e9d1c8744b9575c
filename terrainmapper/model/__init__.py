"""Data model for terrain and movers.

- ElevatedPoint: Geometry atom (x, y, elevation)
- MovementMode: Walking/flying/burrowing flags for one move
- TerrainVolume: Plateau, ramp or stepped ramp over a map footprint
- FloorOverlay: Thin flat platform
- Scene: Baseline floor plus all volumes and floors
"""

from terrainmapper.model.elevated_point import ElevatedPoint
from terrainmapper.model.floor_overlay import FloorOverlay
from terrainmapper.model.movement_mode import MovementMode
from terrainmapper.model.scene import Scene
from terrainmapper.model.terrain_volume import TerrainVolume

__all__ = [
    "ElevatedPoint",
    "MovementMode",
    "TerrainVolume",
    "FloorOverlay",
    "Scene",
]
