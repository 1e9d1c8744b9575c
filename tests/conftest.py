"""Shared pytest fixtures for terrainmapper tests.

Provides the two reference cutaway polygons and small scenes laid out along
the map x-axis so the math stays simple.

COORDINATE SYSTEM:
    Scene tests move along y=0 from map x=0 to x=100. The handler extends the
    segment by 1 unit at each end, so map x maps to cutaway x + 1 and the
    scene floor slab spans cutaway x 0..102.
"""

import pytest
from shapely.geometry import box

from terrainmapper.core.cutaway import CutawayPolygon
from terrainmapper.core.point_pool import PointPool
from terrainmapper.model.elevated_point import ElevatedPoint
from terrainmapper.model.floor_overlay import FloorOverlay
from terrainmapper.model.scene import Scene
from terrainmapper.model.terrain_volume import TerrainVolume

# =============================================================================
# REFERENCE CUTAWAYS
# =============================================================================

# Flat ground, a 600-high step at 16249, a long ramp down to 200, then a drop
# back to 0 at 1326834 and flat ground to the end.
RAMP_FIXTURE_COORDS = [
    0, -200,
    0, 0,
    16249, 0,
    16249, 600,
    1326834, 200,
    1326834, 0,
    1735265, 0,
    1735265, -200,
]  # fmt: skip

# Ground at 0 up to 500 with a raised block (200..1000 at x 300..500) sitting
# on a plateau at 1000 that continues to 900. Vertical overhang at x=300.
OVERLAP_PLATEAU_COORDS = [
    (0, 0),
    (500, 0),
    (500, 200),
    (300, 200),
    (300, 1000),
    (900, 1000),
    (900, -200),
    (0, -200),
]


def ramp_surface(x: int) -> float:
    """Top elevation of the ramp fixture at integer x."""
    if x < 16249 or x >= 1326834:
        return 0.0
    return 600 + (x - 16249) * (200 - 600) / (1326834 - 16249)


@pytest.fixture
def ramp_polygon() -> CutawayPolygon:
    return CutawayPolygon.from_cutaway_points(RAMP_FIXTURE_COORDS)


@pytest.fixture
def overlap_polygon() -> CutawayPolygon:
    return CutawayPolygon.from_cutaway_points(OVERLAP_PLATEAU_COORDS)


@pytest.fixture
def pool() -> PointPool:
    return PointPool()


# =============================================================================
# SCENES (all volumes 20 units wide across the path at y=0)
# =============================================================================


def along(x: float, elevation: float = 0.0) -> ElevatedPoint:
    """Point on the test path line y=0."""
    return ElevatedPoint(x=x, y=0.0, elevation=elevation)


@pytest.fixture
def flat_scene() -> Scene:
    """Nothing but the baseline floor at 0."""
    return Scene(floor_elevation=0.0)


@pytest.fixture
def mesa_scene() -> Scene:
    """One plateau at 20 covering map x 40..60."""
    return Scene(volumes=[TerrainVolume(box(40, -10, 60, 10), plateau_elevation=20, name="mesa")])


@pytest.fixture
def ramp_scene() -> Scene:
    """Smooth ramp rising +x from 0 at x=40 to 20 at x=80."""
    return Scene(volumes=[TerrainVolume(box(40, -10, 80, 10), plateau_elevation=20, ramp_floor=0, name="ramp")])


@pytest.fixture
def touching_scene() -> Scene:
    """Plateau at 20 on x 40..60 touching a plateau at 30 on x 60..80."""
    return Scene(
        volumes=[
            TerrainVolume(box(40, -10, 60, 10), plateau_elevation=20, name="low"),
            TerrainVolume(box(60, -10, 80, 10), plateau_elevation=30, name="high"),
        ]
    )


@pytest.fixture
def gap_scene() -> Scene:
    """Plateau at 20 on x 40..60, open floor 60..70, plateau at 30 on x 70..90."""
    return Scene(
        volumes=[
            TerrainVolume(box(40, -10, 60, 10), plateau_elevation=20, name="low"),
            TerrainVolume(box(70, -10, 90, 10), plateau_elevation=30, name="high"),
        ]
    )


@pytest.fixture
def bridge_scene() -> Scene:
    """Thin floor overlay at 30 over map x 40..60, open floor underneath."""
    return Scene(floors=[FloorOverlay(box(40, -10, 60, 10), elevation=30, name="bridge")])

