"""Configuration constants for Terrain Mapper.

All configurable parameters are centralized here for easy tuning.

Classes:
    GeometryConfig: Numeric tolerances and cutaway construction parameters
    PathConfig: Path construction limits and verification bounds
    VolumeConfig: Default vertical extents of terrain volumes and floors
    MovementConfig: Movement actions mapped to walking/flying/burrowing
    PoolConfig: Temporary point pool sizing
    ChartConfig: Debug chart dimensions and styling
"""


class GeometryConfig:
    """Numeric tolerances and cutaway construction parameters."""

    # Absolute tolerance for almost-equal comparisons (length units)
    EPSILON = 1e-6

    # Both path endpoints are pushed this far past each other along the
    # horizontal direction so cutaways never end exactly at a path endpoint
    ENDPOINT_EXTENSION = 1.0

    # Horizontal direction used when start and end share the same x/y
    DEGENERATE_DIRECTION = (1.0, 0.0)


class PathConfig:
    """Path construction limits (hard caps instead of termination proofs)."""

    # Loop ceiling for walking, burrowing and flying passes
    MAX_ITERATIONS = 10_000

    # Verification bounds: longer paths or wilder elevations are treated as bugs
    MAX_WAYPOINTS = 9_999
    MAX_ABS_ELEVATION = 100_000


class VolumeConfig:
    """Default vertical extents for terrain volumes, floors and the scene."""

    # Volumes without an explicit bottom extend down to here
    MIN_ELEVATION = -1e6
    MAX_ELEVATION = 1e6

    # Floor overlays are thin slabs so they form proper cutaway polygons
    FLOOR_THICKNESS = 1.0

    # Depth of the whole-scene slab below the scene floor
    SCENE_FLOOR_DEPTH = 1e6


assert VolumeConfig.MIN_ELEVATION < -PathConfig.MAX_ABS_ELEVATION, "Volume bottoms must sit below any valid path"
assert VolumeConfig.FLOOR_THICKNESS > 0, "Floor overlays need a positive thickness"


class MovementConfig:
    """Movement actions and the vertical constraints they imply.

    Actions not listed anywhere (e.g. "blink", "displace") are unconstrained:
    terrain has no effect on them.
    """

    WALK_ACTIONS = frozenset({"walk", "crawl", "climb", "swim", "jump"})
    FLY_ACTIONS = frozenset({"fly"})
    BURROW_ACTIONS = frozenset({"burrow"})
    DEFAULT_ACTION = "walk"


assert not (MovementConfig.WALK_ACTIONS & MovementConfig.FLY_ACTIONS), "Walk and fly actions must be disjoint"
assert not (MovementConfig.WALK_ACTIONS & MovementConfig.BURROW_ACTIONS), "Walk and burrow actions must be disjoint"


class PoolConfig:
    """Temporary point pool sizing."""

    # Free points retained for reuse; extra released points are dropped
    MAX_FREE_POINTS = 4096


class ChartConfig:
    """Cutaway debug chart dimensions and styling."""

    DEFAULT_WIDTH = 900
    DEFAULT_HEIGHT = 450

    # Padding around the plotted elevation range
    ELEVATION_PADDING_FACTOR = 0.1
    ELEVATION_PADDING_MIN = 10.0

    # Polygons reaching below this are clipped in the chart (volume bottoms are very deep)
    CLIP_BELOW_PATH = 200.0

    SCENE_COLOR = "#A3A3A3"  # Neutral gray floor
    VOLUME_COLOR = "#8B5CF6"  # Violet terrain volumes
    FLOOR_COLOR = "#F59E0B"  # Amber floor overlays
    PATH_COLOR = "#EF4444"  # Red mover path
    FILL_ALPHA = 0.35
