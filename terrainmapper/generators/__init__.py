"""Path construction over terrain.

Provides the TokenElevationHandler with walking, burrowing and flying path
algorithms, plus the PathResult type and the construction errors.
"""

from terrainmapper.generators.token_elevation_handler import (
    DuplicateWaypointError,
    PathConnectionError,
    PathConstructionError,
    PathResult,
    PathVerificationError,
    Support,
    TokenElevationHandler,
)

__all__ = [
    "TokenElevationHandler",
    "PathResult",
    "Support",
    "PathConstructionError",
    "PathVerificationError",
    "DuplicateWaypointError",
    "PathConnectionError",
]
