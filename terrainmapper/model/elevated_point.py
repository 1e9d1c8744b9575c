"""ElevatedPoint - The 3D geometry atom for terrain movement.

An ElevatedPoint is a horizontal map position plus an elevation. Path
endpoints come in as ElevatedPoints and every computed waypoint goes out as a
fresh one.
"""

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class ElevatedPoint:
    """A point in 3D space: map x/y plus elevation.

    Attributes:
        x: Horizontal map coordinate
        y: Horizontal map coordinate
        elevation: Vertical coordinate, same length units as x/y

    Example:
        point = ElevatedPoint(x=100.0, y=250.0, elevation=20.0)
    """

    x: float
    y: float
    elevation: float = 0.0

    def __post_init__(self) -> None:
        """Validate data after initialization."""
        if np.isnan(self.elevation):
            raise ValueError(f"ElevatedPoint cannot have NaN elevation at ({self.x}, {self.y})")

    @property
    def xy(self) -> tuple[float, float]:
        """Return (x, y) tuple - the horizontal position."""
        return (self.x, self.y)

    def xy_equals(self, other: "ElevatedPoint") -> bool:
        """Whether both points share the same horizontal position."""
        return self.x == other.x and self.y == other.y

    def with_elevation(self, elevation: float) -> "ElevatedPoint":
        return ElevatedPoint(x=self.x, y=self.y, elevation=elevation)

    def horizontal_distance_to(self, other: "ElevatedPoint") -> float:
        return float(np.hypot(other.x - self.x, other.y - self.y))

    def __repr__(self) -> str:
        return f"ElevatedPoint(x={self.x:.2f}, y={self.y:.2f}, elev={self.elevation:.2f})"
