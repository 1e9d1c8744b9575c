"""Cutaway points and the pool that recycles them.

Path construction runs once per movement step and creates many short-lived
2D points (query endpoints, intersections, waypoints). They are drawn from a
PointPool and handed back when the query finishes, on every exit path.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from math import hypot
from typing import Iterator, Optional

from terrainmapper.constants import PoolConfig
from terrainmapper.core.tolerance import almost_equal

logger = logging.getLogger(__name__)


class CutawayPoint:
    """A point in the cutaway plane.

    Attributes:
        x: Signed horizontal distance along the movement segment
        y: Elevation
        t0: Fraction along the segment (or along the query segment, for intersections)
        offset: Signed horizontal distance orthogonal to the segment, kept so
            projection back to 3D is exact
    """

    __slots__ = ("x", "y", "t0", "offset")

    def __init__(self, x: float = 0.0, y: float = 0.0, t0: Optional[float] = None, offset: float = 0.0):
        self.x = x
        self.y = y
        self.t0 = t0
        self.offset = offset

    def set(self, x: float, y: float, t0: Optional[float] = None, offset: float = 0.0) -> CutawayPoint:
        self.x = x
        self.y = y
        self.t0 = t0
        self.offset = offset
        return self

    def almost_equal(self, other: CutawayPoint) -> bool:
        return almost_equal(self.x, other.x) and almost_equal(self.y, other.y)

    def distance_to(self, other: CutawayPoint) -> float:
        return hypot(other.x - self.x, other.y - self.y)

    @property
    def xy(self) -> tuple[float, float]:
        return (self.x, self.y)

    def __repr__(self) -> str:
        return f"CutawayPoint(x={self.x:.4f}, y={self.y:.4f})"


class PointPool:
    """Recycles CutawayPoint objects.

    Points are leased with acquire() and returned with release(). Wrap a unit
    of work in session() to return everything leased inside it on exit,
    including when an exception propagates.

    Example:
        pool = PointPool()
        with pool.session():
            pt = pool.acquire(10.0, 5.0)
            ...
        assert pool.in_use == 0
    """

    def __init__(self, max_free: int = PoolConfig.MAX_FREE_POINTS):
        self._free: list[CutawayPoint] = []
        self._leased: list[CutawayPoint] = []
        self._sessions: list[list[CutawayPoint]] = []
        self._max_free = max_free

    @property
    def in_use(self) -> int:
        """Number of points currently leased."""
        return len(self._leased)

    @property
    def free(self) -> int:
        """Number of points waiting for reuse."""
        return len(self._free)

    def acquire(self, x: float, y: float, t0: Optional[float] = None, offset: float = 0.0) -> CutawayPoint:
        pt = self._free.pop() if self._free else CutawayPoint()
        pt.set(x, y, t0, offset)
        self._leased.append(pt)
        if self._sessions:
            self._sessions[-1].append(pt)
        return pt

    def copy(self, pt: CutawayPoint) -> CutawayPoint:
        return self.acquire(pt.x, pt.y, pt.t0, pt.offset)

    def release(self, pt: CutawayPoint) -> None:
        """Return a leased point. Releasing a point twice is a no-op."""
        for i in range(len(self._leased) - 1, -1, -1):
            if self._leased[i] is pt:
                del self._leased[i]
                break
        else:
            return
        if len(self._free) < self._max_free:
            self._free.append(pt)

    def release_all(self) -> None:
        while self._leased:
            self.release(self._leased[-1])

    @contextmanager
    def session(self) -> Iterator[PointPool]:
        """Release every point leased within the block when it exits."""
        leased: list[CutawayPoint] = []
        self._sessions.append(leased)
        try:
            yield self
        finally:
            self._sessions.pop()
            before = self.in_use
            for pt in reversed(leased):
                self.release(pt)
            if before != self.in_use:
                logger.debug(f"Released {before - self.in_use} pooled points at session end")
