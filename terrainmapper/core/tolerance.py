"""Tolerant float comparisons used throughout the cutaway geometry.

Degenerate geometry (touching vertices, coincident vertical edges, points a
hair off an edge) is handled by small absolute tolerances instead of errors.
"""

from math import isfinite

from terrainmapper.constants import GeometryConfig


def almost_equal(a: float, b: float, epsilon: float = GeometryConfig.EPSILON) -> bool:
    """True if a and b differ by at most epsilon (infinities compare exactly)."""
    if not (isfinite(a) and isfinite(b)):
        return a == b
    return abs(a - b) <= epsilon


def almost_less_than(a: float, b: float, epsilon: float = GeometryConfig.EPSILON) -> bool:
    """a <= b, allowing a to exceed b by epsilon."""
    return a < b or almost_equal(a, b, epsilon)


def almost_greater_than(a: float, b: float, epsilon: float = GeometryConfig.EPSILON) -> bool:
    """a >= b, allowing a to fall short of b by epsilon."""
    return a > b or almost_equal(a, b, epsilon)


def almost_between(value: float, a: float, b: float, epsilon: float = GeometryConfig.EPSILON) -> bool:
    """value lies in the closed range spanned by a and b (in either order)."""
    lo, hi = (a, b) if a <= b else (b, a)
    return almost_greater_than(value, lo, epsilon) and almost_less_than(value, hi, epsilon)
