"""
Geometry and hit-testing primitives for the schematic canvas.

This module contains no Qt dependencies. Points are plain (x, y) floats in
scene coordinates.
"""

import math
from typing import Iterable, Optional

# Two coordinates closer than this are the same point
SNAP_TOLERANCE = 0.001


def distance(ax: float, ay: float, bx: float, by: float) -> float:
    """Euclidean distance between two points."""
    return math.hypot(bx - ax, by - ay)


def points_coincide(ax: float, ay: float, bx: float, by: float, tolerance: float = SNAP_TOLERANCE) -> bool:
    """Return True if two points lie within tolerance of each other."""
    return distance(ax, ay, bx, by) <= tolerance


def project_point_to_segment(
    px: float, py: float, x1: float, y1: float, x2: float, y2: float
) -> tuple[float, float, float]:
    """
    Project a point onto a line segment.

    The projection is clamped to the segment, so the result always lies
    between the two endpoints.

    Returns:
        (x, y, t) where (x, y) is the projected point and t in [0, 1] is its
        position along the segment measured from (x1, y1).
    """
    dx = x2 - x1
    dy = y2 - y1
    length_sq = dx * dx + dy * dy

    if length_sq == 0:
        # Degenerate segment is a single point
        return x1, y1, 0.0

    t = ((px - x1) * dx + (py - y1) * dy) / length_sq
    t = max(0.0, min(1.0, t))
    return x1 + t * dx, y1 + t * dy, t


def point_to_segment_distance(px: float, py: float, x1: float, y1: float, x2: float, y2: float) -> float:
    """Shortest distance from a point to a line segment."""
    proj_x, proj_y, _ = project_point_to_segment(px, py, x1, y1, x2, y2)
    return distance(px, py, proj_x, proj_y)


def nearest_within(candidates: Iterable[tuple[int, float]], tolerance: float) -> Optional[tuple[int, float]]:
    """
    Pick the nearest candidate within tolerance.

    Args:
        candidates: Iterable of (item_id, distance) pairs.
        tolerance: Maximum accepted distance (inclusive).

    Returns:
        The (item_id, distance) pair with the smallest distance, ties broken
        by the lowest id, or None if nothing is within tolerance.
    """
    best = None
    for item_id, dist in candidates:
        if dist > tolerance:
            continue
        if best is None or (dist, item_id) < (best[1], best[0]):
            best = (item_id, dist)
    return best


def are_collinear(
    ax: float, ay: float, bx: float, by: float, cx: float, cy: float, tolerance: float = SNAP_TOLERANCE
) -> bool:
    """Return True if point b lies on the straight line through a and c, between them."""
    cross = (bx - ax) * (cy - ay) - (by - ay) * (cx - ax)
    span = distance(ax, ay, cx, cy)
    if span == 0:
        return points_coincide(ax, ay, bx, by, tolerance)
    if abs(cross) / span > tolerance:
        return False
    return point_to_segment_distance(bx, by, ax, ay, cx, cy) <= tolerance


def segment_intersection(
    a1: tuple[float, float],
    a2: tuple[float, float],
    b1: tuple[float, float],
    b2: tuple[float, float],
) -> Optional[tuple[float, float]]:
    """
    Intersection point of two segments, or None.

    Parallel (including overlapping) segments report no intersection; a
    crossing at an endpoint counts.
    """
    rx, ry = a2[0] - a1[0], a2[1] - a1[1]
    sx, sy = b2[0] - b1[0], b2[1] - b1[1]
    denom = rx * sy - ry * sx
    if abs(denom) < 1e-12:
        return None

    qpx, qpy = b1[0] - a1[0], b1[1] - a1[1]
    t = (qpx * sy - qpy * sx) / denom
    u = (qpx * ry - qpy * rx) / denom

    eps = 1e-9
    if -eps <= t <= 1 + eps and -eps <= u <= 1 + eps:
        return (a1[0] + t * rx, a1[1] + t * ry)
    return None


def snap_to_grid(x: float, y: float, grid_size: float) -> tuple[float, float]:
    """Snap a point to the nearest grid intersection."""
    if grid_size <= 0:
        return x, y
    return round(x / grid_size) * grid_size, round(y / grid_size) * grid_size
