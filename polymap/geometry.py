from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

Point = Tuple[float, float]
BBox = Tuple[float, float, float, float]

# Relative tolerance on the sine of the angle between two directions.
PARALLEL_EPS = 1e-9


def _cross(ax: float, ay: float, bx: float, by: float) -> float:
    return ax * by - ay * bx


def _dot(ax: float, ay: float, bx: float, by: float) -> float:
    return ax * bx + ay * by


def distance(a: Point, b: Point) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])


def midpoint(a: Point, b: Point) -> Point:
    return ((a[0] + b[0]) * 0.5, (a[1] + b[1]) * 0.5)


def unit(dx: float, dy: float) -> Tuple[float, float]:
    length = math.hypot(dx, dy)
    if length == 0:
        return 0.0, 0.0
    return dx / length, dy / length


def orient(a: Point, b: Point, c: Point) -> float:
    return _cross(b[0] - a[0], b[1] - a[1], c[0] - a[0], c[1] - a[1])


def segment_bounds(a: Point, b: Point) -> BBox:
    return (min(a[0], b[0]), min(a[1], b[1]), max(a[0], b[0]), max(a[1], b[1]))


def bounds_intersect(b1: Optional[BBox], b2: Optional[BBox]) -> bool:
    if b1 is None or b2 is None:
        return False
    return not (b1[2] < b2[0] or b2[2] < b1[0] or b1[3] < b2[1] or b2[3] < b1[1])


def is_parallel(p1: Point, p2: Point, q1: Point, q2: Point) -> bool:
    dx1, dy1 = p2[0] - p1[0], p2[1] - p1[1]
    dx2, dy2 = q2[0] - q1[0], q2[1] - q1[1]
    l1 = math.hypot(dx1, dy1)
    l2 = math.hypot(dx2, dy2)
    if l1 == 0 or l2 == 0:
        return True
    return abs(_cross(dx1, dy1, dx2, dy2)) <= PARALLEL_EPS * l1 * l2


def line_intersection_params(p1: Point, p2: Point, q1: Point, q2: Point) -> Optional[Tuple[float, float]]:
    """Parameters (t, u) of the infinite-line intersection p1 + t*(p2-p1) == q1 + u*(q2-q1)."""
    rx, ry = p2[0] - p1[0], p2[1] - p1[1]
    sx, sy = q2[0] - q1[0], q2[1] - q1[1]
    denom = _cross(rx, ry, sx, sy)
    if abs(denom) <= PARALLEL_EPS * math.hypot(rx, ry) * math.hypot(sx, sy):
        return None
    qpx, qpy = q1[0] - p1[0], q1[1] - p1[1]
    t = _cross(qpx, qpy, sx, sy) / denom
    u = _cross(qpx, qpy, rx, ry) / denom
    return t, u


def segments_cross(p1: Point, p2: Point, q1: Point, q2: Point, eps: float = 1e-9) -> bool:
    """True iff the segments cross at a point interior to both."""
    params = line_intersection_params(p1, p2, q1, q2)
    if params is None:
        return False
    t, u = params
    return eps < t < 1.0 - eps and eps < u < 1.0 - eps


def position_on_line(a: Point, b: Point, p: Point) -> float:
    vx, vy = b[0] - a[0], b[1] - a[1]
    l2 = vx * vx + vy * vy
    if l2 == 0:
        return 0.0
    return _dot(p[0] - a[0], p[1] - a[1], vx, vy) / l2


def point_at(a: Point, b: Point, t: float) -> Point:
    return (a[0] + t * (b[0] - a[0]), a[1] + t * (b[1] - a[1]))


def closest_point_on_segment(a: Point, b: Point, p: Point) -> Point:
    t = min(1.0, max(0.0, position_on_line(a, b, p)))
    return point_at(a, b, t)


def segment_contains(a: Point, b: Point, p: Point, tol: float) -> bool:
    """Point lies on segment ab, within ``tol`` of the line and between the endpoints."""
    length = distance(a, b)
    if length == 0:
        return distance(a, p) <= tol
    if abs(orient(a, b, p)) / length > tol:
        return False
    t = position_on_line(a, b, p)
    slack = tol / length
    return -slack <= t <= 1.0 + slack


def angle_between_vectors(v1: Tuple[float, float], v2: Tuple[float, float]) -> float:
    """Unsigned angle in degrees, in [0, 180]."""
    l1 = math.hypot(v1[0], v1[1])
    l2 = math.hypot(v2[0], v2[1])
    if l1 == 0 or l2 == 0:
        return 0.0
    cos = _dot(v1[0], v1[1], v2[0], v2[1]) / (l1 * l2)
    return math.degrees(math.acos(max(-1.0, min(1.0, cos))))


def signed_turn(v_in: Tuple[float, float], v_out: Tuple[float, float]) -> float:
    """Signed turn angle in radians from v_in to v_out; positive turns left."""
    return math.atan2(_cross(v_in[0], v_in[1], v_out[0], v_out[1]), _dot(v_in[0], v_in[1], v_out[0], v_out[1]))


def polygon_signed_area(points: Sequence[Point]) -> float:
    if len(points) < 3:
        return 0.0
    pts = np.asarray(points, dtype=float)
    x = pts[:, 0]
    y = pts[:, 1]
    return float(0.5 * (np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))))


def polygon_area(points: Sequence[Point]) -> float:
    return abs(polygon_signed_area(points))


def is_counter_clockwise(points: Sequence[Point]) -> bool:
    return polygon_signed_area(points) > 0


def polygon_centroid(points: Sequence[Point]) -> Point:
    """Area centroid of an open ring; falls back to the vertex mean for degenerate rings."""
    if not points:
        return (0.0, 0.0)
    pts = np.asarray(points, dtype=float)
    x = pts[:, 0]
    y = pts[:, 1]
    # Shift to the first vertex to keep the products small.
    x0, y0 = float(x[0]), float(y[0])
    xs = x - x0
    ys = y - y0
    xn = np.roll(xs, -1)
    yn = np.roll(ys, -1)
    cross = xs * yn - xn * ys
    area = 0.5 * float(cross.sum())
    if abs(area) <= 1e-12:
        return (float(x.mean()), float(y.mean()))
    cx = float(((xs + xn) * cross).sum()) / (6.0 * area)
    cy = float(((ys + yn) * cross).sum()) / (6.0 * area)
    return (cx + x0, cy + y0)


def concave_vertices(points: Sequence[Point], tol: float = 0.0) -> List[int]:
    """Indices of reflex vertices of an open ring; ``tol`` is a cross-product dead band."""
    n = len(points)
    if n < 4:
        return []
    pts = np.asarray(points, dtype=float)
    prev = np.roll(pts, 1, axis=0)
    nxt = np.roll(pts, -1, axis=0)
    v1 = pts - prev
    v2 = nxt - pts
    cross = v1[:, 0] * v2[:, 1] - v1[:, 1] * v2[:, 0]
    if is_counter_clockwise(points):
        mask = cross < -tol
    else:
        mask = cross > tol
    return [int(i) for i in np.nonzero(mask)[0]]


__all__ = [
    "BBox",
    "Point",
    "angle_between_vectors",
    "bounds_intersect",
    "closest_point_on_segment",
    "concave_vertices",
    "distance",
    "is_counter_clockwise",
    "is_parallel",
    "line_intersection_params",
    "midpoint",
    "orient",
    "point_at",
    "polygon_area",
    "polygon_centroid",
    "polygon_signed_area",
    "position_on_line",
    "segment_bounds",
    "segment_contains",
    "segments_cross",
    "signed_turn",
    "unit",
]
