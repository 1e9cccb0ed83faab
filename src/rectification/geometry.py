"""
Quadrilateral Geometry

Convex hull, polygon simplification, quadrilateral selection and corner
ordering. Points are handled as float arrays of shape (N, 2) in (x, y)
pixel coordinates.
"""

import logging
import math
from typing import List, Optional, Sequence

import numpy as np

from src.rectification.types import CornerOrdering, DetectionSource, Quadrilateral

logger = logging.getLogger(__name__)


def convex_hull(points: np.ndarray) -> np.ndarray:
    """
    Graham scan.

    The pivot is the point with the lowest y (ties: lowest x). The other
    points are sorted by polar angle around it (nearest first on equal
    angles) and swept, popping while the last turn is not strictly
    counter-clockwise (cross product <= 0).

    Args:
        points: Array of shape (N, 2).

    Returns:
        Hull vertices of shape (M, 2). Inputs with fewer than 3 points are
        returned unchanged.
    """
    points = np.asarray(points, dtype=np.float64)
    if len(points) < 3:
        return points

    pts = [tuple(p) for p in points.tolist()]

    lowest = 0
    for i in range(1, len(pts)):
        x, y = pts[i]
        lx, ly = pts[lowest]
        if y < ly or (y == ly and x < lx):
            lowest = i
    pts[0], pts[lowest] = pts[lowest], pts[0]

    px, py = pts[0]
    # Collinear points sort nearest first so only the farthest survives
    rest = sorted(
        pts[1:],
        key=lambda p: (
            math.atan2(p[1] - py, p[0] - px),
            (p[0] - px) ** 2 + (p[1] - py) ** 2,
        ),
    )

    hull = [pts[0]]
    for point in rest:
        while len(hull) > 1:
            top = hull[-1]
            second = hull[-2]
            cross = (top[0] - second[0]) * (point[1] - second[1]) - (
                top[1] - second[1]
            ) * (point[0] - second[0])
            if cross <= 0:
                hull.pop()
            else:
                break
        hull.append(point)

    return np.array(hull, dtype=np.float64)


def point_to_segment_distance(
    point: Sequence[float], start: Sequence[float], end: Sequence[float]
) -> float:
    """Distance from ``point`` to the segment ``start``-``end``."""
    a = point[0] - start[0]
    b = point[1] - start[1]
    c = end[0] - start[0]
    d = end[1] - start[1]

    len_sq = c * c + d * d
    param = (a * c + b * d) / len_sq if len_sq != 0 else -1.0

    if param < 0:
        nearest = (start[0], start[1])
    elif param > 1:
        nearest = (end[0], end[1])
    else:
        nearest = (start[0] + param * c, start[1] + param * d)

    return math.hypot(point[0] - nearest[0], point[1] - nearest[1])


def perimeter(polygon: np.ndarray) -> float:
    """Length of the closed polygon boundary."""
    polygon = np.asarray(polygon, dtype=np.float64)
    if len(polygon) < 2:
        return 0.0
    edges = np.roll(polygon, -1, axis=0) - polygon
    return float(np.hypot(edges[:, 0], edges[:, 1]).sum())


def simplify_polygon(hull: np.ndarray, epsilon: float = 0.02) -> np.ndarray:
    """
    Douglas-Peucker reduction of a closed hull.

    The hull is treated as cyclic: the first span runs from vertex 0 all the
    way round back to vertex 0. A span is split at its farthest vertex when
    that vertex is more than ``epsilon * perimeter`` away from the chord,
    otherwise it collapses to its start vertex.

    Args:
        hull: Hull vertices of shape (N, 2).
        epsilon: Threshold as a fraction of the hull perimeter.

    Returns:
        Kept vertices in hull order. Hulls with fewer than 4 vertices are
        returned unchanged.
    """
    hull = np.asarray(hull, dtype=np.float64)
    n = len(hull)
    if n < 4:
        return hull

    threshold = epsilon * perimeter(hull)
    pts = hull.tolist()
    kept: List[int] = []

    def reduce(start: int, end: int) -> None:
        start_point = pts[start]
        end_point = pts[end % n]

        max_dist = 0.0
        max_idx = start
        for i in range(start + 1, end):
            dist = point_to_segment_distance(pts[i % n], start_point, end_point)
            if dist > max_dist:
                max_dist = dist
                max_idx = i

        if max_dist > threshold:
            reduce(start, max_idx)
            reduce(max_idx, end)
        elif start not in kept:
            kept.append(start)

    reduce(0, n)
    return hull[kept]


def polygon_area(polygon: np.ndarray) -> float:
    """Unsigned shoelace area."""
    polygon = np.asarray(polygon, dtype=np.float64)
    x, y = polygon[:, 0], polygon[:, 1]
    return float(abs(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y)) / 2.0)


def fallback_quadrilateral(
    width: int, height: int, margin_ratio: float = 0.05
) -> np.ndarray:
    """
    Image rectangle inset by ``margin_ratio * min(width, height)`` on all sides.

    Returns:
        Corners of shape (4, 2) ordered TL, TR, BR, BL.
    """
    margin = min(width, height) * margin_ratio
    return np.array(
        [
            [margin, margin],
            [width - margin, margin],
            [width - margin, height - margin],
            [margin, height - margin],
        ],
        dtype=np.float64,
    )


def _order_sum_diff(pts: np.ndarray) -> np.ndarray:
    # Ties on x+y are broken by x-y so the result depends only on the point set
    by_sum = sorted(
        range(4), key=lambda i: (pts[i, 0] + pts[i, 1], pts[i, 0] - pts[i, 1])
    )
    top_left, bottom_right = by_sum[0], by_sum[3]
    remaining = sorted(by_sum[1:3], key=lambda i: -(pts[i, 0] - pts[i, 1]))
    top_right, bottom_left = remaining
    return pts[[top_left, top_right, bottom_right, bottom_left]]


def _order_centroid_angle(pts: np.ndarray) -> np.ndarray:
    center = pts.mean(axis=0)
    angles = np.arctan2(pts[:, 1] - center[1], pts[:, 0] - center[0])
    # Ascending angle is clockwise on screen (y grows downwards)
    clockwise = list(np.argsort(angles, kind="stable"))
    sums = pts[:, 0] + pts[:, 1]
    start = clockwise.index(int(np.argmin(sums)))
    return pts[clockwise[start:] + clockwise[:start]]


def order_corners(
    points: np.ndarray, method: str = CornerOrdering.SUM_DIFF.value
) -> np.ndarray:
    """
    Order 4 points as Top-Left, Top-Right, Bottom-Right, Bottom-Left.

    ``sum_diff`` (default):
    - Top-Left: smallest x + y
    - Bottom-Right: largest x + y
    - Top-Right: larger x - y of the remaining two
    - Bottom-Left: the other one

    ``centroid_angle`` walks clockwise around the centroid starting from the
    smallest x + y, which stays correct for strongly rotated quadrilaterals.

    Args:
        points: Array-like of shape (4, 2).
        method: One of the CornerOrdering values.

    Returns:
        float64 array of shape (4, 2).

    Raises:
        ValueError: If input does not contain exactly 4 points, or the method
            is unknown.
    """
    pts = np.array(points, dtype=np.float64)
    if pts.shape != (4, 2):
        raise ValueError(
            f"Expected exactly 4 points with shape (4, 2), got shape {pts.shape}"
        )

    ordering = CornerOrdering(method)
    if ordering == CornerOrdering.CENTROID_ANGLE:
        ordered = _order_centroid_angle(pts)
    else:
        ordered = _order_sum_diff(pts)

    logger.debug(
        f"Ordered corners: TL={ordered[0]}, TR={ordered[1]}, "
        f"BR={ordered[2]}, BL={ordered[3]}"
    )
    return ordered


def score_quadrilateral(
    polygon: np.ndarray,
    image_area: float,
    min_area_ratio: float = 0.1,
    max_area_ratio: float = 0.95,
) -> Optional[float]:
    """
    Score a simplified polygon as a document candidate.

    Returns:
        ``area_ratio * 100`` for a 4-vertex polygon whose area ratio lies
        strictly between the bounds, otherwise None.
    """
    if len(polygon) != 4:
        return None
    area_ratio = polygon_area(polygon) / image_area
    if min_area_ratio < area_ratio < max_area_ratio:
        return area_ratio * 100.0
    return None


def select_quadrilateral(
    contours: List[np.ndarray],
    width: int,
    height: int,
    epsilon: float = 0.02,
    min_area_ratio: float = 0.1,
    max_area_ratio: float = 0.95,
    fallback_margin_ratio: float = 0.05,
    fallback_confidence: float = 30.0,
    max_confidence: float = 95.0,
    ordering: str = CornerOrdering.SUM_DIFF.value,
) -> Quadrilateral:
    """
    Pick the best quadrilateral across all contours.

    Each contour is hulled and simplified; 4-vertex results are scored by
    their share of the image area and the highest score wins (first one on
    ties). When nothing qualifies, the inset image rectangle is used with
    ``fallback_confidence``. Confidence never exceeds ``max_confidence``.

    Returns:
        Quadrilateral with ordered corners.
    """
    image_area = float(width * height)
    best: Optional[np.ndarray] = None
    best_score = 0.0
    four_sided = 0

    for contour in contours:
        polygon = simplify_polygon(convex_hull(contour), epsilon)
        if len(polygon) == 4:
            four_sided += 1
        score = score_quadrilateral(polygon, image_area, min_area_ratio, max_area_ratio)
        if score is not None and score > best_score:
            best_score = score
            best = polygon

    logger.debug(
        f"{four_sided}/{len(contours)} contours simplified to 4 vertices, "
        f"best score {best_score:.1f}"
    )

    if best is None:
        logger.warning("No qualifying quadrilateral found, using inset image rectangle")
        corners = fallback_quadrilateral(width, height, fallback_margin_ratio)
        confidence = fallback_confidence
        source = DetectionSource.FALLBACK
    else:
        corners = best
        confidence = best_score
        source = DetectionSource.CONTOUR

    confidence = float(min(max(confidence, 0.0), max_confidence))
    return Quadrilateral(
        corners=order_corners(corners, ordering),
        confidence=confidence,
        source=source,
    )
