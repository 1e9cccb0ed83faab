"""
Region Tracer

Extracts 8-connected components of strong pixels from an edge mask.
Each sufficiently large component becomes a contour: an (N, 2) array of
(x, y) pixel coordinates in traversal order.
"""

import logging
from typing import List

import numpy as np

logger = logging.getLogger(__name__)

NEIGHBOR_OFFSETS = (
    (0, 1),
    (1, 1),
    (1, 0),
    (1, -1),
    (0, -1),
    (-1, -1),
    (-1, 0),
    (-1, 1),
)


def _trace_component(
    is_edge: bytes, visited: bytearray, width: int, height: int, seed: int
) -> List[int]:
    """Flood fill from ``seed`` with an explicit stack, returning flat indices."""
    members = []
    stack = [seed]
    visited[seed] = 1

    while stack:
        idx = stack.pop()
        members.append(idx)
        y, x = divmod(idx, width)

        for dx, dy in NEIGHBOR_OFFSETS:
            nx, ny = x + dx, y + dy
            if nx < 0 or nx >= width or ny < 0 or ny >= height:
                continue
            n = ny * width + nx
            if visited[n] or not is_edge[n]:
                continue
            visited[n] = 1
            stack.append(n)

    return members


def find_contours(edges: np.ndarray, min_pixels: int = 50) -> List[np.ndarray]:
    """
    Find connected edge regions.

    Seeds are taken in raster order (top-to-bottom, left-to-right), so
    contours are returned in the order their first pixel appears.

    Args:
        edges: uint8 mask of shape (H, W); pixels equal to 255 are edges.
        min_pixels: Components must have strictly more members than this.

    Returns:
        List of float64 arrays of shape (N, 2) holding (x, y) coordinates.
    """
    height, width = edges.shape
    is_edge = (edges == 255).ravel().tobytes()
    visited = bytearray(width * height)

    contours = []
    discarded = 0
    for seed in np.flatnonzero(edges.ravel() == 255):
        seed = int(seed)
        if visited[seed]:
            continue

        members = _trace_component(is_edge, visited, width, height, seed)
        if len(members) <= min_pixels:
            discarded += 1
            continue

        flat = np.asarray(members, dtype=np.int64)
        ys, xs = np.divmod(flat, width)
        contours.append(np.column_stack([xs, ys]).astype(np.float64))

    logger.debug(
        f"Traced {len(contours)} contours, discarded {discarded} small components"
    )
    return contours
