"""
Homography Estimation

Solves the 3x3 projective transform between four point correspondences with
the direct linear transform, fixing the bottom-right coefficient to 1 and
solving the remaining 8 unknowns through the normal equations.
"""

import logging
from typing import Tuple

import numpy as np

logger = logging.getLogger(__name__)

# Pivots at or below this fraction of their column's largest normal-matrix
# entry are treated as zero
PIVOT_TOLERANCE = 1e-12


def build_dlt_matrix(src: np.ndarray, dst: np.ndarray) -> np.ndarray:
    """
    Build the 8x9 direct-linear-transform coefficient matrix.

    Two rows per correspondence (sx, sy) -> (dx, dy):
    ``[-sx, -sy, -1, 0, 0, 0, sx*dx, sy*dx, dx]`` and
    ``[0, 0, 0, -sx, -sy, -1, sx*dy, sy*dy, dy]``.
    """
    src = np.asarray(src, dtype=np.float64)
    dst = np.asarray(dst, dtype=np.float64)
    if src.shape != (4, 2) or dst.shape != (4, 2):
        raise ValueError(
            f"Expected 4 correspondences with shape (4, 2), "
            f"got {src.shape} and {dst.shape}"
        )

    rows = []
    for (sx, sy), (dx, dy) in zip(src, dst):
        rows.append([-sx, -sy, -1.0, 0.0, 0.0, 0.0, sx * dx, sy * dx, dx])
        rows.append([0.0, 0.0, 0.0, -sx, -sy, -1.0, sx * dy, sy * dy, dy])
    return np.array(rows, dtype=np.float64)


def solve_normal_equations(a: np.ndarray) -> Tuple[np.ndarray, bool]:
    """
    Solve ``A[:, :8] h = -A[:, 8]`` in the least-squares sense.

    Forms ``AtA h = Atb`` and runs Gaussian elimination with partial
    pivoting followed by back-substitution. A vanishing pivot skips the
    division instead of failing.

    Returns:
        Tuple of (coefficients of shape (9,) with the last fixed to 1,
        degenerate flag).
    """
    lhs = a[:, :8]
    rhs = -a[:, 8]
    ata = lhs.T @ lhs
    atb = lhs.T @ rhs
    n = 8

    # Columns differ by orders of magnitude, so each gets its own tolerance
    tolerance = PIVOT_TOLERANCE * np.maximum(np.abs(ata).max(axis=0), 1.0)
    degenerate = False

    for i in range(n):
        max_row = i + int(np.argmax(np.abs(ata[i:, i])))
        if max_row != i:
            ata[[i, max_row]] = ata[[max_row, i]]
            atb[[i, max_row]] = atb[[max_row, i]]

        pivot = ata[i, i]
        if abs(pivot) <= tolerance[i]:
            degenerate = True
            continue
        for k in range(i + 1, n):
            c = ata[k, i] / pivot
            ata[k, i:] -= c * ata[i, i:]
            atb[k] -= c * atb[i]

    x = np.zeros(n, dtype=np.float64)
    for i in range(n - 1, -1, -1):
        x[i] = atb[i] - np.dot(ata[i, i + 1 :], x[i + 1 :])
        if abs(ata[i, i]) > tolerance[i]:
            x[i] /= ata[i, i]

    coefficients = np.append(x, 1.0)
    if not np.all(np.isfinite(coefficients)):
        degenerate = True
    return coefficients, degenerate


def compute_homography(src: np.ndarray, dst: np.ndarray) -> Tuple[np.ndarray, bool]:
    """
    Compute the homography mapping ``src`` points onto ``dst`` points.

    Args:
        src: 4 source points, shape (4, 2).
        dst: 4 destination points, shape (4, 2).

    Returns:
        Tuple of (3x3 matrix, degenerate flag). The flag is set when the
        system was singular or near-singular (duplicate or colinear corners);
        the matrix is then unreliable.

    Example:
        >>> rect = [[0, 0], [100, 0], [100, 50], [0, 50]]
        >>> quad = [[10, 12], [110, 8], [115, 70], [5, 60]]
        >>> H, degenerate = compute_homography(rect, quad)
    """
    a = build_dlt_matrix(src, dst)
    coefficients, degenerate = solve_normal_equations(a)
    if degenerate:
        logger.warning("Homography system is singular or near-singular")
    return coefficients.reshape(3, 3), degenerate


def apply_homography(h: np.ndarray, points: np.ndarray) -> np.ndarray:
    """
    Map points through a homography.

    Points whose projective weight vanishes map to NaN.

    Args:
        h: 3x3 matrix (or 9 coefficients, row-major).
        points: Array of shape (N, 2).

    Returns:
        Array of shape (N, 2).
    """
    h = np.asarray(h, dtype=np.float64).reshape(9)
    points = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    x, y = points[:, 0], points[:, 1]

    w = h[6] * x + h[7] * y + h[8]
    safe = np.abs(w) > np.finfo(np.float64).eps
    w = np.where(safe, w, np.nan)

    mapped_x = (h[0] * x + h[1] * y + h[2]) / w
    mapped_y = (h[3] * x + h[4] * y + h[5]) / w
    return np.column_stack([mapped_x, mapped_y])
