"""
Image Rectification Utilities

Provides output-size estimation and the inverse-mapped bilinear resampler
that turns a detected document quadrilateral into an axis-aligned raster.
"""

import logging
from typing import Optional, Tuple

import numpy as np

from src.rectification.homography import compute_homography

logger = logging.getLogger(__name__)


def calculate_output_size(corners: np.ndarray) -> Tuple[int, int]:
    """
    Size of the rectified raster for ordered corners [TL, TR, BR, BL].

    Width is the longer of the top and bottom edges, height the longer of
    the left and right edges, each rounded to the nearest pixel (minimum 1).

    Example:
        >>> calculate_output_size([[0, 0], [300, 0], [300, 200], [0, 200]])
        (300, 200)
    """
    corners = np.asarray(corners, dtype=np.float64)
    if corners.shape != (4, 2):
        raise ValueError(
            f"Expected exactly 4 corners with shape (4, 2), got shape {corners.shape}"
        )

    tl, tr, br, bl = corners
    width_top = np.hypot(*(tr - tl))
    width_bottom = np.hypot(*(br - bl))
    height_left = np.hypot(*(bl - tl))
    height_right = np.hypot(*(br - tr))

    # Round half up
    width = int(np.floor(max(width_top, width_bottom) + 0.5))
    height = int(np.floor(max(height_left, height_right) + 0.5))
    return max(width, 1), max(height, 1)


def warp_perspective(
    source: np.ndarray, homography: np.ndarray, output_size: Tuple[int, int]
) -> np.ndarray:
    """
    Inverse-map every destination pixel into the source and sample bilinearly.

    For destination (x, y): ``w = H[6] x + H[7] y + H[8]``,
    ``src_x = (H[0] x + H[1] y + H[2]) / w`` and
    ``src_y = (H[3] x + H[4] y + H[5]) / w``.
    A pixel is written only when the 2x2 neighbourhood at
    (floor(src_x), floor(src_y)) lies fully inside the source; otherwise it
    stays zero (transparent). There is no clamping or extrapolation.

    Args:
        source: uint8 array of shape (H, W, C).
        homography: 3x3 matrix mapping destination to source coordinates.
        output_size: (width, height) of the destination.

    Returns:
        uint8 array of shape (height, width, C).
    """
    out_w, out_h = output_size
    src_h, src_w = source.shape[:2]
    channels = source.shape[2] if source.ndim == 3 else 1
    h = np.asarray(homography, dtype=np.float64).reshape(9)

    result = np.zeros((out_h, out_w, channels), dtype=np.uint8)
    src = source.reshape(src_h, src_w, channels)

    ys, xs = np.mgrid[0:out_h, 0:out_w].astype(np.float64)
    w = h[6] * xs + h[7] * ys + h[8]
    valid = np.abs(w) > np.finfo(np.float64).eps
    w = np.where(valid, w, 1.0)

    src_x = (h[0] * xs + h[1] * ys + h[2]) / w
    src_y = (h[3] * xs + h[4] * ys + h[5]) / w
    valid &= np.isfinite(src_x) & np.isfinite(src_y)

    x0 = np.floor(np.where(valid, src_x, -1.0))
    y0 = np.floor(np.where(valid, src_y, -1.0))
    valid &= (x0 >= 0) & (x0 + 1 < src_w) & (y0 >= 0) & (y0 + 1 < src_h)

    skipped = int(valid.size - np.count_nonzero(valid))
    if skipped:
        logger.debug(f"{skipped} destination pixels fall outside the source")
    x0 = x0[valid].astype(np.intp)
    y0 = y0[valid].astype(np.intp)
    x_weight = (src_x[valid] - x0)[:, None]
    y_weight = (src_y[valid] - y0)[:, None]

    p00 = src[y0, x0].astype(np.float64)
    p01 = src[y0, x0 + 1].astype(np.float64)
    p10 = src[y0 + 1, x0].astype(np.float64)
    p11 = src[y0 + 1, x0 + 1].astype(np.float64)

    value = (
        p00 * (1 - x_weight) * (1 - y_weight)
        + p01 * x_weight * (1 - y_weight)
        + p10 * (1 - x_weight) * y_weight
        + p11 * x_weight * y_weight
    )
    result[valid] = np.clip(np.rint(value), 0, 255).astype(np.uint8)

    if source.ndim == 2:
        return result[..., 0]
    return result


def rectify_quadrilateral(
    image: np.ndarray,
    corners: np.ndarray,
    output_size: Optional[Tuple[int, int]] = None,
) -> Tuple[np.ndarray, bool]:
    """
    Warp the quadrilateral ``corners`` of ``image`` onto an upright rectangle.

    The homography is solved from the output rectangle
    {(0, 0), (W, 0), (W, H), (0, H)} to the corners, so it maps destination
    pixels back into the source.

    Args:
        image: Source raster, shape (H, W, C) or (H, W).
        corners: Ordered corners [TL, TR, BR, BL], shape (4, 2).
        output_size: (width, height) of the result. Estimated from the
            corner edge lengths when None.

    Returns:
        Tuple of (rectified image, degenerate flag). When the homography is
        degenerate the rectified image is left blank.

    Raises:
        ValueError: If image is invalid, corner count is not 4, or the
            requested size is not positive.

    Example:
        >>> corners = [[40, 30], [360, 30], [360, 270], [40, 270]]
        >>> rectified, degenerate = rectify_quadrilateral(image, corners)
    """
    if image is None or image.size == 0:
        raise ValueError("Invalid input image: image is None or empty")

    corners = np.asarray(corners, dtype=np.float64)
    if corners.shape != (4, 2):
        raise ValueError(
            f"Expected exactly 4 corners with shape (4, 2), got shape {corners.shape}"
        )

    if output_size is None:
        output_size = calculate_output_size(corners)
    out_w, out_h = (int(v) for v in output_size)
    if out_w <= 0 or out_h <= 0:
        raise ValueError(f"Output size must be positive, got {out_w}x{out_h}")

    logger.debug(f"Output raster size: {out_w}x{out_h}")

    dst = np.array(
        [[0, 0], [out_w, 0], [out_w, out_h], [0, out_h]],
        dtype=np.float64,
    )
    homography, degenerate = compute_homography(dst, corners)

    if degenerate:
        blank_shape = (out_h, out_w) + tuple(image.shape[2:])
        return np.zeros(blank_shape, dtype=np.uint8), True

    rectified = warp_perspective(image, homography, (out_w, out_h))
    logger.info(f"Rectified quadrilateral to {out_w}x{out_h} raster")
    return rectified, False
