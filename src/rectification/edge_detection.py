"""
Edge Detection Stages

Grayscale reduction, smoothing, Sobel gradients, non-maximum suppression and
double-threshold classification. Together they turn an RGBA raster into a
binary edge mask (0 / 255) for the region tracer.

All stages return fresh arrays; inputs are never modified.
"""

import logging
from typing import Tuple

import numpy as np

logger = logging.getLogger(__name__)

STRONG = 255
WEAK = 128

# ITU-R BT.601 luma weights
LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])

SMOOTH_KERNEL = np.array([[1, 2, 1], [2, 4, 2], [1, 2, 1]], dtype=np.float64)
SMOOTH_NORM = 16.0


def to_grayscale(rgba: np.ndarray) -> np.ndarray:
    """
    Project an RGBA raster onto luminance.

    Args:
        rgba: uint8 array of shape (H, W, 4). Alpha is ignored.

    Returns:
        uint8 array of shape (H, W) with round(0.299 R + 0.587 G + 0.114 B).
    """
    rgb = rgba[..., :3].astype(np.float64)
    luma = rgb @ LUMA_WEIGHTS
    # Round half up
    return np.clip(np.floor(luma + 0.5), 0, 255).astype(np.uint8)


def _shifted(image: np.ndarray, dy: int, dx: int) -> np.ndarray:
    """View of the interior window shifted by (dy, dx), both in {-1, 0, 1}."""
    h, w = image.shape
    return image[1 + dy : h - 1 + dy, 1 + dx : w - 1 + dx]


def smooth(gray: np.ndarray) -> np.ndarray:
    """
    Apply the 3x3 binomial kernel [[1,2,1],[2,4,2],[1,2,1]] / 16.

    Border rows and columns are copied through unchanged; only interior
    pixels are convolved.
    """
    result = gray.copy()
    h, w = gray.shape
    if h < 3 or w < 3:
        return result

    src = gray.astype(np.float64)
    acc = np.zeros((h - 2, w - 2), dtype=np.float64)
    for ky in range(3):
        for kx in range(3):
            acc += SMOOTH_KERNEL[ky, kx] * _shifted(src, ky - 1, kx - 1)

    result[1:-1, 1:-1] = np.clip(np.rint(acc / SMOOTH_NORM), 0, 255).astype(
        gray.dtype
    )
    return result


def sobel_gradients(image: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Compute Sobel gradient magnitude and direction.

    Args:
        image: Single-channel array of shape (H, W).

    Returns:
        Tuple of (magnitude, direction), float32 arrays of shape (H, W).
        Direction is atan2(gy, gx) in radians. Border pixels are zero in both.
    """
    h, w = image.shape
    magnitude = np.zeros((h, w), dtype=np.float32)
    direction = np.zeros((h, w), dtype=np.float32)
    if h < 3 or w < 3:
        return magnitude, direction

    p = image.astype(np.float64)
    tl, tc, tr = _shifted(p, -1, -1), _shifted(p, -1, 0), _shifted(p, -1, 1)
    ml, mr = _shifted(p, 0, -1), _shifted(p, 0, 1)
    bl, bc, br = _shifted(p, 1, -1), _shifted(p, 1, 0), _shifted(p, 1, 1)

    gx = (tr + 2 * mr + br) - (tl + 2 * ml + bl)
    gy = (bl + 2 * bc + br) - (tl + 2 * tc + tr)

    magnitude[1:-1, 1:-1] = np.sqrt(gx * gx + gy * gy)
    direction[1:-1, 1:-1] = np.arctan2(gy, gx)
    return magnitude, direction


def non_max_suppression(magnitude: np.ndarray, direction: np.ndarray) -> np.ndarray:
    """
    Thin gradient ridges to one pixel.

    The direction is folded onto [0, 180] degrees and bucketed into four
    45-degree bands. A pixel keeps its magnitude only if it is >= both
    neighbours in its band:

    - [0, 22.5) and [157.5, 180]: left / right
    - [22.5, 67.5): (y+1, x-1) / (y-1, x+1)
    - [67.5, 112.5): above / below
    - [112.5, 157.5): (y-1, x-1) / (y+1, x+1)

    Returns:
        float32 array of shape (H, W); border pixels are zero.
    """
    h, w = magnitude.shape
    result = np.zeros((h, w), dtype=np.float32)
    if h < 3 or w < 3:
        return result

    mag = magnitude.astype(np.float64)
    center = mag[1:-1, 1:-1]

    # float32 pi converts to slightly more than 180 degrees
    angle = np.clip(np.degrees(direction[1:-1, 1:-1].astype(np.float64)), -180, 180)
    angle = np.where(angle < 0, angle + 180.0, angle)

    horizontal = ((angle >= 0) & (angle < 22.5)) | ((angle >= 157.5) & (angle <= 180))
    anti_diagonal = (angle >= 22.5) & (angle < 67.5)
    vertical = (angle >= 67.5) & (angle < 112.5)

    neighbor1 = np.select(
        [horizontal, anti_diagonal, vertical],
        [_shifted(mag, 0, 1), _shifted(mag, 1, -1), _shifted(mag, 1, 0)],
        default=_shifted(mag, -1, -1),
    )
    neighbor2 = np.select(
        [horizontal, anti_diagonal, vertical],
        [_shifted(mag, 0, -1), _shifted(mag, -1, 1), _shifted(mag, -1, 0)],
        default=_shifted(mag, 1, 1),
    )

    keep = (center >= neighbor1) & (center >= neighbor2)
    result[1:-1, 1:-1] = np.where(keep, center, 0.0)
    return result


def _hysteresis_pass(mask: np.ndarray) -> int:
    """
    Promote weak interior pixels that touch a strong pixel, in raster order.

    The mask is updated in place while scanning, so a pixel promoted earlier
    in the scan counts as strong for the pixels after it.

    Returns:
        Number of pixels promoted.
    """
    h, w = mask.shape
    promoted = 0
    for y, x in np.argwhere(mask[1 : h - 1, 1 : w - 1] == WEAK) + 1:
        if (mask[y - 1 : y + 2, x - 1 : x + 2] == STRONG).any():
            mask[y, x] = STRONG
            promoted += 1
    return promoted


def classify_edges(
    suppressed: np.ndarray,
    high_ratio: float = 0.15,
    low_ratio: float = 0.4,
    passes: int = 1,
) -> np.ndarray:
    """
    Double threshold followed by hysteresis linking.

    High threshold is ``high_ratio * max(suppressed)``, low threshold is
    ``low_ratio * high``. Pixels >= high are strong; pixels in [low, high)
    are weak and survive only when linked to a strong neighbour.

    Args:
        suppressed: Thinned magnitude buffer (H, W).
        high_ratio: High threshold as a fraction of the maximum magnitude.
        low_ratio: Low threshold as a fraction of the high threshold.
        passes: Maximum number of hysteresis passes. One pass matches the
            classic single-scan linking; more passes keep propagating until
            no weak pixel is promoted.

    Returns:
        uint8 mask of shape (H, W) holding only 0 and 255.
    """
    mask = np.zeros(suppressed.shape, dtype=np.uint8)

    max_magnitude = float(suppressed.max()) if suppressed.size else 0.0
    if max_magnitude <= 0.0:
        logger.debug("No gradient energy, edge mask is empty")
        return mask

    high = max_magnitude * high_ratio
    low = high * low_ratio

    mask[suppressed >= low] = WEAK
    mask[suppressed >= high] = STRONG

    for i in range(passes):
        promoted = _hysteresis_pass(mask)
        logger.debug(f"Hysteresis pass {i + 1}: promoted {promoted} weak pixels")
        if promoted == 0:
            break

    mask[mask == WEAK] = 0

    logger.debug(
        f"Thresholds high={high:.2f} low={low:.2f}, "
        f"{int(np.count_nonzero(mask))} edge pixels"
    )
    return mask


def detect_edges(
    rgba: np.ndarray,
    high_ratio: float = 0.15,
    low_ratio: float = 0.4,
    passes: int = 1,
) -> np.ndarray:
    """Run stages 1-5 and return the binary edge mask."""
    gray = to_grayscale(rgba)
    blurred = smooth(gray)
    del gray
    magnitude, direction = sobel_gradients(blurred)
    del blurred
    thin = non_max_suppression(magnitude, direction)
    del magnitude, direction
    return classify_edges(thin, high_ratio, low_ratio, passes)
