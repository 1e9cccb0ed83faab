"""
Visualization Utilities

Functions for drawing and plotting rectification results.
"""

from pathlib import Path
from typing import Optional

import cv2
import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402

CORNER_LABELS = ("TL", "TR", "BR", "BL")


def draw_quadrilateral(
    image: np.ndarray,
    corners: np.ndarray,
    color: tuple = (255, 0, 0, 255),
    thickness: int = 3,
) -> np.ndarray:
    """
    Draw a quadrilateral outline with labelled corners.

    Args:
        image: RGBA image array (H, W, 4).
        corners: Ordered corners [TL, TR, BR, BL], shape (4, 2).
        color: RGBA outline color.
        thickness: Line thickness in pixels.

    Returns:
        A copy of ``image`` with the overlay drawn.
    """
    overlay = np.ascontiguousarray(image).copy()
    pts = np.rint(np.asarray(corners, dtype=np.float64)).astype(np.int32)

    cv2.polylines(overlay, [pts.reshape(-1, 1, 2)], True, color, thickness)
    for label, (x, y) in zip(CORNER_LABELS, pts):
        cv2.circle(overlay, (int(x), int(y)), thickness * 2, color, -1)
        cv2.putText(
            overlay,
            label,
            (int(x) + 6, int(y) - 6),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.6,
            color,
            2,
        )
    return overlay


def plot_rectification(
    source: np.ndarray,
    rectified: np.ndarray,
    corners: np.ndarray,
    confidence: float,
    save_path: Optional[Path] = None,
):
    """
    Plot the source with detected corners next to the rectified output.

    Args:
        source: Source RGBA image.
        rectified: Rectified RGBA image.
        corners: Ordered corners in source pixel space.
        confidence: Detection confidence shown in the title.
        save_path: Optional path to save figure.

    Returns:
        The matplotlib figure.
    """
    fig, (ax_src, ax_out) = plt.subplots(1, 2, figsize=(14, 7))

    ax_src.imshow(draw_quadrilateral(source, corners))
    ax_src.set_title(f"Detected boundary (confidence {confidence:.0f})")
    ax_src.axis('off')

    ax_out.imshow(rectified)
    ax_out.set_title(f"Rectified {rectified.shape[1]}x{rectified.shape[0]}")
    ax_out.axis('off')

    if save_path:
        Path(save_path).parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(save_path, bbox_inches='tight', dpi=150)
    plt.close(fig)
    return fig
