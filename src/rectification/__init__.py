"""
Document Rectification

Locates the quadrilateral boundary of a paper document in a raster photo and
produces a perspective-corrected, axis-aligned raster.

Pipeline stages:
1. Grayscale reduction
2. Smoothing (3x3 binomial kernel)
3. Sobel gradients
4. Non-maximum suppression
5. Double threshold + hysteresis
6. Connected-component tracing
7. Convex hull (Graham scan)
8. Douglas-Peucker simplification
9. Quadrilateral selection (with inset-rectangle fallback)
10. Corner ordering
11. Homography estimation
12. Bilinear perspective resampling
"""

from src.common.types import InvalidInputError, Point, RasterImage
from src.rectification.config_loader import get_default_config, load_config
from src.rectification.geometry import order_corners
from src.rectification.homography import apply_homography, compute_homography
from src.rectification.processor import RectificationProcessor, rectify_document
from src.rectification.types import (
    CornerOrdering,
    DetectionSource,
    ProcessingResult,
    Quadrilateral,
    RectificationConfig,
)

__all__ = [
    "RectificationProcessor",
    "rectify_document",
    "load_config",
    "get_default_config",
    "order_corners",
    "compute_homography",
    "apply_homography",
    "CornerOrdering",
    "DetectionSource",
    "InvalidInputError",
    "Point",
    "ProcessingResult",
    "Quadrilateral",
    "RasterImage",
    "RectificationConfig",
]
