"""
Data types and structures for the Rectification module.

Provides type-safe containers for configuration and results.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np

from src.common.types import InvalidInputError, Point

LOW_CONFIDENCE_WARNING = (
    "Low confidence detection. Document edges may not be accurate."
)

__all__ = [
    "InvalidInputError",
    "LOW_CONFIDENCE_WARNING",
    "CornerOrdering",
    "DetectionSource",
    "EdgeConfig",
    "ContourConfig",
    "QuadConfig",
    "OutputConfig",
    "RectificationConfig",
    "Quadrilateral",
    "ProcessingResult",
]


class CornerOrdering(Enum):
    """Corner canonicalization strategies."""

    SUM_DIFF = "sum_diff"  # x+y / x-y heuristic
    CENTROID_ANGLE = "centroid_angle"  # angle around the centroid


class DetectionSource(Enum):
    """Where the selected quadrilateral came from."""

    CONTOUR = "contour"
    FALLBACK = "fallback"


@dataclass
class EdgeConfig:
    """Configuration for the edge pipeline (stages 2-5)."""

    high_threshold_ratio: float = 0.15  # High = ratio * max magnitude
    low_threshold_ratio: float = 0.4  # Low = ratio * high
    hysteresis_passes: int = 1


@dataclass
class ContourConfig:
    """Configuration for the region tracer (stage 6)."""

    min_contour_pixels: int = 50  # Components must be strictly larger


@dataclass
class QuadConfig:
    """Configuration for quadrilateral selection (stages 8-10)."""

    epsilon: float = 0.02  # Douglas-Peucker threshold as perimeter fraction
    min_area_ratio: float = 0.1
    max_area_ratio: float = 0.95
    fallback_margin_ratio: float = 0.05
    fallback_confidence: float = 30.0
    max_confidence: float = 95.0
    corner_ordering: str = CornerOrdering.SUM_DIFF.value


@dataclass
class OutputConfig:
    """Configuration for result reporting and encoding."""

    warning_threshold: float = 50.0
    jpeg_quality: int = 92


@dataclass
class RectificationConfig:
    """Complete rectification module configuration."""

    edges: EdgeConfig = field(default_factory=EdgeConfig)
    contours: ContourConfig = field(default_factory=ContourConfig)
    quad: QuadConfig = field(default_factory=QuadConfig)
    output: OutputConfig = field(default_factory=OutputConfig)


@dataclass
class Quadrilateral:
    """
    Candidate document boundary.

    Attributes:
        corners: Array of shape (4, 2), ordered TL, TR, BR, BL once it has
            passed through the corner orderer.
        confidence: Score in [0, max_confidence].
        source: Whether the quadrilateral came from a contour or the fallback.
    """

    corners: np.ndarray
    confidence: float
    source: DetectionSource = DetectionSource.CONTOUR

    @property
    def is_fallback(self) -> bool:
        return self.source == DetectionSource.FALLBACK


@dataclass
class ProcessingResult:
    """
    Output from the rectification pipeline.

    Attributes:
        image: The perspective-corrected RGBA raster, shape (H, W, 4).
        corners: Selected corners in source pixel space, (4, 2), TL/TR/BR/BL.
        confidence: Heuristic score in [0, 95].
        warning: Human-readable warning when confidence is low, else None.
        source: Whether the corners came from a detected contour or the
            inset-rectangle fallback.
    """

    image: np.ndarray
    corners: np.ndarray
    confidence: float
    warning: Optional[str] = None
    source: DetectionSource = DetectionSource.CONTOUR

    @property
    def output_size(self) -> tuple:
        """(width, height) of the rectified raster."""
        return int(self.image.shape[1]), int(self.image.shape[0])

    def is_low_confidence(self) -> bool:
        """Check whether a warning was attached."""
        return self.warning is not None

    def corner_points(self) -> List[Point]:
        """Corners as Point models, TL/TR/BR/BL."""
        return [Point.from_numpy(c) for c in self.corners]

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe summary without the pixel data."""
        width, height = self.output_size
        return {
            "corners": [[float(x), float(y)] for x, y in self.corners],
            "confidence": float(self.confidence),
            "warning": self.warning,
            "source": self.source.value,
            "output_width": width,
            "output_height": height,
        }
