"""
Main processor for the Rectification module.

Orchestrates the complete pipeline:
1-5. Edge detection (grayscale, smoothing, gradients, thinning, thresholds)
6. Region tracing
7-10. Quadrilateral selection (hull, simplification, scoring, ordering)
11-12. Homography estimation and perspective resampling

Never fails on an undetectable document: geometric ambiguity degrades the
confidence instead of raising. Only malformed input raises InvalidInputError.
"""

import logging
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
from pydantic import ValidationError

from src.common.types import InvalidInputError, RasterImage
from src.rectification.config_loader import (
    DEFAULT_CONFIG_PATH,
    get_default_config,
    load_config,
)
from src.rectification.contours import find_contours
from src.rectification.edge_detection import detect_edges
from src.rectification.geometry import select_quadrilateral
from src.rectification.image_rectification import rectify_quadrilateral
from src.rectification.types import (
    LOW_CONFIDENCE_WARNING,
    ProcessingResult,
    RectificationConfig,
)

logger = logging.getLogger(__name__)

RasterLike = Union[RasterImage, np.ndarray]


def as_rgba_array(raster: RasterLike) -> np.ndarray:
    """
    Validate a raster and return its (H, W, 4) uint8 pixel array.

    Raises:
        InvalidInputError: If the raster has zero area, a buffer length that
            does not match its dimensions, or is not 8-bit RGBA.
    """
    if isinstance(raster, RasterImage):
        try:
            raster = RasterImage(
                width=raster.width,
                height=raster.height,
                channels=raster.channels,
                data=raster.data,
            )
        except ValidationError as e:
            raise InvalidInputError(f"Malformed raster: {e}") from e
    elif isinstance(raster, np.ndarray):
        if raster.ndim != 3:
            raise InvalidInputError(
                f"Expected RGBA array of shape (H, W, 4), got shape {raster.shape}"
            )
        raster = RasterImage.from_numpy(raster)
    else:
        raise InvalidInputError(
            f"Expected RasterImage or numpy.ndarray, got {type(raster)}"
        )

    if raster.channels != 4:
        raise InvalidInputError(
            f"Expected 4-channel RGBA raster, got {raster.channels} channels"
        )
    return raster.data


class RectificationProcessor:
    """
    Main processor for document detection and perspective correction.

    A processor holds only its configuration, so one instance can serve
    concurrent calls from several threads.

    Example:
        >>> processor = RectificationProcessor()
        >>> raster = load_image("receipt.jpg")
        >>> result = processor.process(raster)
        >>> if result.warning:
        ...     print(result.warning)
    """

    def __init__(
        self,
        config: Optional[RectificationConfig] = None,
        config_path: Optional[Path] = None,
    ):
        """
        Initialize the rectification processor.

        Args:
            config: Pre-loaded configuration object. If None, will load from file.
            config_path: Path to config file. If None, uses default location.
        """
        if config is not None:
            self.config = config
            logger.info("Using provided configuration")
        elif config_path is not None:
            self.config = load_config(config_path)
            logger.info(f"Loaded configuration from {config_path}")
        else:
            self.config = get_default_config()
            logger.info(f"Loaded default configuration from {DEFAULT_CONFIG_PATH}")

    def process(
        self,
        raster: RasterLike,
        output_size: Optional[Tuple[int, int]] = None,
        warning_threshold: Optional[float] = None,
    ) -> ProcessingResult:
        """
        Execute the complete rectification pipeline.

        Args:
            raster: RGBA source raster (RasterImage or (H, W, 4) uint8 array).
            output_size: (width, height) of the corrected raster. Estimated
                from the detected corners when None.
            warning_threshold: Confidence below which a warning is attached.
                Defaults to the configured value (50).

        Returns:
            ProcessingResult with the corrected raster, corners, confidence
            and optional warning.

        Raises:
            InvalidInputError: If the raster or output size is malformed.
        """
        rgba = as_rgba_array(raster)
        height, width = rgba.shape[:2]

        if output_size is not None:
            out_w, out_h = output_size
            if int(out_w) <= 0 or int(out_h) <= 0:
                raise InvalidInputError(
                    f"Output size must be positive, got {out_w}x{out_h}"
                )
            output_size = (int(out_w), int(out_h))

        if warning_threshold is None:
            warning_threshold = self.config.output.warning_threshold

        edges_cfg = self.config.edges
        quad_cfg = self.config.quad

        logger.info(f"Starting rectification of {width}x{height} raster")

        logger.info("[Stage 1-5/12] Edge detection")
        edges = detect_edges(
            rgba,
            high_ratio=edges_cfg.high_threshold_ratio,
            low_ratio=edges_cfg.low_threshold_ratio,
            passes=edges_cfg.hysteresis_passes,
        )

        logger.info("[Stage 6/12] Region tracing")
        contours = find_contours(edges, self.config.contours.min_contour_pixels)
        del edges
        logger.info(f"Found {len(contours)} candidate contours")

        logger.info("[Stage 7-10/12] Quadrilateral selection")
        quad = select_quadrilateral(
            contours,
            width,
            height,
            epsilon=quad_cfg.epsilon,
            min_area_ratio=quad_cfg.min_area_ratio,
            max_area_ratio=quad_cfg.max_area_ratio,
            fallback_margin_ratio=quad_cfg.fallback_margin_ratio,
            fallback_confidence=quad_cfg.fallback_confidence,
            max_confidence=quad_cfg.max_confidence,
            ordering=quad_cfg.corner_ordering,
        )
        del contours
        confidence = quad.confidence

        logger.info("[Stage 11-12/12] Homography and resampling")
        rectified, degenerate = rectify_quadrilateral(rgba, quad.corners, output_size)
        if degenerate:
            logger.warning("Degenerate quadrilateral, returning blank output")
            confidence = 0.0

        confidence = float(min(max(confidence, 0.0), quad_cfg.max_confidence))
        warning = LOW_CONFIDENCE_WARNING if confidence < warning_threshold else None
        if warning:
            logger.warning(f"Low confidence detection ({confidence:.1f})")

        logger.info(
            f"Rectification finished: confidence={confidence:.1f}, "
            f"source={quad.source.value}, "
            f"output={rectified.shape[1]}x{rectified.shape[0]}"
        )

        return ProcessingResult(
            image=rectified,
            corners=quad.corners,
            confidence=confidence,
            warning=warning,
            source=quad.source,
        )


def rectify_document(
    raster: RasterLike,
    output_size: Optional[Tuple[int, int]] = None,
    warning_threshold: float = 50.0,
    config: Optional[RectificationConfig] = None,
) -> ProcessingResult:
    """
    Convenience function for one-shot rectification.

    Args:
        raster: RGBA source raster.
        output_size: Optional (width, height) of the corrected raster.
        warning_threshold: Confidence below which a warning is attached.
        config: Optional custom configuration. Uses default if None.

    Returns:
        ProcessingResult object.

    Example:
        >>> result = rectify_document(raster)
        >>> print(result.confidence, result.corners.tolist())
    """
    processor = RectificationProcessor(config=config)
    return processor.process(raster, output_size, warning_threshold)
