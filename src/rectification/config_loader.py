"""
Configuration loader for the Rectification module.

Loads and validates configuration from config.yaml file.
"""

import logging
from pathlib import Path
from typing import Any, Dict

import yaml

from src.rectification.types import (
    ContourConfig,
    CornerOrdering,
    EdgeConfig,
    OutputConfig,
    QuadConfig,
    RectificationConfig,
)

logger = logging.getLogger(__name__)

# Default configuration path (relative to this file)
DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"


def load_config(config_path: Path = DEFAULT_CONFIG_PATH) -> RectificationConfig:
    """
    Load rectification configuration from YAML file.

    Args:
        config_path: Path to the configuration YAML file.

    Returns:
        Validated RectificationConfig object.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValueError: If config is invalid or missing required fields.

    Example:
        >>> config = load_config()
        >>> print(config.quad.epsilon)
        0.02
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    logger.debug(f"Loading rectification config from {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        raw_config = yaml.safe_load(f)

    try:
        config = _parse_config(raw_config)
        _validate_config(config)
        logger.info("Successfully loaded rectification configuration")
        return config
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Invalid configuration file: {e}") from e


def get_default_config() -> RectificationConfig:
    """
    Get the bundled default configuration.

    Falls back to the dataclass defaults if config.yaml is missing.
    """
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    logger.warning("Bundled config.yaml not found, using built-in defaults")
    return RectificationConfig()


def _parse_config(raw: Dict[str, Any]) -> RectificationConfig:
    """Parse raw dictionary into structured config objects."""
    edges = raw["edges"]
    contours = raw["contours"]
    quad = raw["quad"]
    output = raw["output"]

    return RectificationConfig(
        edges=EdgeConfig(
            high_threshold_ratio=float(edges["high_threshold_ratio"]),
            low_threshold_ratio=float(edges["low_threshold_ratio"]),
            hysteresis_passes=int(edges["hysteresis_passes"]),
        ),
        contours=ContourConfig(
            min_contour_pixels=int(contours["min_contour_pixels"]),
        ),
        quad=QuadConfig(
            epsilon=float(quad["epsilon"]),
            min_area_ratio=float(quad["min_area_ratio"]),
            max_area_ratio=float(quad["max_area_ratio"]),
            fallback_margin_ratio=float(quad["fallback_margin_ratio"]),
            fallback_confidence=float(quad["fallback_confidence"]),
            max_confidence=float(quad["max_confidence"]),
            corner_ordering=str(quad["corner_ordering"]),
        ),
        output=OutputConfig(
            warning_threshold=float(output["warning_threshold"]),
            jpeg_quality=int(output["jpeg_quality"]),
        ),
    )


def _validate_config(config: RectificationConfig) -> None:
    """
    Validate configuration values for logical consistency.

    Raises:
        ValueError: If any configuration value is invalid.
    """
    edges = config.edges
    if not 0 < edges.high_threshold_ratio <= 1:
        raise ValueError("high_threshold_ratio must be in (0, 1]")
    if not 0 < edges.low_threshold_ratio <= 1:
        raise ValueError("low_threshold_ratio must be in (0, 1]")
    if edges.hysteresis_passes < 1:
        raise ValueError("hysteresis_passes must be at least 1")

    if config.contours.min_contour_pixels < 0:
        raise ValueError("min_contour_pixels cannot be negative")

    quad = config.quad
    if quad.epsilon <= 0:
        raise ValueError("epsilon must be positive")
    if not 0 <= quad.min_area_ratio < quad.max_area_ratio <= 1:
        raise ValueError(
            f"Area ratio bounds invalid: min ({quad.min_area_ratio}) must be less "
            f"than max ({quad.max_area_ratio}), both within [0, 1]"
        )
    if not 0 <= quad.fallback_margin_ratio < 0.5:
        raise ValueError("fallback_margin_ratio must be in [0, 0.5)")
    if not 0 <= quad.fallback_confidence <= quad.max_confidence <= 100:
        raise ValueError(
            "Confidence bounds invalid: require "
            "0 <= fallback_confidence <= max_confidence <= 100"
        )

    valid_orderings = [o.value for o in CornerOrdering]
    if quad.corner_ordering not in valid_orderings:
        raise ValueError(
            f"Invalid corner_ordering: {quad.corner_ordering}. "
            f"Must be one of {valid_orderings}"
        )

    if not 1 <= config.output.jpeg_quality <= 100:
        raise ValueError("jpeg_quality must be in [1, 100]")

    logger.debug("Configuration validation passed")
