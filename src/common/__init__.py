"""
Common types shared across the rectification pipeline and its collaborators.

This module provides standardized data types so that the codec, the
pipeline stages and the command-line entry point exchange rasters and
points in one consistent form.
"""

from src.common.types import InvalidInputError, Point, RasterImage

__all__ = ["InvalidInputError", "Point", "RasterImage"]
