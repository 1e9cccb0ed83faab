"""
Unit tests for common and rectification types.
"""

import numpy as np
import pydantic
import pytest

from src.common.types import InvalidInputError, Point, RasterImage
from src.rectification.types import (
    LOW_CONFIDENCE_WARNING,
    DetectionSource,
    ProcessingResult,
    Quadrilateral,
)


class TestRasterImage:
    """Tests for RasterImage validation."""

    def test_flat_buffer_reshaped(self):
        raster = RasterImage(width=4, height=3, data=np.zeros(48, dtype=np.uint8))

        assert raster.shape == (3, 4, 4)
        assert raster.area == 12

    def test_from_bytes(self):
        raster = RasterImage.from_buffer(2, 2, bytes(range(16)))
        assert raster.data[1, 1].tolist() == [12, 13, 14, 15]

    def test_single_channel_float(self):
        raster = RasterImage.from_numpy(np.zeros((5, 6), dtype=np.float32))
        assert raster.channels == 1
        assert raster.shape == (5, 6)

    @pytest.mark.parametrize(
        "width,height,size",
        [(0, 3, 0), (4, -1, 16), (4, 3, 47)],
    )
    def test_invalid_dimensions(self, width, height, size):
        with pytest.raises(InvalidInputError):
            RasterImage.from_buffer(width, height, np.zeros(size, dtype=np.uint8))

    def test_short_buffer_from_buffer_vs_constructor(self):
        with pytest.raises(InvalidInputError, match="expected 400"):
            RasterImage.from_buffer(10, 10, bytes(399))
        with pytest.raises(pydantic.ValidationError, match="expected 400"):
            RasterImage(width=10, height=10, data=bytes(399))

    def test_rgba_must_be_uint8(self):
        with pytest.raises(InvalidInputError):
            RasterImage.from_numpy(np.zeros((2, 2, 4), dtype=np.float32))

    def test_unsupported_dtype(self):
        with pytest.raises(InvalidInputError):
            RasterImage.from_numpy(np.zeros((2, 2, 4), dtype=np.int64))

    def test_copy_is_independent(self, random_raster):
        raster = RasterImage.from_numpy(random_raster)
        clone = raster.copy()
        clone.data[0, 0, 0] ^= 0xFF

        assert raster.data[0, 0, 0] != clone.data[0, 0, 0]


class TestPoint:
    """Tests for Point."""

    def test_conversions(self):
        point = Point(x=3, y=np.float32(4.5))

        assert point.to_tuple() == (3.0, 4.5)
        np.testing.assert_array_equal(point.to_numpy(), [3.0, 4.5])
        assert Point.from_numpy(np.array([1, 2])) == Point(x=1, y=2)

    def test_distance(self):
        assert Point(x=0, y=0).distance_to(Point(x=3, y=4)) == pytest.approx(5.0)

    def test_bad_shape(self):
        with pytest.raises(ValueError):
            Point.from_numpy(np.zeros(3))


class TestProcessingResult:
    """Tests for result helpers."""

    def test_helpers(self):
        corners = np.array([[1, 2], [9, 2], [9, 7], [1, 7]], dtype=np.float64)
        result = ProcessingResult(
            image=np.zeros((5, 8, 4), dtype=np.uint8),
            corners=corners,
            confidence=42.0,
            warning=LOW_CONFIDENCE_WARNING,
            source=DetectionSource.CONTOUR,
        )

        assert result.output_size == (8, 5)
        assert result.is_low_confidence()
        assert result.corner_points()[2] == Point(x=9, y=7)
        assert result.to_dict() == {
            "corners": [[1.0, 2.0], [9.0, 2.0], [9.0, 7.0], [1.0, 7.0]],
            "confidence": 42.0,
            "warning": LOW_CONFIDENCE_WARNING,
            "source": "contour",
            "output_width": 8,
            "output_height": 5,
        }

    def test_quadrilateral_fallback_flag(self):
        quad = Quadrilateral(
            corners=np.zeros((4, 2)), confidence=30.0, source=DetectionSource.FALLBACK
        )
        assert quad.is_fallback
