"""
Integration tests for RectificationProcessor.

Runs the full pipeline on synthetic rasters and checks the documented
guarantees: fallback behaviour, confidence bounds, warnings and input
validation.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import numpy as np
import pytest

from src.common.types import InvalidInputError, RasterImage
from src.rectification.config_loader import DEFAULT_CONFIG_PATH
from src.rectification.processor import (
    RectificationProcessor,
    as_rgba_array,
    rectify_document,
)
from src.rectification.types import (
    LOW_CONFIDENCE_WARNING,
    DetectionSource,
    ProcessingResult,
    QuadConfig,
    Quadrilateral,
    RectificationConfig,
)


@pytest.fixture
def processor():
    return RectificationProcessor(config=RectificationConfig())


class TestFallback:
    """Rasters without a usable boundary fall back to the inset rectangle."""

    def test_black_raster(self, processor, black_raster):
        result = processor.process(black_raster)

        assert isinstance(result, ProcessingResult)
        assert result.source == DetectionSource.FALLBACK
        assert result.confidence == pytest.approx(30.0)
        assert result.warning == LOW_CONFIDENCE_WARNING
        assert result.is_low_confidence()
        np.testing.assert_allclose(
            result.corners, [[15, 15], [385, 15], [385, 285], [15, 285]]
        )
        assert result.output_size == (370, 270)
        assert result.image.shape == (270, 370, 4)

    def test_custom_fallback_confidence(self, black_raster):
        config = RectificationConfig(quad=QuadConfig(fallback_confidence=10.0))
        result = RectificationProcessor(config=config).process(black_raster)
        assert result.confidence == pytest.approx(10.0)


class TestDetection:
    """Rasters with a clear page boundary."""

    def test_document_detected(self, processor, document_raster):
        rgba, expected = document_raster
        result = processor.process(rgba)

        assert result.source == DetectionSource.CONTOUR
        np.testing.assert_allclose(result.corners, expected, atol=2.0)
        assert 60.0 < result.confidence < 70.0
        assert result.warning is None

        width, height = result.output_size
        assert abs(width - 320) <= 3
        assert abs(height - 240) <= 3
        # Page interior is white after correction
        h, w = result.image.shape[:2]
        assert (result.image[10 : h - 10, 10 : w - 10, :3] == 255).all()

    def test_trapezoid_detected(self, processor, trapezoid_raster):
        rgba, expected = trapezoid_raster
        result = processor.process(rgba)

        assert result.source == DetectionSource.CONTOUR
        np.testing.assert_allclose(result.corners, expected, atol=6.0)
        # Area share of the trapezoid is below one half
        assert 40.0 < result.confidence < 50.0
        assert result.warning == LOW_CONFIDENCE_WARNING

    def test_accepts_raster_image(self, processor, document_raster):
        rgba, _ = document_raster
        from_array = processor.process(rgba)
        from_model = processor.process(RasterImage.from_numpy(rgba))

        np.testing.assert_array_equal(from_array.corners, from_model.corners)
        np.testing.assert_array_equal(from_array.image, from_model.image)

    def test_input_not_modified(self, processor, document_raster):
        rgba, _ = document_raster
        original = rgba.copy()
        processor.process(rgba)
        np.testing.assert_array_equal(rgba, original)

    def test_deterministic(self, processor, document_raster):
        rgba, _ = document_raster
        first = processor.process(rgba)
        second = processor.process(rgba)

        np.testing.assert_array_equal(first.image, second.image)
        np.testing.assert_array_equal(first.corners, second.corners)
        assert first.confidence == second.confidence

    def test_concurrent_calls_match_sequential(self, processor, document_raster):
        rgba, _ = document_raster
        expected = processor.process(rgba)

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(lambda _: processor.process(rgba), range(4)))

        for result in results:
            np.testing.assert_array_equal(result.image, expected.image)
            assert result.confidence == expected.confidence


class TestOptions:
    """Output size and warning threshold handling."""

    def test_explicit_output_size(self, processor, document_raster):
        rgba, _ = document_raster
        result = processor.process(rgba, output_size=(200, 100))
        assert result.image.shape == (100, 200, 4)

    def test_warning_threshold_raised(self, processor, document_raster):
        rgba, _ = document_raster
        result = processor.process(rgba, warning_threshold=70.0)
        assert result.warning == LOW_CONFIDENCE_WARNING

    def test_warning_threshold_lowered(self, processor, black_raster):
        result = processor.process(black_raster, warning_threshold=20.0)
        assert result.confidence == pytest.approx(30.0)
        assert result.warning is None

    def test_warning_iff_below_threshold(self, processor, black_raster):
        at_threshold = processor.process(black_raster, warning_threshold=30.0)
        assert at_threshold.warning is None

    @pytest.mark.parametrize("size", [(0, 100), (100, 0), (-5, 20)])
    def test_non_positive_output_size(self, processor, black_raster, size):
        with pytest.raises(InvalidInputError):
            processor.process(black_raster, output_size=size)


class TestDegenerateGeometry:
    """A collapsed quadrilateral yields a blank raster and zero confidence."""

    def test_collapsed_corners(self, processor, document_raster):
        rgba, _ = document_raster
        collapsed = Quadrilateral(
            corners=np.full((4, 2), 100.0),
            confidence=64.0,
            source=DetectionSource.CONTOUR,
        )

        with patch(
            "src.rectification.processor.select_quadrilateral",
            return_value=collapsed,
        ):
            result = processor.process(rgba, output_size=(50, 40))

        assert result.confidence == 0.0
        assert result.warning == LOW_CONFIDENCE_WARNING
        assert result.image.shape == (40, 50, 4)
        assert not result.image.any()


class TestInvalidInput:
    """Malformed rasters raise InvalidInputError."""

    def test_zero_area_array(self, processor):
        with pytest.raises(InvalidInputError):
            processor.process(np.zeros((0, 10, 4), dtype=np.uint8))

    def test_two_dimensional_array(self, processor):
        with pytest.raises(InvalidInputError):
            processor.process(np.zeros((10, 10), dtype=np.uint8))

    def test_wrong_channel_count(self, processor):
        with pytest.raises(InvalidInputError):
            processor.process(np.zeros((10, 10, 3), dtype=np.uint8))

    def test_wrong_dtype(self, processor):
        with pytest.raises(InvalidInputError):
            processor.process(np.zeros((10, 10, 4), dtype=np.float32))

    def test_unsupported_type(self, processor):
        with pytest.raises(InvalidInputError):
            processor.process([[0, 0, 0, 255]])

    def test_buffer_length_mismatch(self):
        with pytest.raises(InvalidInputError):
            RasterImage.from_buffer(10, 10, bytes(10 * 10 * 4 - 1))

    def test_invalid_error_is_value_error(self, processor):
        with pytest.raises(ValueError):
            processor.process(np.zeros((0, 0, 4), dtype=np.uint8))

    def test_as_rgba_array_flat_buffer(self):
        raster = RasterImage.from_buffer(4, 3, bytes(4 * 3 * 4))
        assert as_rgba_array(raster).shape == (3, 4, 4)


class TestConfigurationSource:
    """The processor reports where its configuration came from."""

    def test_default_config_logs_bundled_path(self, caplog):
        with caplog.at_level(logging.INFO, logger="src.rectification.processor"):
            processor = RectificationProcessor()

        assert processor.config == RectificationConfig()
        assert str(DEFAULT_CONFIG_PATH) in caplog.text

    def test_explicit_path_is_logged(self, caplog):
        with caplog.at_level(logging.INFO, logger="src.rectification.processor"):
            processor = RectificationProcessor(config_path=DEFAULT_CONFIG_PATH)

        assert processor.config == RectificationConfig()
        assert f"Loaded configuration from {DEFAULT_CONFIG_PATH}" in caplog.text

    def test_provided_config_is_not_loaded(self, caplog):
        config = RectificationConfig(quad=QuadConfig(fallback_confidence=10.0))
        with caplog.at_level(logging.INFO, logger="src.rectification.processor"):
            processor = RectificationProcessor(config=config)

        assert processor.config is config
        assert "Using provided configuration" in caplog.text
        assert "Loaded" not in caplog.text


class TestRectifyDocument:
    """Tests for the convenience function."""

    def test_matches_processor(self, document_raster):
        rgba, _ = document_raster
        result = rectify_document(rgba, config=RectificationConfig())
        expected = RectificationProcessor(config=RectificationConfig()).process(rgba)

        np.testing.assert_array_equal(result.corners, expected.corners)
        assert result.confidence == expected.confidence

    def test_default_config(self, black_raster):
        result = rectify_document(black_raster)
        assert result.source == DetectionSource.FALLBACK
        assert result.warning == LOW_CONFIDENCE_WARNING

    def test_summary_dict(self, black_raster):
        summary = rectify_document(black_raster).to_dict()

        assert summary["source"] == "fallback"
        assert summary["confidence"] == pytest.approx(30.0)
        assert summary["output_width"] == 370
        assert summary["output_height"] == 270
        assert summary["corners"][0] == [15.0, 15.0]
