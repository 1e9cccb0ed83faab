"""
Unit tests for the image codec.
"""

import cv2
import numpy as np
import pytest

from src.common.types import RasterImage
from src.utils.image_codec import (
    decode_image,
    encode_jpeg,
    encode_png,
    load_image,
    save_image,
)


def _png_bytes(bgr):
    ok, encoded = cv2.imencode(".png", bgr)
    assert ok
    return encoded.tobytes()


class TestDecodeImage:
    """Tests for decode_image."""

    def test_color_png_to_rgba(self):
        bgr = np.zeros((6, 8, 3), dtype=np.uint8)
        bgr[..., 0] = 200  # Blue in OpenCV order

        raster = decode_image(_png_bytes(bgr))

        assert isinstance(raster, RasterImage)
        assert raster.shape == (6, 8, 4)
        assert raster.data[0, 0].tolist() == [0, 0, 200, 255]

    def test_grayscale_png(self):
        gray = np.full((5, 5), 77, dtype=np.uint8)
        raster = decode_image(_png_bytes(gray))
        assert raster.data[2, 2].tolist() == [77, 77, 77, 255]

    def test_scale(self):
        bgr = np.zeros((40, 60, 3), dtype=np.uint8)
        raster = decode_image(_png_bytes(bgr), scale=0.5)
        assert (raster.width, raster.height) == (30, 20)

    def test_invalid_bytes(self):
        with pytest.raises(ValueError, match="Could not decode"):
            decode_image(b"definitely not an image")

    def test_empty_bytes(self):
        with pytest.raises(ValueError):
            decode_image(b"")

    def test_non_positive_scale(self):
        with pytest.raises(ValueError, match="Scale must be positive"):
            decode_image(_png_bytes(np.zeros((4, 4), dtype=np.uint8)), scale=0)


class TestEncode:
    """Tests for JPEG and PNG encoding."""

    def test_png_keeps_alpha(self, random_raster):
        decoded = decode_image(encode_png(random_raster))
        np.testing.assert_array_equal(decoded.data, random_raster)

    def test_jpeg_round_trip_is_close(self, document_raster):
        rgba, _ = document_raster
        payload = encode_jpeg(rgba)

        assert payload[:2] == b"\xff\xd8"
        decoded = decode_image(payload).data
        assert decoded.shape == rgba.shape
        assert (decoded[..., 3] == 255).all()
        diff = np.abs(decoded[..., :3].astype(int) - rgba[..., :3].astype(int))
        assert diff.mean() < 3

    def test_accepts_raster_image(self, random_raster):
        raster = RasterImage.from_numpy(random_raster)
        assert encode_png(raster) == encode_png(random_raster)

    def test_rejects_non_rgba(self):
        with pytest.raises(ValueError, match="RGBA"):
            encode_jpeg(np.zeros((4, 4, 3), dtype=np.uint8))


class TestFileIO:
    """Tests for load_image and save_image."""

    def test_save_and_load_png(self, tmp_path, random_raster):
        path = save_image(random_raster, tmp_path / "nested" / "out.png")

        assert path.exists()
        np.testing.assert_array_equal(load_image(path).data, random_raster)

    def test_save_jpeg_by_default(self, tmp_path, random_raster):
        path = save_image(random_raster, tmp_path / "out.jpeg")
        assert path.read_bytes()[:2] == b"\xff\xd8"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_image(tmp_path / "missing.jpg")
