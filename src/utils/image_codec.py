"""
Image Codec

Raster decoder and encoder used around the rectification pipeline.
Decoding always yields an 8-bit RGBA RasterImage; encoding writes JPEG
(quality 92 by default) or PNG when transparency must be kept.
"""

import logging
from pathlib import Path
from typing import Union

import cv2
import numpy as np

from src.common.types import RasterImage

logger = logging.getLogger(__name__)

DEFAULT_JPEG_QUALITY = 92

_TO_RGBA = {
    1: cv2.COLOR_GRAY2RGBA,
    3: cv2.COLOR_BGR2RGBA,
    4: cv2.COLOR_BGRA2RGBA,
}


def _to_uint8(image: np.ndarray) -> np.ndarray:
    if image.dtype == np.uint8:
        return image
    if image.dtype == np.uint16:
        return (image >> 8).astype(np.uint8)
    if np.issubdtype(image.dtype, np.floating):
        return np.clip(np.rint(image * 255.0), 0, 255).astype(np.uint8)
    raise ValueError(f"Unsupported image dtype: {image.dtype}")


def decode_image(data: bytes, scale: float = 1.0) -> RasterImage:
    """
    Decode an encoded image (JPEG, PNG, BMP, TIFF, ...) into an RGBA raster.

    Multi-page formats yield their first page.

    Args:
        data: Encoded image bytes.
        scale: Resolution scale; the decoded frame is resized by this factor
            with bilinear interpolation.

    Returns:
        RasterImage with 4 channels.

    Raises:
        ValueError: If the bytes cannot be decoded or scale is not positive.
    """
    if scale <= 0:
        raise ValueError(f"Scale must be positive, got {scale}")

    buffer = np.frombuffer(data, dtype=np.uint8)
    image = cv2.imdecode(buffer, cv2.IMREAD_UNCHANGED) if buffer.size else None
    if image is None:
        raise ValueError("Could not decode image data")

    image = _to_uint8(image)
    channels = 1 if image.ndim == 2 else image.shape[2]
    if channels not in _TO_RGBA:
        raise ValueError(f"Unsupported channel count: {channels}")
    rgba = cv2.cvtColor(image, _TO_RGBA[channels])

    if scale != 1.0:
        h, w = rgba.shape[:2]
        size = (max(1, int(round(w * scale))), max(1, int(round(h * scale))))
        rgba = cv2.resize(rgba, size, interpolation=cv2.INTER_LINEAR)

    logger.debug(f"Decoded image to {rgba.shape[1]}x{rgba.shape[0]} RGBA raster")
    return RasterImage.from_numpy(rgba)


def load_image(path: Union[str, Path], scale: float = 1.0) -> RasterImage:
    """
    Read and decode an image file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file cannot be decoded.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Image not found: {path}")
    return decode_image(path.read_bytes(), scale)


def _as_rgba(raster: Union[RasterImage, np.ndarray]) -> np.ndarray:
    rgba = raster.data if isinstance(raster, RasterImage) else np.asarray(raster)
    if rgba.ndim != 3 or rgba.shape[2] != 4 or rgba.dtype != np.uint8:
        raise ValueError(
            "Expected uint8 RGBA array of shape (H, W, 4), "
            f"got {rgba.shape} {rgba.dtype}"
        )
    return rgba


def encode_jpeg(
    raster: Union[RasterImage, np.ndarray], quality: int = DEFAULT_JPEG_QUALITY
) -> bytes:
    """
    Encode an RGBA raster as JPEG. Alpha is dropped.

    Raises:
        ValueError: If the raster is not RGBA or encoding fails.
    """
    bgr = cv2.cvtColor(_as_rgba(raster), cv2.COLOR_RGBA2BGR)
    ok, encoded = cv2.imencode(".jpg", bgr, [cv2.IMWRITE_JPEG_QUALITY, int(quality)])
    if not ok:
        raise ValueError("JPEG encoding failed")
    return encoded.tobytes()


def encode_png(raster: Union[RasterImage, np.ndarray]) -> bytes:
    """
    Encode an RGBA raster as PNG, keeping alpha.

    Raises:
        ValueError: If the raster is not RGBA or encoding fails.
    """
    bgra = cv2.cvtColor(_as_rgba(raster), cv2.COLOR_RGBA2BGRA)
    ok, encoded = cv2.imencode(".png", bgra)
    if not ok:
        raise ValueError("PNG encoding failed")
    return encoded.tobytes()


def save_image(
    raster: Union[RasterImage, np.ndarray],
    path: Union[str, Path],
    quality: int = DEFAULT_JPEG_QUALITY,
) -> Path:
    """
    Encode and write a raster; ``.png`` keeps alpha, anything else is JPEG.

    Returns:
        The written path.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix.lower() == ".png":
        payload = encode_png(raster)
    else:
        payload = encode_jpeg(raster, quality)
    path.write_bytes(payload)
    logger.info(f"Saved {len(payload)} bytes to {path}")
    return path
