"""
Common type definitions for the document rectification pipeline.

This module provides Pydantic-based type definitions for the two values that
cross the pipeline boundary: rasters and points.

These types provide:
- Type validation and conversion
- Consistent interfaces between the codec, the pipeline and callers
- Helper methods for common operations
- Integration with numpy arrays and OpenCV
"""

from typing import Tuple, Union

import numpy as np
from pydantic import (
    BaseModel,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)


class InvalidInputError(ValueError):
    """Raised when a raster is malformed (zero area, bad buffer length, dtype)."""


class RasterImage(BaseModel):
    """
    Row-major raster with declared dimensions.

    The pixel buffer may be given flat (``width * height * channels`` values)
    or already shaped as ``(height, width)`` / ``(height, width, channels)``.
    It is always stored shaped so stages can index it as an image.

    Attributes:
        width: Width in pixels (> 0).
        height: Height in pixels (> 0).
        channels: 4 for RGBA input/output rasters, 1 for intermediate rasters.
        data: The pixel buffer. uint8 for RGBA, uint8 or float32 for 1 channel.

    Direct construction reports invalid buffers as pydantic
    ``ValidationError``; use ``from_buffer`` or ``from_numpy`` for untrusted
    input, which raise ``InvalidInputError``.

    Example:
        >>> buf = np.zeros(300 * 400 * 4, dtype=np.uint8)
        >>> raster = RasterImage.from_buffer(400, 300, buf)
        >>> raster.data.shape
        (300, 400, 4)
    """

    width: int = Field(..., description="Width in pixels")
    height: int = Field(..., description="Height in pixels")
    channels: int = Field(default=4, description="Channels per pixel")
    data: np.ndarray = Field(..., description="Pixel buffer")

    model_config = {"arbitrary_types_allowed": True}

    @field_validator("data", mode="before")
    @classmethod
    def _validate_buffer(cls, v) -> np.ndarray:
        if isinstance(v, (bytes, bytearray, memoryview)):
            v = np.frombuffer(v, dtype=np.uint8)
        if not isinstance(v, np.ndarray):
            raise InvalidInputError(
                f"Expected numpy.ndarray or bytes, got {type(v)}"
            )
        if v.dtype not in (np.uint8, np.float32):
            raise InvalidInputError(
                f"Expected uint8 or float32 pixel buffer, got {v.dtype}"
            )
        return v

    @model_validator(mode="after")
    def _validate_dimensions(self) -> "RasterImage":
        if self.width <= 0 or self.height <= 0:
            raise InvalidInputError(
                "Raster must have positive dimensions, "
                f"got {self.width}x{self.height}"
            )
        if self.channels not in (1, 4):
            raise InvalidInputError(f"Expected 1 or 4 channels, got {self.channels}")
        if self.channels == 4 and self.data.dtype != np.uint8:
            raise InvalidInputError("RGBA rasters must hold uint8 pixels")

        expected = self.width * self.height * self.channels
        if self.data.size != expected:
            raise InvalidInputError(
                f"Buffer holds {self.data.size} values, expected {expected} "
                f"for {self.width}x{self.height}x{self.channels}"
            )

        shape = (
            (self.height, self.width)
            if self.channels == 1
            else (self.height, self.width, self.channels)
        )
        if self.data.shape != shape:
            if self.data.ndim != 1:
                raise InvalidInputError(
                    f"Buffer shape {self.data.shape} does not match {shape}"
                )
            self.data = self.data.reshape(shape)
        return self

    @classmethod
    def from_buffer(
        cls, width: int, height: int, data, channels: int = 4
    ) -> "RasterImage":
        """
        Build a raster from a flat buffer and declared dimensions.

        Raises:
            InvalidInputError: If the buffer does not describe a valid raster.
        """
        try:
            return cls(
                width=int(width), height=int(height), channels=int(channels), data=data
            )
        except ValidationError as e:
            raise InvalidInputError(f"Malformed raster: {e}") from e

    @classmethod
    def from_numpy(cls, arr: np.ndarray) -> "RasterImage":
        """
        Wrap a shaped array, (H, W) or (H, W, 4).

        Raises:
            InvalidInputError: If the array is not a valid raster.
        """
        arr = np.asarray(arr)
        if arr.ndim == 2:
            return cls.from_buffer(arr.shape[1], arr.shape[0], arr, channels=1)
        if arr.ndim == 3:
            return cls.from_buffer(
                arr.shape[1], arr.shape[0], arr, channels=arr.shape[2]
            )
        raise InvalidInputError(f"Expected 2D or 3D array, got shape {arr.shape}")

    @property
    def shape(self) -> Tuple[int, ...]:
        """Get raster shape (H, W) or (H, W, C)."""
        return self.data.shape

    @property
    def area(self) -> int:
        """Number of pixels."""
        return self.width * self.height

    def to_numpy(self) -> np.ndarray:
        """Get the underlying shaped numpy array."""
        return self.data

    def copy(self) -> "RasterImage":
        """Create a deep copy of the raster."""
        return RasterImage(
            width=self.width,
            height=self.height,
            channels=self.channels,
            data=self.data.copy(),
        )

    def __repr__(self) -> str:
        return (
            f"RasterImage({self.width}x{self.height}x{self.channels}, "
            f"dtype={self.data.dtype})"
        )


class Point(BaseModel):
    """
    A 2D point (x, y) in pixel space.

    Coordinates are floats: stages 1-6 only produce integral values,
    geometry and homography stages work with continuous coordinates.

    Example:
        >>> point = Point(x=100, y=200.5)
        >>> point.to_tuple()
        (100.0, 200.5)
    """

    x: float = Field(..., description="X-coordinate (horizontal)")
    y: float = Field(..., description="Y-coordinate (vertical)")

    @field_validator("x", "y", mode="before")
    @classmethod
    def _convert_to_float(cls, v: Union[int, float, np.number]) -> float:
        if isinstance(v, (int, float, np.number)):
            return float(v)
        raise ValueError(f"Coordinate must be numeric, got {type(v)}")

    @classmethod
    def from_numpy(cls, arr: np.ndarray) -> "Point":
        """
        Create Point from numpy array of shape (2,).

        Raises:
            ValueError: If array shape is not (2,).
        """
        arr = np.asarray(arr)
        if arr.shape != (2,):
            raise ValueError(f"Expected array of shape (2,), got {arr.shape}")
        return cls(x=float(arr[0]), y=float(arr[1]))

    def to_numpy(self, dtype: type = np.float64) -> np.ndarray:
        return np.array([self.x, self.y], dtype=dtype)

    def to_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def distance_to(self, other: "Point") -> float:
        """Euclidean distance to another point."""
        return float(np.hypot(self.x - other.x, self.y - other.y))

    def __repr__(self) -> str:
        return f"Point(x={self.x:g}, y={self.y:g})"
