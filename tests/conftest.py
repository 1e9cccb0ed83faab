"""
Pytest Configuration and Shared Fixtures

This file contains pytest configuration and fixtures that are available
to all test modules.
"""

import pytest


def _rgba(gray_image):
    import numpy as np

    rgba = np.zeros(gray_image.shape + (4,), dtype=np.uint8)
    rgba[..., :3] = gray_image[..., None]
    rgba[..., 3] = 255
    return rgba


@pytest.fixture
def black_raster():
    """Fixture providing a 400x300 all-black RGBA raster."""
    import numpy as np

    image = np.zeros((300, 400, 4), dtype=np.uint8)
    image[..., 3] = 255
    return image


@pytest.fixture
def document_raster():
    """
    Fixture providing a white page on a black background.

    The page covers pixels x in [40, 359], y in [30, 269], so its boundary
    runs through (40, 30), (360, 30), (360, 270), (40, 270).
    """
    import cv2
    import numpy as np

    gray = np.zeros((300, 400), dtype=np.uint8)
    cv2.rectangle(gray, (40, 30), (359, 269), 255, thickness=-1)
    corners = np.array(
        [[40, 30], [360, 30], [360, 270], [40, 270]], dtype=np.float64
    )
    return _rgba(gray), corners


@pytest.fixture
def trapezoid_raster():
    """Fixture providing a page photographed at an angle (trapezoid)."""
    import cv2
    import numpy as np

    gray = np.zeros((300, 400), dtype=np.uint8)
    pts = np.array([[100, 40], [300, 40], [350, 260], [50, 260]], dtype=np.int32)
    cv2.fillPoly(gray, [pts], 255)
    return _rgba(gray), pts.astype(np.float64)


@pytest.fixture
def sample_quadrilateral_points():
    """Fixture providing sample 4-corner points, deliberately unordered."""
    import numpy as np

    return np.array(
        [
            [300, 150],  # Top-right area
            [100, 200],  # Top-left area
            [320, 400],  # Bottom-right area
            [80, 380],  # Bottom-left area
        ],
        dtype=np.float64,
    )


@pytest.fixture
def random_raster():
    """Fixture providing a deterministic random 40x30 RGBA raster."""
    import numpy as np

    rng = np.random.default_rng(1234)
    return rng.integers(0, 256, size=(30, 40, 4), dtype=np.uint8)
