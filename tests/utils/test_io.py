"""
Unit tests for JSON helpers.
"""

import numpy as np
import pytest

from src.rectification.types import DetectionSource
from src.utils.io import load_json, save_json


class TestJson:
    """Tests for save_json / load_json."""

    def test_numpy_and_enum_values(self, tmp_path):
        data = {
            "corners": np.array([[1.5, 2.0], [3.0, 4.0]]),
            "confidence": np.float32(64.5),
            "width": np.int64(320),
            "source": DetectionSource.FALLBACK,
        }

        path = save_json(data, tmp_path / "out" / "summary.json")

        assert load_json(path) == {
            "corners": [[1.5, 2.0], [3.0, 4.0]],
            "confidence": 64.5,
            "width": 320,
            "source": "fallback",
        }

    def test_unsupported_value(self, tmp_path):
        with pytest.raises(TypeError):
            save_json({"value": object()}, tmp_path / "bad.json")
