"""
I/O Utilities

JSON persistence for rectification summaries. Numpy arrays, numpy scalars
and enums are written as plain JSON values.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Union

import numpy as np


def _json_default(value: Any) -> Any:
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def load_json(file_path: Union[str, Path]) -> Dict[str, Any]:
    """Load JSON file."""
    with open(file_path, "r", encoding="utf-8") as f:
        return json.load(f)


def save_json(
    data: Dict[str, Any], file_path: Union[str, Path], indent: int = 2
) -> Path:
    """Save data to JSON file, creating parent directories."""
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    with open(file_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=indent, default=_json_default)
    return file_path
