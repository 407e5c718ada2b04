from typing import Any, Optional, cast
import numpy as np
from docintake.domain.types import PixelBuffer


def ensure_pixels(arr: Any) -> PixelBuffer:
    """
    Ensures the input is a uint8 numpy array of shape (H, W, C) and returns it
    as a PixelBuffer. Greyscale (H, W) input gains a channel axis.
    """
    if not isinstance(arr, np.ndarray):
        raise TypeError(f"Expected numpy.ndarray, got {type(arr)}")

    if arr.ndim == 2:
        arr = arr[:, :, np.newaxis]
    if arr.ndim != 3:
        raise TypeError(f"Expected a 2D or 3D pixel array, got {arr.ndim} dimensions")

    if arr.dtype != np.uint8:
        arr = np.clip(arr, 0, 255).astype(np.uint8)

    return cast(PixelBuffer, np.ascontiguousarray(arr))


def validate_float(val: Any, default: float = 0.0) -> float:
    """Ensures a value is a float, providing a default if None."""
    if val is None:
        return default
    try:
        return float(val)
    except (TypeError, ValueError):
        return default


def validate_int(val: Any, default: int = 0) -> int:
    """Ensures a value is an int, providing a default if None."""
    if val is None:
        return default
    try:
        return int(val)
    except (TypeError, ValueError):
        return default


def validate_optional_int(val: Any) -> Optional[int]:
    """Like validate_int, but empty or unparsable values mean 'not set'."""
    if val is None or val == "":
        return None
    try:
        return int(val)
    except (TypeError, ValueError):
        return None
