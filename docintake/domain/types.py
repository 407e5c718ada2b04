from typing import TypeAlias, Tuple
import numpy as np
import numpy.typing as npt


# Image Types
# 8-bit image (Height, Width, Channels)
PixelBuffer: TypeAlias = npt.NDArray[np.uint8]

# Geometry Types
# (x, y, width, height) in absolute pixels
PixelRect: TypeAlias = Tuple[int, int, int, int]
# (Width, Height)
Dimensions: TypeAlias = Tuple[int, int]
