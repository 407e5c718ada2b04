from dataclasses import dataclass
from typing import Optional

from docintake.domain.models import CropRect

MIN_ZOOM = 0.5
MAX_ZOOM = 2.0


@dataclass(frozen=True)
class TransformConfig:
    # Batch and auto-crop output, bounded size over fidelity
    batch_jpeg_quality: int = 92
    # Copy sent to the detection service
    analysis_jpeg_quality: int = 80


@dataclass(frozen=True)
class ComposeParams:
    """
    Parameters of an interactive edit. rect=None means the full asset.
    """

    rect: Optional[CropRect] = None
    rotation_delta: int = 0
    flip_h: bool = False
    flip_v: bool = False
    zoom: float = 1.0
