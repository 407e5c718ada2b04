from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from docintake.domain.errors import ValidationError

VALID_ROTATIONS = (0, 90, 180, 270)

# Image mime types that are not pixel grids
NON_RASTER_IMAGE_TYPES = frozenset({"image/svg+xml"})


@dataclass(frozen=True)
class Asset:
    """
    Immutable binary file flowing through the intake pipeline.
    Edits never mutate an Asset; they produce a replacement.
    """

    name: str
    mime_type: str
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def is_raster(self) -> bool:
        mime = (self.mime_type or "").lower()
        return mime.startswith("image/") and mime not in NON_RASTER_IMAGE_TYPES

    def with_data(self, data: bytes, mime_type: str) -> "Asset":
        return replace(self, data=data, mime_type=mime_type)


@dataclass(frozen=True)
class CropRect:
    """
    Sub-region of an asset's pixel grid in percent units [0, 100], plus a
    clockwise rotation applied to the extracted region.
    """

    x: float
    y: float
    width: float
    height: float
    rotation: int = 0

    @classmethod
    def full_frame(cls, rotation: int = 0) -> "CropRect":
        return cls(0.0, 0.0, 100.0, 100.0, rotation)

    def validate(self) -> "CropRect":
        if self.rotation not in VALID_ROTATIONS:
            raise ValidationError(
                f"Invalid rotation {self.rotation}", "rotation must be one of 0, 90, 180, 270"
            )
        if self.x < 0 or self.y < 0:
            raise ValidationError(f"Negative crop origin ({self.x}, {self.y})")
        if self.width <= 0 or self.height <= 0:
            raise ValidationError(f"Empty crop size ({self.width} x {self.height})")
        if self.x + self.width > 100 or self.y + self.height > 100:
            raise ValidationError(
                "Crop rectangle exceeds the image",
                f"x+width={self.x + self.width}, y+height={self.y + self.height}",
            )
        return self


@dataclass(frozen=True)
class DetectionResult:
    """
    Normalized answer of the detection service.
    crop_rect and confidence carry no meaning when success is False.
    """

    success: bool
    crop_rect: Optional[CropRect] = None
    confidence: float = 0.0
    message: Optional[str] = None
    document_type: Optional[str] = None

    @classmethod
    def failure(cls, message: Optional[str] = None) -> "DetectionResult":
        return cls(success=False, message=message)


class ItemStatus(str, Enum):
    PENDING = "pending"
    ANALYZING = "analyzing"
    SKIPPED = "skipped"
    APPLYING = "applying"
    APPLIED = "applied"
    FAILED = "failed"


class BatchState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"


class EditOutcome(str, Enum):
    """Result of an interactive detection-driven edit."""

    APPLIED = "applied"
    NOT_SIGNIFICANT = "not_significant"
    NOT_DETECTED = "not_detected"
    ALREADY_ALIGNED = "already_aligned"


@dataclass
class BatchItem:
    index: int
    asset: Asset
    # Position at batch start; results are written back by slot_id
    slot_id: str = ""
    status: ItemStatus = ItemStatus.PENDING


@dataclass(frozen=True)
class BatchProgress:
    current: int
    total: int


@dataclass(frozen=True)
class BatchSummary:
    success_count: int = 0
    skip_count: int = 0
    error_count: int = 0

    @property
    def total(self) -> int:
        return self.success_count + self.skip_count + self.error_count
