from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator, model_validator

from docintake.domain.models import VALID_ROTATIONS
from docintake.kernel.system.config import APP_CONFIG, AppConfig

# Detector arithmetic may overshoot the 100% edge by float noise
EDGE_TOLERANCE = 1e-6


@dataclass(frozen=True)
class DetectionConfig:
    url: str
    api_key: Optional[str] = None
    timeout: float = 60.0
    max_dimension: int = 800
    max_asset_bytes: int = 25 * 1024 * 1024
    min_confidence: float = 0.0

    @classmethod
    def from_app_config(cls, config: AppConfig = APP_CONFIG) -> "DetectionConfig":
        return cls(
            url=config.detector_url,
            api_key=config.detector_api_key,
            timeout=config.detector_timeout,
            max_dimension=config.analysis_max_dimension,
            max_asset_bytes=config.max_asset_bytes,
            min_confidence=config.min_confidence,
        )


class DetectorRequest(BaseModel):
    """
    Body posted to the detection service.
    """

    model_config = ConfigDict(populate_by_name=True)

    image_base64: str = Field(alias="imageBase64")
    image_type: str = Field(alias="imageType")
    original_width: int = Field(alias="originalWidth", gt=0)
    original_height: int = Field(alias="originalHeight", gt=0)


class DetectorResponse(BaseModel):
    """
    Validated shape of the detection service answer. A successful answer
    must carry a complete rectangle inside the image and a confidence.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    success: StrictBool
    crop_x: Optional[float] = Field(default=None, alias="cropX", ge=0, le=100)
    crop_y: Optional[float] = Field(default=None, alias="cropY", ge=0, le=100)
    crop_width: Optional[float] = Field(default=None, alias="cropWidth", gt=0, le=100)
    crop_height: Optional[float] = Field(default=None, alias="cropHeight", gt=0, le=100)
    rotation: int = 0
    confidence: Optional[float] = Field(default=None, ge=0, le=1)
    message: Optional[str] = None
    document_type: Optional[str] = Field(default=None, alias="documentType")

    @field_validator("rotation")
    @classmethod
    def check_rotation(cls, v: int) -> int:
        if v not in VALID_ROTATIONS:
            raise ValueError(f"rotation must be one of {VALID_ROTATIONS}")
        return v

    @model_validator(mode="after")
    def check_rect(self) -> "DetectorResponse":
        if not self.success:
            return self
        fields = (self.crop_x, self.crop_y, self.crop_width, self.crop_height, self.confidence)
        if any(v is None for v in fields):
            raise ValueError("successful detection without a complete rectangle")
        if self.crop_x + self.crop_width > 100 + EDGE_TOLERANCE:
            raise ValueError("cropX + cropWidth exceeds 100")
        if self.crop_y + self.crop_height > 100 + EDGE_TOLERANCE:
            raise ValueError("cropY + cropHeight exceeds 100")
        return self
