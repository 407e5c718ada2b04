import os
from dataclasses import dataclass
from typing import Optional

from docintake.kernel.validation import validate_float, validate_int, validate_optional_int


@dataclass(frozen=True)
class AppConfig:
    detector_url: str
    detector_api_key: Optional[str]
    detector_timeout: float
    analysis_max_dimension: int
    max_asset_bytes: int
    max_batch_items: Optional[int]
    min_confidence: float


# Global application constants, overridable through the environment
APP_CONFIG = AppConfig(
    detector_url=os.getenv(
        "DOCINTAKE_DETECTOR_URL",
        "http://localhost:54321/functions/v1/auto-crop-document",
    ),
    detector_api_key=os.getenv("DOCINTAKE_DETECTOR_API_KEY") or None,
    detector_timeout=validate_float(os.getenv("DOCINTAKE_DETECTOR_TIMEOUT"), 60.0),
    analysis_max_dimension=validate_int(
        os.getenv("DOCINTAKE_ANALYSIS_MAX_DIMENSION"), 800
    ),
    max_asset_bytes=validate_int(
        os.getenv("DOCINTAKE_MAX_ASSET_BYTES"), 25 * 1024 * 1024
    ),
    max_batch_items=validate_optional_int(os.getenv("DOCINTAKE_MAX_BATCH_ITEMS")),
    min_confidence=validate_float(os.getenv("DOCINTAKE_MIN_CONFIDENCE"), 0.0),
)
