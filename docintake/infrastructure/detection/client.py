import asyncio
import base64
import concurrent.futures
from typing import Any, Dict, Optional

import pydantic
import requests

from docintake.domain.errors import (
    DecodeError,
    DetectionTransportError,
    EncodeError,
    ValidationError,
)
from docintake.domain.interfaces import Detector
from docintake.domain.models import Asset, DetectionResult
from docintake.features.detection.logic import response_to_result
from docintake.features.detection.models import (
    DetectionConfig,
    DetectorRequest,
    DetectorResponse,
)
from docintake.features.geometry.logic import analysis_size, resize_to
from docintake.features.geometry.models import TransformConfig
from docintake.kernel.image.logic import JPEG_MIME, decode_image, encode_jpeg
from docintake.kernel.system.logging import get_logger

logger = get_logger(__name__)


class CropDetectionClient(Detector):
    """
    Asks the external detection service for a crop rectangle and rotation.

    The asset is downscaled to a bounded analysis copy first, so the request
    size does not depend on the scan resolution; the original dimensions go
    along so the percent rectangle maps back onto the full image.

    detect() never raises. Transport errors, service errors and malformed
    answers all come back as DetectionResult.failure().
    """

    def __init__(
        self,
        config: Optional[DetectionConfig] = None,
        session: Optional[requests.Session] = None,
        transform_config: Optional[TransformConfig] = None,
        executor: Optional[concurrent.futures.Executor] = None,
    ) -> None:
        self.config = config or DetectionConfig.from_app_config()
        self.transform_config = transform_config or TransformConfig()
        self._owns_session = session is None
        self._session = session or requests.Session()
        self._executor = executor

    def close(self) -> None:
        if self._owns_session:
            self._session.close()

    def __enter__(self) -> "CropDetectionClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    async def detect(self, asset: Asset) -> DetectionResult:
        loop = asyncio.get_running_loop()
        try:
            self._check_eligible(asset)
            request = await loop.run_in_executor(self._executor, self.prepare_request, asset)
            body = await loop.run_in_executor(self._executor, self._post, request)
            response = DetectorResponse.model_validate(body)
            result = response_to_result(response, self.config.min_confidence)
        except DetectionTransportError as e:
            logger.warning(f"Detection failed for {asset.name}: {e.message} {e.details or ''}")
            return DetectionResult.failure(e.message)
        except (DecodeError, EncodeError) as e:
            logger.warning(f"Could not prepare {asset.name} for detection: {e.message}")
            return DetectionResult.failure(e.message)
        except (pydantic.ValidationError, ValidationError) as e:
            logger.warning(f"Malformed detection response for {asset.name}: {e}")
            return DetectionResult.failure("Malformed detection response")
        except Exception as e:
            logger.exception(f"Unexpected detection error for {asset.name}: {e}")
            return DetectionResult.failure(str(e))

        if result.success:
            rect = result.crop_rect
            logger.info(
                f"Detected {asset.name}: x={rect.x:.1f}% y={rect.y:.1f}% "
                f"w={rect.width:.1f}% h={rect.height:.1f}% rot={rect.rotation} "
                f"(confidence {result.confidence:.2f})"
            )
        else:
            logger.info(f"No document detected in {asset.name}: {result.message}")
        return result

    def _check_eligible(self, asset: Asset) -> None:
        if not asset.is_raster:
            raise DetectionTransportError(f"Not a raster asset: {asset.mime_type}")
        if asset.size > self.config.max_asset_bytes:
            raise DetectionTransportError(
                "Asset too large for detection",
                f"{asset.size} bytes > {self.config.max_asset_bytes}",
            )

    def prepare_request(self, asset: Asset) -> DetectorRequest:
        """
        Builds the request body: a JPEG analysis copy no larger than
        max_dimension on either side, plus the original pixel size.
        """
        pixels = decode_image(asset.data)
        height, width = pixels.shape[:2]

        target = analysis_size(width, height, self.config.max_dimension)
        if target is not None:
            pixels = resize_to(pixels, target)

        data = encode_jpeg(pixels, self.transform_config.analysis_jpeg_quality)
        return DetectorRequest(
            image_base64=base64.b64encode(data).decode("ascii"),
            image_type=JPEG_MIME,
            original_width=width,
            original_height=height,
        )

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
            headers["apikey"] = self.config.api_key
        return headers

    def _post(self, request: DetectorRequest) -> Any:
        try:
            response = self._session.post(
                self.config.url,
                json=request.model_dump(by_alias=True),
                headers=self._headers(),
                timeout=self.config.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise DetectionTransportError("Detection service unreachable", str(e)) from e

        try:
            return response.json()
        except ValueError as e:
            raise DetectionTransportError("Detection service returned non-JSON body", str(e)) from e
