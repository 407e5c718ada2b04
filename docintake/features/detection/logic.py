from docintake.domain.models import CropRect, DetectionResult
from docintake.features.detection.models import DetectorResponse

# Percent of an edge a detected crop must remove before it is worth applying
EDGE_MARGIN = 3.0
MIN_KEPT_EXTENT = 100.0 - 2 * EDGE_MARGIN


def is_significant(rect: CropRect) -> bool:
    """
    A crop that trims less than ~3% of any edge and proposes no rotation is
    a no-op, not worth a lossy re-encode.
    """
    return (
        rect.x > EDGE_MARGIN
        or rect.y > EDGE_MARGIN
        or rect.width < MIN_KEPT_EXTENT
        or rect.height < MIN_KEPT_EXTENT
        or rect.rotation != 0
    )


def is_significant_result(result: DetectionResult) -> bool:
    if not result.success or result.crop_rect is None:
        raise ValueError("Significance is only defined for successful detections")
    return is_significant(result.crop_rect)


def response_to_result(response: DetectorResponse, min_confidence: float = 0.0) -> DetectionResult:
    """
    Maps a validated service answer onto the domain result. Rectangles that
    overshoot the far edge by float noise are pulled back inside.
    """
    if not response.success:
        return DetectionResult.failure(response.message)

    confidence = float(response.confidence or 0.0)
    if confidence < min_confidence:
        return DetectionResult.failure(
            f"Confidence {confidence:.2f} below threshold {min_confidence:.2f}"
        )

    x, y = float(response.crop_x), float(response.crop_y)
    rect = CropRect(
        x=x,
        y=y,
        width=min(float(response.crop_width), 100.0 - x),
        height=min(float(response.crop_height), 100.0 - y),
        rotation=response.rotation,
    )
    return DetectionResult(
        success=True,
        crop_rect=rect.validate(),
        confidence=confidence,
        message=response.message,
        document_type=response.document_type,
    )
