from docintake.domain.interfaces import IProcessor
from docintake.domain.models import CropRect
from docintake.domain.types import PixelBuffer
from docintake.features.geometry.logic import (
    compose_transform,
    crop_and_rotate,
    normalize_rotation,
    rotate_quarter,
    validate_compose,
)
from docintake.features.geometry.models import ComposeParams


class CropProcessor(IProcessor):
    """
    Cuts a percent rectangle and applies its quarter-turn rotation.
    """

    def __init__(self, rect: CropRect):
        self.rect = rect.validate()

    def process(self, image: PixelBuffer) -> PixelBuffer:
        return crop_and_rotate(image, self.rect)


class QuarterTurnProcessor(IProcessor):
    """
    Rotates the whole image clockwise, no crop.
    """

    def __init__(self, rotation: int = 90):
        self.rotation = normalize_rotation(rotation)

    def process(self, image: PixelBuffer) -> PixelBuffer:
        return rotate_quarter(image, self.rotation)


class ComposeProcessor(IProcessor):
    """
    Interactive editor path: region, rotation, flips and zoom in one pass.
    """

    def __init__(self, params: ComposeParams):
        self.rotation = validate_compose(params)
        self.params = params

    def process(self, image: PixelBuffer) -> PixelBuffer:
        return compose_transform(image, self.params)
