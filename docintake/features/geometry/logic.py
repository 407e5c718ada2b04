import cv2
import numpy as np
from typing import Optional

from docintake.domain.errors import ValidationError
from docintake.domain.models import CropRect, VALID_ROTATIONS
from docintake.domain.types import Dimensions, PixelBuffer, PixelRect
from docintake.features.geometry.models import ComposeParams, MAX_ZOOM, MIN_ZOOM
from docintake.kernel.image.logic import round_half_up
from docintake.kernel.system.performance import time_function
from docintake.kernel.validation import ensure_pixels


def percent_rect_to_pixels(rect: CropRect, width: int, height: int) -> PixelRect:
    """
    Projects a percent rectangle onto a width x height pixel grid.
    Every field is rounded half-up independently.
    """
    return (
        round_half_up(rect.x * width / 100.0),
        round_half_up(rect.y * height / 100.0),
        round_half_up(rect.width * width / 100.0),
        round_half_up(rect.height * height / 100.0),
    )


def rotated_size(width: int, height: int, rotation: int) -> Dimensions:
    if rotation in (90, 270):
        return height, width
    return width, height


def normalize_rotation(degrees: int) -> int:
    """
    Folds any quarter-turn multiple into [0, 360). -90 becomes 270.
    """
    if degrees % 90 != 0:
        raise ValidationError(
            f"Invalid rotation {degrees}", "rotation must be a multiple of 90 degrees"
        )
    return degrees % 360


@time_function
def extract_region(img: PixelBuffer, rect: PixelRect) -> PixelBuffer:
    """
    Copies the pixel rectangle out of img. Parts of the rectangle that fall
    outside the source stay black (transparent for RGBA).
    """
    x, y, w, h = rect
    ih, iw, channels = img.shape
    w, h = max(0, w), max(0, h)

    if x >= 0 and y >= 0 and x + w <= iw and y + h <= ih:
        return ensure_pixels(img[y : y + h, x : x + w].copy())

    out = np.zeros((h, w, channels), dtype=np.uint8)
    sx1, sy1 = max(0, x), max(0, y)
    sx2, sy2 = min(iw, x + w), min(ih, y + h)
    if sx2 > sx1 and sy2 > sy1:
        out[sy1 - y : sy2 - y, sx1 - x : sx2 - x] = img[sy1:sy2, sx1:sx2]
    return out


def rotate_quarter(img: PixelBuffer, rotation: int) -> PixelBuffer:
    """
    Rotates clockwise by 0, 90, 180 or 270 degrees.
    """
    if rotation not in VALID_ROTATIONS:
        raise ValidationError(f"Invalid rotation {rotation}")
    if rotation == 0:
        return img
    # np.rot90 turns counter-clockwise for positive k
    return ensure_pixels(np.rot90(img, k=-(rotation // 90)))


def flip(img: PixelBuffer, flip_h: bool, flip_v: bool) -> PixelBuffer:
    if flip_h:
        img = img[:, ::-1]
    if flip_v:
        img = img[::-1, :]
    return img


@time_function
def resize_to(img: PixelBuffer, size: Dimensions) -> PixelBuffer:
    """
    Resamples img to (width, height). Area averaging when shrinking,
    bilinear when enlarging.
    """
    w, h = size
    ih, iw = img.shape[:2]
    if (w, h) == (iw, ih) or w <= 0 or h <= 0 or iw == 0 or ih == 0:
        return img
    interpolation = cv2.INTER_AREA if w * h < iw * ih else cv2.INTER_LINEAR
    res = cv2.resize(np.ascontiguousarray(img), (w, h), interpolation=interpolation)
    return ensure_pixels(res)


@time_function
def crop_and_rotate(img: PixelBuffer, rect: CropRect) -> PixelBuffer:
    """
    Cuts the percent rectangle out of img at its natural size and turns it
    clockwise by rect.rotation. Output is (w, h), swapped for 90/270.
    """
    ih, iw = img.shape[:2]
    region = extract_region(img, percent_rect_to_pixels(rect, iw, ih))
    return rotate_quarter(region, rect.rotation)


def compose_rotation(params: ComposeParams) -> int:
    base = params.rect.rotation if params.rect is not None else 0
    return normalize_rotation(base + params.rotation_delta)


def validate_compose(params: ComposeParams) -> int:
    """
    Checks an interactive edit and returns its effective clockwise rotation.
    """
    if params.rect is not None:
        params.rect.validate()
    if not (MIN_ZOOM <= params.zoom <= MAX_ZOOM):
        raise ValidationError(
            f"Zoom {params.zoom} out of range", f"zoom must lie in [{MIN_ZOOM}, {MAX_ZOOM}]"
        )
    return compose_rotation(params)


def compose_output_size(
    src_width: int, src_height: int, rotation: int, zoom: float
) -> Dimensions:
    cw, ch = rotated_size(src_width, src_height, rotation)
    return round_half_up(cw * zoom), round_half_up(ch * zoom)


@time_function
def compose_transform(img: PixelBuffer, params: ComposeParams) -> PixelBuffer:
    """
    Interactive edit: the source region is drawn around the surface centre
    after rotation, then flip, then zoom are applied to the drawing context.
    In image terms the region is mirrored along its own axes, turned
    clockwise, and resampled to a surface zoom times its rotated size.
    """
    rotation = validate_compose(params)
    ih, iw = img.shape[:2]
    rect = params.rect if params.rect is not None else CropRect.full_frame()
    region = extract_region(img, percent_rect_to_pixels(rect, iw, ih))

    out = rotate_quarter(flip(region, params.flip_h, params.flip_v), rotation)
    rh, rw = region.shape[:2]
    target = compose_output_size(rw, rh, rotation, params.zoom)
    return resize_to(ensure_pixels(out), target)


def analysis_size(
    width: int, height: int, max_dimension: int
) -> Optional[Dimensions]:
    """
    Size of the detector copy, aspect preserved. None when the image already
    fits inside max_dimension.
    """
    if width <= max_dimension and height <= max_dimension:
        return None
    scale = max_dimension / max(width, height)
    return (
        max(1, round_half_up(width * scale)),
        max(1, round_half_up(height * scale)),
    )
