import io
import math
import warnings

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from docintake.domain.errors import DecodeError, EncodeError
from docintake.domain.types import PixelBuffer
from docintake.kernel.validation import ensure_pixels

JPEG_MIME = "image/jpeg"
PNG_MIME = "image/png"


def round_half_up(value: float) -> int:
    """
    Rounds to the nearest integer, ties away from zero for positive values
    (2.5 -> 3). Used for every percent/scale to pixel conversion.
    """
    return int(math.floor(value + 0.5))


def decode_image(data: bytes) -> PixelBuffer:
    """
    Decodes raster bytes into an (H, W, 3|4) uint8 buffer.
    EXIF orientation is applied so the buffer matches what a viewer shows.
    """
    if not data:
        raise DecodeError("Empty image data")
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("error", Image.DecompressionBombWarning)
            with Image.open(io.BytesIO(data)) as img:
                img.load()
                img = ImageOps.exif_transpose(img)
                has_alpha = img.mode in ("RGBA", "LA", "PA") or (
                    img.mode == "P" and "transparency" in img.info
                )
                img = img.convert("RGBA" if has_alpha else "RGB")
                arr = np.asarray(img)
    except (
        UnidentifiedImageError,
        OSError,
        ValueError,
        SyntaxError,
        Image.DecompressionBombError,
        Image.DecompressionBombWarning,
    ) as e:
        raise DecodeError("Could not decode image", str(e)) from e

    return ensure_pixels(arr)


def _to_pil(buffer: PixelBuffer) -> Image.Image:
    h, w = buffer.shape[:2]
    if h == 0 or w == 0:
        raise EncodeError(f"Cannot create a {w}x{h} drawing surface")
    channels = buffer.shape[2]
    if channels == 1:
        return Image.fromarray(np.ascontiguousarray(buffer[:, :, 0]))
    if channels in (3, 4):
        return Image.fromarray(np.ascontiguousarray(buffer))
    raise EncodeError(f"Unsupported channel count: {channels}")


def _save(img: Image.Image, fmt: str, **params) -> bytes:
    output_buf = io.BytesIO()
    try:
        img.save(output_buf, format=fmt, **params)
    except (OSError, ValueError) as e:
        raise EncodeError(f"{fmt} encoding failed", str(e)) from e
    data = output_buf.getvalue()
    if not data:
        raise EncodeError(f"{fmt} encoder produced no data")
    return data


def encode_jpeg(buffer: PixelBuffer, quality: int) -> bytes:
    """
    Lossy encode. JPEG has no alpha, transparent pixels end up on black.
    """
    img = _to_pil(buffer)
    if img.mode == "RGBA":
        background = Image.new("RGB", img.size, (0, 0, 0))
        background.paste(img, mask=img.getchannel("A"))
        img = background
    return _save(img, "JPEG", quality=quality)


def encode_png(buffer: PixelBuffer) -> bytes:
    """
    Lossless encode, alpha preserved.
    """
    return _save(_to_pil(buffer), "PNG")
