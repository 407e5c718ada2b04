import io

import numpy as np
import pytest
from PIL import Image

from docintake.domain.errors import DecodeError, EncodeError
from docintake.kernel.image.logic import decode_image, encode_jpeg, encode_png
from docintake.kernel.validation import ensure_pixels
from fakes import image_bytes


def test_decode_rgb_png():
    arr = decode_image(image_bytes(40, 20, (10, 20, 30)))
    assert arr.shape == (20, 40, 3)
    assert arr.dtype == np.uint8
    assert tuple(arr[0, 0]) == (10, 20, 30)


def test_decode_keeps_alpha():
    arr = decode_image(image_bytes(8, 8, (255, 0, 0, 128)))
    assert arr.shape == (8, 8, 4)
    assert arr[0, 0, 3] == 128


def test_decode_greyscale_becomes_rgb():
    buf = io.BytesIO()
    Image.new("L", (6, 4), 77).save(buf, format="PNG")
    arr = decode_image(buf.getvalue())
    assert arr.shape == (4, 6, 3)


def test_decode_applies_exif_orientation():
    buf = io.BytesIO()
    exif = Image.Exif()
    exif[0x0112] = 6  # display rotated 90 clockwise
    Image.new("RGB", (40, 20), (0, 0, 0)).save(buf, format="JPEG", exif=exif.tobytes())

    arr = decode_image(buf.getvalue())
    assert arr.shape[:2] == (40, 20)


def test_decode_rejects_garbage():
    with pytest.raises(DecodeError):
        decode_image(b"definitely not an image")


def test_decode_rejects_empty():
    with pytest.raises(DecodeError):
        decode_image(b"")


def test_encode_jpeg_drops_alpha():
    buf = np.zeros((10, 10, 4), dtype=np.uint8)
    buf[..., 0] = 255
    buf[..., 3] = 255
    data = encode_jpeg(buf, 92)

    with Image.open(io.BytesIO(data)) as img:
        assert img.format == "JPEG"
        assert img.mode == "RGB"
        assert img.size == (10, 10)


def test_encode_png_keeps_alpha():
    buf = np.zeros((3, 5, 4), dtype=np.uint8)
    buf[..., 3] = 42
    data = encode_png(buf)

    with Image.open(io.BytesIO(data)) as img:
        assert img.format == "PNG"
        assert img.mode == "RGBA"
        assert img.size == (5, 3)


def test_encode_zero_size_surface_fails():
    empty = np.zeros((0, 10, 3), dtype=np.uint8)
    with pytest.raises(EncodeError):
        encode_jpeg(empty, 92)
    with pytest.raises(EncodeError):
        encode_png(empty)


def test_ensure_pixels():
    res = ensure_pixels(np.full((2, 3), 300.0))
    assert res.shape == (2, 3, 1)
    assert res.dtype == np.uint8
    assert res.max() == 255

    with pytest.raises(TypeError):
        ensure_pixels([[1, 2]])
