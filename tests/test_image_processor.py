# tests/test_image_processor.py
"""
Tests for frame loading and downscaling.
"""

import base64
import io

import pytest
from PIL import Image

from conftest import make_image_bytes
from trailcam_sorter.errors import MediaError
from trailcam_sorter.image_processor import ImageProcessor


def decode(data):
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


def test_small_jpeg_passes_through_unchanged():
    data = make_image_bytes(800, 600)
    assert ImageProcessor.downscale(data, 1200) is data


def test_jpeg_exactly_max_width_passes_through():
    data = make_image_bytes(1200, 900)
    assert ImageProcessor.downscale(data, 1200) is data


def test_wide_image_is_resized_preserving_aspect_ratio():
    data = make_image_bytes(2400, 1350)
    img = decode(ImageProcessor.downscale(data, 1200))
    assert img.format == "JPEG"
    assert img.size == (1200, 675)


def test_small_png_is_reencoded_as_jpeg():
    data = make_image_bytes(100, 80, fmt="PNG")
    img = decode(ImageProcessor.downscale(data, 1200))
    assert img.format == "JPEG"
    assert img.size == (100, 80)


def test_rgba_png_is_converted_before_jpeg_encoding():
    buf = io.BytesIO()
    Image.new("RGBA", (300, 100), (0, 0, 0, 0)).save(buf, format="PNG")
    img = decode(ImageProcessor.downscale(buf.getvalue(), 150))
    assert img.mode == "RGB"
    assert img.size == (150, 50)


def test_garbage_raises_media_error():
    with pytest.raises(MediaError):
        ImageProcessor.downscale(b"definitely not an image", 1200)


def test_decompression_bomb_raises_media_error(monkeypatch):
    data = make_image_bytes(200, 200)
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
    with pytest.raises(MediaError):
        ImageProcessor.downscale(data, 100)


def test_load_image_bytes(tmp_path):
    path = tmp_path / "a.jpg"
    path.write_bytes(b"abc")
    assert ImageProcessor.load_image_bytes(str(path)) == b"abc"


def test_load_missing_image_raises_media_error(tmp_path):
    with pytest.raises(MediaError):
        ImageProcessor.load_image_bytes(str(tmp_path / "missing.jpg"))


def test_to_base64():
    assert base64.b64decode(ImageProcessor.to_base64(b"\x00\xff")) == b"\x00\xff"
