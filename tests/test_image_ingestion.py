"""
Tests for services/image_ingestion.py — upload validation and encoding.
"""

import io

import pytest
from PIL import Image

from services.image_ingestion import (
    convert_to_jpeg,
    encode_bytes,
    encode_file,
    encode_upload,
    needs_conversion,
)
from tests.conftest import make_image_bytes


class TestEncodeUpload:

    def test_png_passes_through(self):
        raw = make_image_bytes("PNG")
        image = encode_upload(io.BytesIO(raw), "image/png", "me.png")
        assert image.mime_type == "image/png"
        assert image.raw_bytes == raw
        assert image.data_uri.startswith("data:image/png;base64,")

    def test_non_image_type_is_no_image(self):
        assert encode_upload(io.BytesIO(b"hello"), "text/plain", "notes.txt") is None

    def test_missing_file_is_no_image(self):
        assert encode_upload(None, "image/png") is None

    def test_image_type_with_garbage_bytes_is_no_image(self):
        assert encode_upload(io.BytesIO(b"definitely not a png"), "image/png", "x.png") is None

    def test_oversized_dimensions_are_no_image(self, monkeypatch):
        # 16x24 is more than twice the limit, so Pillow refuses to open it
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)
        raw = make_image_bytes("PNG")
        assert encode_upload(io.BytesIO(raw), "image/png", "huge.png") is None

    def test_type_guessed_from_filename(self):
        raw = make_image_bytes("JPEG")
        image = encode_upload(io.BytesIO(raw), "application/octet-stream", "photo.jpg")
        assert image.mime_type == "image/jpeg"

    def test_tiff_converted_to_jpeg(self):
        raw = make_image_bytes("TIFF")
        image = encode_upload(io.BytesIO(raw), "image/tiff", "scan.tiff")
        assert image.mime_type == "image/jpeg"
        with Image.open(io.BytesIO(image.raw_bytes)) as img:
            assert img.format == "JPEG"


def test_encode_bytes_empty():
    assert encode_bytes(b"", "image/png") is None


@pytest.mark.parametrize("mime_type,expected", [
    ("image/heic", True),
    ("IMAGE/HEIF", True),
    ("image/tiff", True),
    ("image/png", False),
    ("image/jpeg", False),
])
def test_needs_conversion(mime_type, expected):
    assert needs_conversion(mime_type) is expected


def test_convert_to_jpeg_flattens_transparency():
    raw = make_image_bytes("PNG", mode="RGBA", color=(0, 0, 0, 0))
    with Image.open(io.BytesIO(convert_to_jpeg(raw))) as img:
        assert img.format == "JPEG"
        assert img.mode == "RGB"
        assert img.getpixel((0, 0)) == (255, 255, 255)


def test_encode_file(tmp_path):
    path = tmp_path / "closeup.png"
    path.write_bytes(make_image_bytes("PNG"))
    image = encode_file(str(path))
    assert image.mime_type == "image/png"
