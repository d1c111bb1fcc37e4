import dataclasses

import pytest

from helpers.images import make_buffer
from pixel_editor.config import EditorConfig
from pixel_editor.errors import ValidationError
from pixel_editor.image_engine.buffer import PixelBuffer
from pixel_editor.image_engine.decoder import sniff_mime, validate_image_bytes

PNG_HEAD = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
JPEG_HEAD = b"\xff\xd8\xff\xe0" + b"\x00" * 16


@pytest.mark.parametrize(
    "data,mime",
    [
        (PNG_HEAD, "image/png"),
        (JPEG_HEAD, "image/jpeg"),
        (b"GIF89a" + b"\x00" * 10, "image/gif"),
        (b"RIFF\x00\x00\x00\x00WEBPVP8 ", "image/webp"),
        (b"BM" + b"\x00" * 10, "image/bmp"),
        (b"II*\x00" + b"\x00" * 10, "image/tiff"),
        (b"hello world", None),
    ],
)
def test_sniff_mime(data, mime):
    assert sniff_mime(data) == mime


def test_validate_accepts_matching_declared_type():
    assert validate_image_bytes(PNG_HEAD, "image/png") == "image/png"
    assert validate_image_bytes(JPEG_HEAD, "image/jpg") == "image/jpeg"
    assert validate_image_bytes(JPEG_HEAD, None) == "image/jpeg"


@pytest.mark.parametrize(
    "data,declared,message",
    [
        (b"", "image/png", "empty"),
        (PNG_HEAD, "image/svg+xml", "unsupported type"),
        (b"plain text, not an image", "image/png", "not a supported image"),
        (PNG_HEAD, "image/jpeg", "does not match"),
    ],
)
def test_validate_rejects(data, declared, message):
    with pytest.raises(ValidationError, match=message):
        validate_image_bytes(data, declared)


def test_validate_rejects_oversized_file():
    config = dataclasses.replace(EditorConfig(), max_file_size=10)
    with pytest.raises(ValidationError, match="too large"):
        validate_image_bytes(PNG_HEAD, "image/png", config)


def test_png_round_trip_keeps_pixels():
    pytest.importorskip("pyvips")
    from pixel_editor.image_engine.decoder import VipsCodec

    codec = VipsCodec()
    buf = make_buffer(5, 3).set_pixel(1, 1, (10, 20, 30, 128))
    data = codec.encode(buf, "image/png")
    assert sniff_mime(data) == "image/png"
    assert codec.decode(data, "image/png") == buf


def test_jpeg_flattens_alpha_onto_white():
    pytest.importorskip("pyvips")
    from pixel_editor.image_engine.decoder import decode_buffer, encode_buffer

    transparent = PixelBuffer.blank(8, 8, (0, 0, 0, 0))
    data = encode_buffer(transparent, "image/jpeg", 95)
    assert sniff_mime(data) == "image/jpeg"
    decoded = decode_buffer(data)
    r, g, b, a = decoded.get_pixel(4, 4)
    assert a == 255
    assert min(r, g, b) >= 250


def test_decode_rejects_oversized_dimensions():
    pytest.importorskip("pyvips")
    from pixel_editor.image_engine.decoder import decode_buffer, encode_buffer

    data = encode_buffer(make_buffer(20, 10), "image/png")
    config = dataclasses.replace(EditorConfig(), max_dimensions=(16, 16))
    with pytest.raises(ValidationError, match="image too large"):
        decode_buffer(data, "image/png", config)


def test_encode_rejects_unknown_output_type():
    pytest.importorskip("pyvips")
    from pixel_editor.image_engine.decoder import encode_buffer

    with pytest.raises(ValidationError):
        encode_buffer(make_buffer(2, 2), "image/x-unknown")
