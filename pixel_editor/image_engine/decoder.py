"""Codec boundary using pyvips.

Raw bytes are validated by content signature before they are decoded into a
`PixelBuffer`; encoding goes the other way for export. pyvips is imported
lazily so that the rest of the core (filters, pipeline, change detection)
works without libvips installed.
"""

from __future__ import annotations

import contextlib
from typing import Any, Protocol

import numpy as np

from pixel_editor.config import DEFAULT_CONFIG, FORMAT_CONFIGS, EditorConfig
from pixel_editor.errors import ValidationError
from pixel_editor.logger import get_logger

from .buffer import RGB_CHANNELS, RGBA_CHANNELS, PixelBuffer

_logger = get_logger("decoder")

# mime -> leading signature bytes
MAGIC_BYTES: dict[str, tuple[bytes, ...]] = {
    "image/jpeg": (b"\xff\xd8\xff",),
    "image/png": (b"\x89PNG",),
    "image/gif": (b"GIF87a", b"GIF89a"),
    "image/bmp": (b"BM",),
    "image/tiff": (b"II*\x00", b"MM\x00*"),
}

# write_to_buffer suffix per output mime
_SAVE_SUFFIX: dict[str, str] = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/webp": ".webp",
    "image/gif": ".gif",
    "image/tiff": ".tif",
}

_pyvips: Any | None = None


def _get_pyvips_module() -> Any:
    global _pyvips
    if _pyvips is None:
        import pyvips  # type: ignore

        # Configure pyvips caches to avoid memory growth
        with contextlib.suppress(Exception):
            pyvips.cache_set_max(0)
            pyvips.cache_set_max_mem(0)
            pyvips.cache_set_max_files(0)
        _pyvips = pyvips
    return _pyvips


def sniff_mime(data: bytes) -> str | None:
    """Identify an image type from its leading bytes, or None if unknown."""
    head = bytes(data[:16])
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "image/webp"
    for mime, signatures in MAGIC_BYTES.items():
        if any(head.startswith(sig) for sig in signatures):
            return mime
    return None


def _normalize_mime(mime: str | None) -> str:
    m = (mime or "").strip().lower()
    return "image/jpeg" if m == "image/jpg" else m


def validate_image_bytes(data: bytes, declared_mime: str | None, config: EditorConfig = DEFAULT_CONFIG) -> str:
    """Check size, declared type and content signature. Returns the detected mime."""
    if not data:
        raise ValidationError("empty file")
    if len(data) > config.max_file_size:
        raise ValidationError(f"file too large: {len(data)} bytes (max {config.max_file_size})")

    supported = {_normalize_mime(m) for m in config.supported_mimes}
    declared = _normalize_mime(declared_mime)
    if declared and declared not in supported:
        raise ValidationError(f"unsupported type: {declared_mime}")

    detected = sniff_mime(data)
    if detected is None or detected not in supported:
        raise ValidationError("content is not a supported image")
    if declared and declared != detected:
        raise ValidationError(f"declared type {declared_mime} does not match content ({detected})")
    return detected


def _vips_to_rgba_array(image: Any) -> np.ndarray:
    pyvips = _get_pyvips_module()
    with contextlib.suppress(Exception):
        image = image.colourspace("srgb")
    if image.format != "uchar":
        image = image.cast("uchar")
    bands = image.bands
    if bands == 1 or bands == 2:
        # grey or grey+alpha
        grey = image.extract_band(0)
        alpha = image.extract_band(1) if bands == 2 else None
        image = pyvips.Image.bandjoin([grey, grey, grey])
        if alpha is not None:
            image = image.bandjoin(alpha)
    if image.bands == RGB_CHANNELS:
        image = image.bandjoin(255)
    elif image.bands > RGBA_CHANNELS:
        image = image.extract_band(0, n=RGBA_CHANNELS)

    mem = image.write_to_memory()
    array = np.frombuffer(mem, dtype=np.uint8).reshape(image.height, image.width, image.bands)
    array = array.copy()
    if array.shape[2] != RGBA_CHANNELS:
        raise RuntimeError(f"Unsupported band count after conversion: {array.shape[2]}")
    return array


def decode_buffer(data: bytes, declared_mime: str | None = None, config: EditorConfig = DEFAULT_CONFIG) -> PixelBuffer:
    """Validate and decode image bytes into an RGBA `PixelBuffer`."""
    validate_image_bytes(data, declared_mime, config)
    pyvips = _get_pyvips_module()
    try:
        image = pyvips.Image.new_from_buffer(data, "", access="sequential")
    except Exception as e:
        _logger.debug("decode failed: %s", e)
        raise ValidationError("image could not be decoded") from e

    max_w, max_h = config.max_dimensions
    if image.width > max_w or image.height > max_h:
        raise ValidationError(f"image too large: {image.width}x{image.height} (max {max_w}x{max_h})")

    array = _vips_to_rgba_array(image)
    with contextlib.suppress(Exception):
        del image
    return PixelBuffer.from_array(array)


def decode_file(path: str, config: EditorConfig = DEFAULT_CONFIG) -> PixelBuffer:
    with open(path, "rb") as f:
        data = f.read(config.max_file_size + 1)
    return decode_buffer(data, None, config)


def encode_buffer(buffer: PixelBuffer, mime: str = "image/png", quality: int | None = None) -> bytes:
    """Encode a buffer to the given output type via pyvips.

    JPEG has no alpha, so transparent areas are flattened onto white. `quality`
    is on the 1..100 scale and ignored by lossless formats.
    """
    mime = _normalize_mime(mime)
    suffix = _SAVE_SUFFIX.get(mime)
    if suffix is None:
        raise ValidationError(f"unsupported output type: {mime}")
    pyvips = _get_pyvips_module()

    buf = np.ascontiguousarray(buffer.pixels).tobytes()
    img: Any = pyvips.Image.new_from_memory(buf, buffer.width, buffer.height, RGBA_CHANNELS, "uchar")
    with contextlib.suppress(Exception):
        img = img.copy(interpretation="srgb")

    options: dict[str, Any] = {}
    if mime == "image/jpeg":
        img = img.flatten(background=[255, 255, 255])
    if quality is not None and FORMAT_CONFIGS.get(mime, {}).get("quality") is not None:
        options["Q"] = int(max(1, min(100, quality)))

    out = img.write_to_buffer(suffix, **options)
    # Normalize to bytes in case pyvips returns a memoryview-like object
    if isinstance(out, bytes):
        return out
    return bytes(out)


class Codec(Protocol):
    def encode(self, buffer: PixelBuffer, mime: str, quality: int | None = None) -> bytes: ...


class VipsCodec:
    """`Codec` backed by libvips."""

    def encode(self, buffer: PixelBuffer, mime: str, quality: int | None = None) -> bytes:
        return encode_buffer(buffer, mime, quality)

    def decode(self, data: bytes, declared_mime: str | None = None) -> PixelBuffer:
        return decode_buffer(data, declared_mime)


__all__ = [
    "MAGIC_BYTES",
    "Codec",
    "VipsCodec",
    "decode_buffer",
    "decode_file",
    "encode_buffer",
    "sniff_mime",
    "validate_image_bytes",
]
