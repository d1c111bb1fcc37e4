"""Output file naming helpers."""

from __future__ import annotations

import datetime as _dt
import re
import time

from pixel_editor.config import FORMAT_CONFIGS

MAX_FILENAME_LENGTH = 255
FALLBACK_PREFIX = "file"

_DANGEROUS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_RESERVED = re.compile(r"^(CON|PRN|AUX|NUL|COM[1-9]|LPT[1-9])(\.|$)", re.IGNORECASE)
_UNSAFE = re.compile(r"[^a-zA-Z0-9.\-]")


def is_valid_filename(name: object) -> bool:
    if not name or not isinstance(name, str):
        return False
    if len(name) > MAX_FILENAME_LENGTH:
        return False
    if _DANGEROUS.search(name):
        return False
    return not _RESERVED.match(name)


def _fallback_name() -> str:
    return f"{FALLBACK_PREFIX}_{int(time.time() * 1000)}"


def sanitize_filename(name: str) -> str:
    """Make `name` safe as a download filename.

    Names with path separators, control characters or reserved device names
    are replaced by a generated one; otherwise every character outside
    ``[A-Za-z0-9.-]`` becomes ``_`` and the result is truncated keeping the
    extension.
    """
    if not name or not isinstance(name, str) or _DANGEROUS.search(name) or _RESERVED.match(name):
        return _fallback_name()
    sanitized = _UNSAFE.sub("_", name)
    if len(sanitized) > MAX_FILENAME_LENGTH:
        dot = sanitized.rfind(".")
        if dot > 0:
            ext = sanitized[dot:]
            sanitized = sanitized[: MAX_FILENAME_LENGTH - len(ext)] + ext
        else:
            sanitized = sanitized[:MAX_FILENAME_LENGTH]
    if not sanitized.replace("_", "").replace(".", ""):
        return _fallback_name()
    return sanitized


def format_extension(mime: str) -> str:
    cfg = FORMAT_CONFIGS.get(mime.lower())
    if cfg is not None:
        return cfg["extension"]
    # image/x-foo -> foo
    return mime.rsplit("/", 1)[-1].removeprefix("x-") or "bin"


def split_stem(filename: str) -> str:
    dot = filename.rfind(".")
    return filename[:dot] if dot > 0 else filename


def derived_filename(source_name: str, mime: str) -> str:
    """``<stem>_converted.<ext>`` for a single-image export."""
    return sanitize_filename(f"{split_stem(source_name)}_converted.{format_extension(mime)}")


def bundle_entry_name(stem: str, size: int, ext: str = "png") -> str:
    return f"{stem}_{size}x{size}.{ext}"


def bundle_archive_name(stem: str, today: _dt.date | None = None) -> str:
    day = (today or _dt.date.today()).isoformat()
    return sanitize_filename(f"{stem}_icons_{day}.zip")


def format_file_size(num_bytes: int) -> str:
    if num_bytes <= 0:
        return "0 Bytes"
    units = ("Bytes", "KB", "MB", "GB")
    value = float(num_bytes)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {units[i]}"


__all__ = [
    "MAX_FILENAME_LENGTH",
    "bundle_archive_name",
    "bundle_entry_name",
    "derived_filename",
    "format_extension",
    "format_file_size",
    "is_valid_filename",
    "sanitize_filename",
    "split_stem",
]
