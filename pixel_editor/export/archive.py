from __future__ import annotations

import io
import zipfile
from collections.abc import Iterable


def build_zip(entries: Iterable[tuple[str, bytes]]) -> bytes:
    """Pack (name, data) pairs into an in-memory deflated zip archive."""
    out = io.BytesIO()
    seen: set[str] = set()
    with zipfile.ZipFile(out, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, data in entries:
            if name in seen:
                raise ValueError(f"duplicate archive entry: {name}")
            seen.add(name)
            zf.writestr(name, data)
    return out.getvalue()


def read_zip(data: bytes) -> dict[str, bytes]:
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        return {name: zf.read(name) for name in zf.namelist()}
