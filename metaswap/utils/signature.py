# metaswap/utils/signature.py
"""
Magic-number checks so that only real JPEGs reach the segment walker.
"""
from __future__ import annotations

_JPEG_FAMILY = {"jpg", "jpeg", "jpe", "jfif"}


def _starts(data: bytes, prefix: bytes) -> bool:
    return data.startswith(prefix)


# SOI followed by the prefix of the first segment marker
def _is_jpeg(data: bytes) -> bool:
    return _starts(data, b"\xFF\xD8\xFF")


def detect_extension(data: bytes) -> str | None:
    """Return a normalized extension (with dot), or None if not a JPEG."""
    if _is_jpeg(data): return ".jpg"
    return None


def ext_equivalent(a: str, b: str) -> bool:
    """True if extensions are the same or both name a JPEG."""
    a = a.lstrip(".").lower()
    b = b.lstrip(".").lower()
    if a == b: return True
    return a in _JPEG_FAMILY and b in _JPEG_FAMILY
