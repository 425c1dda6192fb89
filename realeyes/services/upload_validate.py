import os
from dataclasses import dataclass
from typing import Iterable, Optional

from realeyes.errors import PayloadTooLargeError, UnsupportedTypeError, ValidationError

_EXTENSION_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "gif": "image/gif",
}

_TYPE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/pjpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}


@dataclass(frozen=True)
class FileType:
    extension: str
    content_type: str
    source: str  # magic | mime | filename


def sniff_content_type(content: bytes) -> Optional[str]:
    """Identify the raster format from its signature bytes."""
    if content.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if content.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if len(content) >= 12 and content[:4] == b"RIFF" and content[8:12] == b"WEBP":
        return "image/webp"
    if content[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    return None


def detect_file_type(
    content: bytes,
    declared_mime: Optional[str],
    filename: Optional[str],
    allowed_types: Iterable[str],
) -> FileType:
    allowed = set(allowed_types)

    sniffed = sniff_content_type(content)
    if sniffed:
        detected = FileType(_TYPE_EXTENSIONS[sniffed], sniffed, "magic")
    else:
        mime = (declared_mime or "").split(";")[0].strip().lower()
        if mime in _TYPE_EXTENSIONS:
            ext = _TYPE_EXTENSIONS[mime]
            detected = FileType(ext, _EXTENSION_TYPES[ext], "mime")
        else:
            ext = os.path.splitext(filename or "")[1].lstrip(".").lower()
            content_type = _EXTENSION_TYPES.get(ext, mime or "application/octet-stream")
            detected = FileType("jpg" if ext == "jpeg" else ext, content_type, "filename")

    if detected.content_type not in allowed:
        raise UnsupportedTypeError(f"Unsupported file type: {detected.content_type}")
    return detected


def validate_upload(content: bytes, max_size: int) -> bytes:
    if not content:
        raise ValidationError("No file data received")
    if len(content) > max_size:
        raise PayloadTooLargeError(f"File too large: {len(content)} bytes (limit {max_size})")
    return content
