from io import BytesIO
from typing import Any, Dict, Optional

from PIL import Image as PILImage, ExifTags


def _json_safe(value: Any) -> Any:
    if isinstance(value, (str, int, bool)) or value is None:
        return value
    if isinstance(value, float):
        return value if value == value else None
    if isinstance(value, bytes):
        return value.hex() if len(value) <= 64 else f"<{len(value)} bytes>"
    if isinstance(value, (tuple, list)):
        return [_json_safe(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    try:
        # IFDRational and friends
        return float(value)
    except (TypeError, ValueError, ZeroDivisionError):
        return str(value)


def extract_metadata(content: bytes) -> Optional[Dict[str, Any]]:
    """Width, height, format and a JSON-safe EXIF map; None when unreadable."""
    try:
        with PILImage.open(BytesIO(content)) as im:
            width, height = im.size
            fmt = im.format
            exif = im.getexif()

        exif_readable: Dict[str, Any] = {}
        for k, v in exif.items():
            tag = ExifTags.TAGS.get(k, str(k))
            exif_readable[tag] = _json_safe(v)

        return {
            "width": width,
            "height": height,
            "format": fmt,
            "exif": exif_readable,
        }
    except (OSError, ValueError, SyntaxError):
        return None
