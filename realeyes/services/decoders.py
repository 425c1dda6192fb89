"""
Input decoding strategies for uploads.

Every request shape (multipart form, raw body, base64 inside JSON) is
reduced to an UploadPayload so a single pipeline handles all of them.
"""

import base64
import binascii
import json
import os
from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

from realeyes.errors import PayloadTooLargeError, ValidationError
from realeyes.services.upload_validate import validate_upload

DEFAULT_FILENAME = "upload"
MAX_FILENAME_LENGTH = 255


@dataclass(frozen=True)
class UploadPayload:
    data: bytes
    filename: str
    declared_mime: Optional[str] = None
    image_origin_url: Optional[str] = None


def _clean(value) -> Optional[str]:
    if value is None or isinstance(value, UploadFile):
        return None
    value = str(value).strip()
    return value or None


def _filename(value) -> str:
    """Client-supplied name, cut to MAX_FILENAME_LENGTH keeping a short extension."""
    name = _clean(value) or DEFAULT_FILENAME
    if len(name) <= MAX_FILENAME_LENGTH:
        return name
    stem, ext = os.path.splitext(name)
    if len(ext) > 16:
        stem, ext = name, ""
    return stem[: MAX_FILENAME_LENGTH - len(ext)] + ext


async def from_multipart(request: Request, max_bytes: int) -> UploadPayload:
    try:
        form = await request.form()
    except (MultiPartException, StarletteHTTPException) as e:
        raise ValidationError("Malformed multipart body", details=str(getattr(e, "detail", e))) from e

    upload = next((v for _, v in form.multi_items() if isinstance(v, UploadFile)), None)
    if upload is None:
        raise ValidationError("No file data received")
    # Read one byte past the limit so oversize files are detected without buffering them whole
    data = validate_upload(await upload.read(max_bytes + 1), max_bytes)
    return UploadPayload(
        data=data,
        filename=_filename(upload.filename),
        declared_mime=upload.content_type,
        image_origin_url=_clean(form.get("imageOriginUrl")),
    )


async def from_raw_body(request: Request, max_bytes: int) -> UploadPayload:
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > max_bytes:
        raise PayloadTooLargeError(f"File too large: {declared} bytes (limit {max_bytes})")
    data = validate_upload(await request.body(), max_bytes)
    return UploadPayload(
        data=data,
        filename=_filename(request.headers.get("x-file-name")),
        declared_mime=_clean(request.headers.get("content-type")),
        image_origin_url=_clean(request.headers.get("x-image-origin-url")),
    )


def _decode_base64_image(value: str) -> tuple[bytes, Optional[str]]:
    mime = None
    if value.startswith("data:"):
        header, _, value = value.partition(",")
        mime = header[5:].split(";")[0] or None
    try:
        return base64.b64decode(value, validate=True), mime
    except (binascii.Error, ValueError) as e:
        raise ValidationError("Invalid base64 image data") from e


async def from_base64_json(request: Request, max_bytes: int) -> UploadPayload:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError("Malformed JSON body") from e
    if not isinstance(body, dict):
        raise ValidationError("Expected a JSON object")

    encoded = body.get("image")
    if not isinstance(encoded, str) or not encoded.strip():
        raise ValidationError("No file data received")
    data, mime = _decode_base64_image(encoded.strip())
    return UploadPayload(
        data=validate_upload(data, max_bytes),
        filename=_filename(body.get("fileName")),
        declared_mime=_clean(body.get("mimeType")) or mime,
        image_origin_url=_clean(body.get("imageOriginUrl")),
    )


async def decode_upload(request: Request, max_bytes: int) -> UploadPayload:
    content_type = (request.headers.get("content-type") or "").lower()
    if content_type.startswith("multipart/form-data"):
        return await from_multipart(request, max_bytes)
    if content_type.startswith("application/json"):
        return await from_base64_json(request, max_bytes)
    return await from_raw_body(request, max_bytes)
