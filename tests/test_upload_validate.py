"""File-type detection and upload limits"""

import pytest

from realeyes.errors import PayloadTooLargeError, UnsupportedTypeError, ValidationError
from realeyes.services.upload_validate import detect_file_type, sniff_content_type, validate_upload

ALLOWED = ("image/jpeg", "image/png", "image/webp")


def test_magic_numbers_win_over_declared_type(make_image):
    ft = detect_file_type(make_image(1), "image/jpeg", "photo.jpg", ALLOWED)
    assert (ft.extension, ft.content_type, ft.source) == ("png", "image/png", "magic")


def test_jpeg_signature(make_image):
    ft = detect_file_type(make_image(1, fmt="JPEG"), None, None, ALLOWED)
    assert (ft.extension, ft.content_type) == ("jpg", "image/jpeg")


def test_webp_signature():
    assert sniff_content_type(b"RIFF\x24\x00\x00\x00WEBPVP8 ") == "image/webp"


def test_falls_back_to_declared_mime():
    ft = detect_file_type(b"\x00\x01\x02", "image/webp", "x.bin", ALLOWED)
    assert (ft.extension, ft.source) == ("webp", "mime")


def test_falls_back_to_filename_extension():
    ft = detect_file_type(b"\x00\x01\x02", "application/octet-stream", "holiday.JPEG", ALLOWED)
    assert (ft.extension, ft.content_type, ft.source) == ("jpg", "image/jpeg", "filename")


def test_unsupported_type_rejected():
    with pytest.raises(UnsupportedTypeError) as exc:
        detect_file_type(b"%PDF-1.7\n", "application/pdf", "doc.pdf", ALLOWED)
    assert "application/pdf" in exc.value.message
    assert exc.value.status_code == 400


def test_gif_outside_allow_list():
    with pytest.raises(UnsupportedTypeError):
        detect_file_type(b"GIF89a\x01\x00\x01\x00", None, "anim.gif", ALLOWED)


def test_empty_upload_rejected():
    with pytest.raises(ValidationError):
        validate_upload(b"", 10)


def test_oversize_upload_rejected():
    with pytest.raises(PayloadTooLargeError) as exc:
        validate_upload(b"x" * 11, 10)
    assert exc.value.status_code == 413
