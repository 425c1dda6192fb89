"""
Content fingerprints for uploaded images.

Two independent fingerprints are derived from every upload:

1. SHA-256 over the exact bytes, used for byte-exact duplicate detection.
2. pHash over the decoded pixels (resampled to 32x32 grayscale, DCT,
   median threshold), used for perceptual similarity. Recompression or a
   format change usually keeps the hash identical or within a few bits.
"""

import hashlib
import io
import warnings
from dataclasses import dataclass
from typing import Optional

import imagehash
from PIL import Image, UnidentifiedImageError

from realeyes.errors import DecodeError


@dataclass(frozen=True)
class Fingerprint:
    content_hash: str
    perceptual_hash: str


def compute_content_hash(data: bytes) -> str:
    """Cryptographic hash of the raw bytes."""
    return hashlib.sha256(data).hexdigest()


def compute_perceptual_hash(data: bytes, content_hash: Optional[str] = None) -> str:
    try:
        with warnings.catch_warnings():
            # Treat oversized images as hostile instead of warning and decoding
            warnings.simplefilter("error", Image.DecompressionBombWarning)
            with Image.open(io.BytesIO(data)) as im:
                im.load()
                return str(imagehash.phash(im))
    except (UnidentifiedImageError, Image.DecompressionBombError, Image.DecompressionBombWarning) as e:
        raise DecodeError("Unable to decode image", image_hash=content_hash, details=str(e)) from e
    except (OSError, ValueError, SyntaxError) as e:
        # Truncated or corrupt payloads surface from the codecs as OSError/SyntaxError
        raise DecodeError("Unable to decode image", image_hash=content_hash, details=str(e)) from e


def fingerprint(data: bytes) -> Fingerprint:
    content_hash = compute_content_hash(data)
    return Fingerprint(
        content_hash=content_hash,
        perceptual_hash=compute_perceptual_hash(data, content_hash),
    )
