"""
Pytest configuration and fixtures for the intake service tests
"""

import io
import random
from typing import Optional

import pytest
from PIL import Image, ImageDraw
from PIL.PngImagePlugin import PngInfo

from realeyes.config import Settings
from realeyes.db import init_db, close_db
from realeyes.services.records import RecordStore
from realeyes.services.storage import LocalBlobStore


def draw_scene(seed: int, size: int = 128) -> Image.Image:
    """A few large coloured shapes; smooth enough to survive JPEG re-encoding."""
    rng = random.Random(seed)
    im = Image.new("RGB", (size, size), tuple(rng.randrange(256) for _ in range(3)))
    draw = ImageDraw.Draw(im)
    for _ in range(6):
        x0, y0 = rng.randrange(size - 32), rng.randrange(size - 32)
        x1, y1 = x0 + rng.randrange(24, size - x0), y0 + rng.randrange(24, size - y0)
        colour = tuple(rng.randrange(256) for _ in range(3))
        if rng.random() < 0.5:
            draw.rectangle([x0, y0, x1, y1], fill=colour)
        else:
            draw.ellipse([x0, y0, x1, y1], fill=colour)
    return im


def encode(im: Image.Image, fmt: str = "PNG", quality: int = 95, note: Optional[str] = None) -> bytes:
    buf = io.BytesIO()
    if fmt == "PNG":
        info = None
        if note is not None:
            info = PngInfo()
            info.add_text("Comment", note)
        im.save(buf, format="PNG", pnginfo=info)
    else:
        im.save(buf, format=fmt, quality=quality)
    return buf.getvalue()


@pytest.fixture
def make_image():
    """Factory: make_image(seed, fmt="PNG", quality=95, note=None) -> bytes."""
    def _make(seed: int = 1, fmt: str = "PNG", quality: int = 95, note: Optional[str] = None) -> bytes:
        return encode(draw_scene(seed), fmt=fmt, quality=quality, note=note)
    return _make


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite://{tmp_path / 'test_db.sqlite3'}"


@pytest.fixture(scope="function")
async def db_setup(db_url):
    """Initialize a fresh SQLite test database for each test."""
    await init_db(db_url)
    try:
        yield
    finally:
        await close_db()


@pytest.fixture
def records(db_setup):
    return RecordStore()


@pytest.fixture
def blob_dir(tmp_path):
    path = tmp_path / "blobs"
    path.mkdir()
    return path


@pytest.fixture
def blobs(blob_dir):
    return LocalBlobStore(str(blob_dir), "http://testserver/blobs")


@pytest.fixture
def test_settings(db_url, blob_dir):
    return Settings(
        APP_ENV="test",
        DATABASE_URL=db_url,
        STORAGE_DRIVER="local",
        STORAGE_DIR=str(blob_dir),
        PUBLIC_BASE_URL="http://testserver/blobs",
        RATE_LIMIT_ENABLED=False,
        METRICS_ENABLED=True,
        JWT_SECRET="test-secret-that-is-at-least-32-characters",
    )
