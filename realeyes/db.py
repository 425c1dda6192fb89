import asyncio
import logging
from typing import Optional

from tortoise import Tortoise
from tortoise.exceptions import DBConnectionError, OperationalError

from realeyes.config import settings

_logger = logging.getLogger("db")

MODELS = [
    "realeyes.models",
]


def _normalize_db_url(url: str) -> str:
    """Normalize a database URL for Tortoise ORM."""
    url = url.strip().strip('"').strip("'")
    # Normalize to tortoise "postgres://" style
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgres://", 1)
    if not url.startswith(("postgres://", "sqlite://")):
        raise ValueError("Unsupported DATABASE_URL; use postgres://... or sqlite://...")
    return url


def build_tortoise_config(db_url: str) -> dict:
    return {
        "connections": {"default": _normalize_db_url(db_url)},
        "apps": {
            "models": {
                "models": MODELS,
                "default_connection": "default",
            }
        },
        "use_tz": True,
        "timezone": "UTC",
    }


async def init_db(db_url: Optional[str] = None, max_retries: int = 3, delay_seconds: float = 0.5) -> None:
    """Initialize Tortoise and create missing tables, retrying transient connection failures."""
    config = build_tortoise_config(db_url or settings.DATABASE_URL)
    for attempt in range(1, max_retries + 1):
        try:
            await Tortoise.init(config=config)
            await Tortoise.generate_schemas(safe=True)
            _logger.info("Database initialized successfully")
            return
        except (DBConnectionError, OperationalError, OSError) as exc:
            if attempt == max_retries:
                _logger.error("Database unavailable after %s attempts. Error: %s", attempt, exc)
                raise
            _logger.info(
                "DB init failed (attempt %s/%s): %s; retrying in %.1fs",
                attempt,
                max_retries,
                exc,
                delay_seconds,
            )
            await asyncio.sleep(delay_seconds)


async def close_db() -> None:
    """Close database connections in the current event loop."""
    await Tortoise.close_connections()
