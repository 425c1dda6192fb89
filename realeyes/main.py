# Top imports
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from realeyes.config import Settings, settings as default_settings
from realeyes.core.middleware import ErrorEnvelopeMiddleware, SecurityHeadersMiddleware
from realeyes.core.rate_limit import limiter
from realeyes.db import close_db, init_db
from realeyes.errors import IntakeError
from realeyes.services.feedback import FeedbackReconciler
from realeyes.services.ingestion import IngestionPipeline
from realeyes.services.metrics import metrics_endpoint, metrics_middleware
from realeyes.services.observability import init_observability, instrument_fastapi
from realeyes.services.records import RecordStore
from realeyes.services.storage import build_blob_store

# Logging setup
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("realeyes")

_INSECURE_SECRETS = ("", "dev", "CHANGE_ME")


def _check_production_secrets(settings: Settings) -> None:
    if (settings.APP_ENV or "").strip().lower() != "production":
        return
    secret = settings.JWT_SECRET or ""
    if secret in _INSECURE_SECRETS or secret.startswith("dev-") or len(secret) < 32:
        raise RuntimeError("Insecure JWT_SECRET; set a real secret in production")


def create_app(settings: Optional[Settings] = None, blob_store=None) -> FastAPI:
    settings = settings or default_settings

    # Method: lifespan()
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        logger.info("Starting RealEyes intake service (env=%s)...", settings.APP_ENV)
        _check_production_secrets(settings)
        init_observability(settings)
        await init_db(settings.DATABASE_URL)

        records = RecordStore()
        blobs = blob_store or build_blob_store(settings)
        app.state.pipeline = IngestionPipeline(
            records,
            blobs,
            allowed_types=settings.ALLOWED_MIME_TYPES,
            key_prefix=settings.BLOB_KEY_PREFIX,
            similarity_max_distance=settings.PHASH_MAX_DISTANCE,
            similarity_scan_limit=settings.PHASH_SCAN_LIMIT,
        )
        app.state.reconciler = FeedbackReconciler(records, max_comment_length=settings.MAX_COMMENT_LENGTH)

        yield

        # Shutdown
        logger.info("Shutting down RealEyes intake service...")
        await close_db()
        logger.info("Database connections closed")

    app = FastAPI(
        title="RealEyes Intake API",
        description="Image intake with duplicate detection and user feedback",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # Rate limiting
    limiter.enabled = settings.RATE_LIMIT_ENABLED
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    @app.exception_handler(IntakeError)
    async def intake_error_handler(request: Request, exc: IntakeError):
        if exc.status_code >= 500:
            logger.error("%s on %s: %s (%s)", type(exc).__name__, request.url.path, exc.message, exc.details)
        else:
            logger.info("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    from realeyes.routers import build_router
    app.include_router(build_router())

    # Middleware setup; the last one added runs first
    metrics_middleware(app, settings.METRICS_ENABLED)
    app.add_middleware(SecurityHeadersMiddleware, production=settings.APP_ENV.strip().lower() == "production")
    app.add_middleware(ErrorEnvelopeMiddleware)
    app.add_middleware(GZipMiddleware, minimum_size=1024)

    # Answers preflight itself, echoing an allowed origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=False,
        allow_methods=["POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    # Instrument with OpenTelemetry
    instrument_fastapi(app, settings)

    @app.get("/metrics")
    async def prometheus_metrics():
        return await metrics_endpoint(settings.METRICS_ENABLED)

    # Universal health endpoint (always present)
    @app.get("/health")
    async def health():
        return {"status": "healthy", "timestamp": datetime.now(timezone.utc).isoformat()}

    return app


app = create_app()

