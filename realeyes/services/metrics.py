"""
Prometheus metrics for the intake service
"""

import time
from fastapi import Request
from fastapi.responses import Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

REQUESTS_TOTAL = Counter(
    "realeyes_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

REQUEST_DURATION = Histogram(
    "realeyes_http_request_seconds",
    "Request duration in seconds",
    ["method", "path"],
)

UPLOADS_TOTAL = Counter(
    "realeyes_uploads_total",
    "Image uploads by classification",
    ["classification"],
)

FEEDBACK_TOTAL = Counter(
    "realeyes_feedback_total",
    "Feedback submissions by outcome",
    ["outcome"],
)

BLOB_VERIFY_FAILURES = Counter(
    "realeyes_blob_verify_failures_total",
    "Blob read-back mismatches",
)


async def metrics_endpoint(enabled: bool):
    """Prometheus metrics endpoint"""
    if not enabled:
        return Response(b"metrics disabled", media_type="text/plain")
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


def metrics_middleware(app, enabled: bool):
    """Add metrics middleware to FastAPI app"""
    if not enabled:
        return

    @app.middleware("http")
    async def _metrics(request: Request, call_next):
        start = time.time()
        response = await call_next(request)

        path = request.url.path
        REQUESTS_TOTAL.labels(
            method=request.method,
            path=path,
            status=str(response.status_code),
        ).inc()
        REQUEST_DURATION.labels(
            method=request.method,
            path=path,
        ).observe(time.time() - start)
        return response


def record_upload(classification: str):
    UPLOADS_TOTAL.labels(classification=classification).inc()


def record_feedback(outcome: str):
    FEEDBACK_TOTAL.labels(outcome=outcome).inc()


def record_blob_verify_failure():
    BLOB_VERIFY_FAILURES.inc()
