"""
Observability service with OpenTelemetry tracing and optional Sentry
"""
import logging
from contextlib import contextmanager

import sentry_sdk
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from realeyes.config import Settings

logger = logging.getLogger(__name__)

# Resolves to a no-op tracer until a provider is installed
tracer = trace.get_tracer("realeyes")

_initialized = False


def init_observability(settings: Settings, app_name: str = "realeyes-intake"):
    global _initialized
    if _initialized:
        return
    _initialized = True

    if settings.SENTRY_DSN:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
            environment=settings.APP_ENV,
        )
        logger.info("Sentry initialized")

    if not settings.OTEL_EXPORTER_OTLP_ENDPOINT:
        return

    resource = Resource.create({
        "service.name": app_name,
        "deployment.environment": settings.APP_ENV,
    })
    tp = TracerProvider(resource=resource)
    exporter = OTLPSpanExporter(endpoint=settings.OTEL_EXPORTER_OTLP_ENDPOINT.rstrip("/") + "/v1/traces")
    tp.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(tp)
    logger.info("OTLP tracing initialized")


def instrument_fastapi(app, settings: Settings):
    if settings.OTEL_EXPORTER_OTLP_ENDPOINT:
        FastAPIInstrumentor.instrument_app(app)
        logger.info("FastAPI instrumentation enabled")


@contextmanager
def trace_operation(name: str, **attrs):
    with tracer.start_as_current_span(name) as span:
        for k, v in attrs.items():
            if v is not None:
                span.set_attribute(k, str(v))
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            raise
