import logging

from fastapi import APIRouter, Depends, Request

from realeyes.config import Settings
from realeyes.core.deps import get_pipeline, get_settings
from realeyes.core.rate_limit import limiter, request_rate_limit
from realeyes.schemas.image import IngestOut
from realeyes.services.decoders import decode_upload
from realeyes.services.ingestion import Classification, IngestionPipeline, IngestionResult
from realeyes.services.metrics import record_upload
from realeyes.services.origins import resolve_origin

router = APIRouter(tags=["images"])
log = logging.getLogger(__name__)

MESSAGES = {
    Classification.NEW: "Image processed and saved successfully",
    Classification.DUPLICATE: "Image already exists",
    Classification.SIMILAR: "Similar image already exists",
}


def _to_response(result: IngestionResult) -> IngestOut:
    record = result.record
    return IngestOut(
        message=MESSAGES[result.classification],
        classification=result.classification.value,
        dataMatch=result.classification != Classification.NEW,
        imageHash=record.content_hash,
        pHash=record.perceptual_hash,
        s3ObjectUrl=record.blob_url,
        originalFileName=record.original_filename or result.original_filename,
        mimeType=record.mime_type,
        fileSize=record.file_size_bytes,
        originWebsites=record.origin_websites,
        requestCount=record.request_count,
        imageOriginUrl=result.image_origin_url or record.image_origin_url,
        fileExtension=record.file_extension,
        extensionSource=record.extension_source,
    )


# Method: analyze_image()
@router.post("/analyze-image", response_model=IngestOut)
@limiter.limit(request_rate_limit)
async def analyze_image(
    request: Request,
    pipeline: IngestionPipeline = Depends(get_pipeline),
    settings: Settings = Depends(get_settings),
):
    """Accepts multipart form data, a raw image body, or base64 image JSON."""
    payload = await decode_upload(request, settings.MAX_UPLOAD_BYTES)
    origin = resolve_origin(request.headers, settings.ALLOWED_ORIGINS, settings.ORIGIN_OVERRIDE_HEADER)
    if origin is None:
        log.info("Upload without a recognized origin from %s", request.client.host if request.client else "?")

    result = await pipeline.ingest(payload, origin=origin)
    record_upload(result.classification.value)
    return _to_response(result)
