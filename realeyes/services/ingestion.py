"""
Upload ingestion: fingerprint, resolve against known images, store if new.

    detect type -> fingerprint -> exact + similar lookups (concurrent)
        exact match    -> reconcile existing            -> duplicate
        similar match  -> reconcile existing            -> similar
        no match       -> put blob -> verify -> create  -> new

A byte-identical match always wins over a perceptual one. Reconciling
updates the matched record (keyed by its own content hash); the new bytes
are not stored again. Blob keys derive from the content hash, so a retried
or racing upload of the same bytes rewrites the same object, and a lost
create race is resolved by reconciling instead of failing.
"""

import asyncio
import hashlib
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional

from realeyes.errors import IntegrityError
from realeyes.services.decoders import UploadPayload
from realeyes.services.fingerprint import Fingerprint, fingerprint
from realeyes.services.metrics import record_blob_verify_failure
from realeyes.services.observability import trace_operation
from realeyes.services.records import NewImage, RecordExists, RecordStore, StoredImage
from realeyes.services.storage import blob_key_for
from realeyes.services.upload_validate import FileType, detect_file_type
from realeyes.utils.exif import extract_metadata

logger = logging.getLogger(__name__)


class Classification(str, Enum):
    NEW = "new"
    DUPLICATE = "duplicate"
    SIMILAR = "similar"


@dataclass(frozen=True)
class IngestionResult:
    classification: Classification
    record: StoredImage
    fingerprint: Fingerprint
    file_type: FileType
    original_filename: str
    image_origin_url: Optional[str]


class IngestionPipeline:
    def __init__(
        self,
        records: RecordStore,
        blobs,
        *,
        allowed_types: Iterable[str] = ("image/jpeg", "image/png", "image/webp"),
        key_prefix: str = "",
        similarity_max_distance: int = 0,
        similarity_scan_limit: int = 500,
        metadata_extractor: Callable[[bytes], Optional[dict]] = extract_metadata,
    ):
        self.records = records
        self.blobs = blobs
        self.allowed_types = tuple(allowed_types)
        self.key_prefix = key_prefix
        self.similarity_max_distance = similarity_max_distance
        self.similarity_scan_limit = similarity_scan_limit
        self.metadata_extractor = metadata_extractor

    async def ingest(self, payload: UploadPayload, origin: Optional[str] = None) -> IngestionResult:
        file_type = detect_file_type(
            payload.data, payload.declared_mime, payload.filename, self.allowed_types
        )

        with trace_operation("ingest.fingerprint", size=len(payload.data)):
            fp = fingerprint(payload.data)
        logger.info(
            "Fingerprinted %s (%d bytes): sha256=%s phash=%s",
            payload.filename, len(payload.data), fp.content_hash, fp.perceptual_hash,
        )

        with trace_operation("ingest.lookup", image_hash=fp.content_hash):
            exact, similar = await asyncio.gather(
                self.records.get_image(fp.content_hash),
                self.records.find_similar(
                    fp.perceptual_hash,
                    max_distance=self.similarity_max_distance,
                    scan_limit=self.similarity_scan_limit,
                ),
            )

        if exact is not None:
            record = await self._reconcile(exact.content_hash, origin)
            classification = Classification.DUPLICATE
        elif similar is not None:
            logger.info("Upload %s is similar to %s", fp.content_hash, similar.content_hash)
            record = await self._reconcile(similar.content_hash, origin)
            classification = Classification.SIMILAR
        else:
            record, classification = await self._store_new(payload, file_type, fp, origin)

        logger.info("Ingested %s as %s (requests=%d)", record.content_hash, classification.value, record.request_count)
        return IngestionResult(
            classification=classification,
            record=record,
            fingerprint=fp,
            file_type=file_type,
            original_filename=payload.filename,
            image_origin_url=payload.image_origin_url,
        )

    async def _reconcile(self, content_hash: str, origin: Optional[str]) -> StoredImage:
        with trace_operation("ingest.reconcile", image_hash=content_hash, origin=origin):
            return await self.records.reconcile(content_hash, origin)

    async def _store_new(self, payload: UploadPayload, file_type: FileType, fp: Fingerprint, origin: Optional[str]):
        key = blob_key_for(fp.content_hash, file_type.extension, self.key_prefix)
        with trace_operation("ingest.store_blob", image_hash=fp.content_hash, key=key):
            url = await self.blobs.put(key, payload.data, file_type.content_type)
            await self._verify_blob(key, payload.data, fp.content_hash)

        new = NewImage(
            content_hash=fp.content_hash,
            perceptual_hash=fp.perceptual_hash,
            blob_key=key,
            blob_url=url,
            original_filename=payload.filename,
            mime_type=file_type.content_type,
            file_extension=file_type.extension,
            extension_source=file_type.source,
            file_size_bytes=len(payload.data),
            image_origin_url=payload.image_origin_url,
            metadata=self.metadata_extractor(payload.data),
        )
        with trace_operation("ingest.write_record", image_hash=fp.content_hash):
            try:
                return await self.records.create_image(new, origin), Classification.NEW
            except RecordExists:
                logger.info("Record for %s was created concurrently; reconciling instead", fp.content_hash)
                return await self.records.reconcile(fp.content_hash, origin), Classification.DUPLICATE

    async def _verify_blob(self, key: str, data: bytes, content_hash: str) -> None:
        stored = await self.blobs.get(key)
        if len(stored) == len(data) and hashlib.sha256(stored).hexdigest() == content_hash:
            return
        record_blob_verify_failure()
        logger.error(
            "Blob verification failed for %s: wrote %d bytes, read back %d bytes",
            key, len(data), len(stored),
        )
        raise IntegrityError(
            "Stored image failed verification",
            image_hash=content_hash,
            details=f"object {key} read back {len(stored)} bytes, expected {len(data)}",
        )
