"""
Record store for image records, provenance sets and per-user feedback.

The core only sees the typed views defined here. Shared mutable fields
(request_count, the origin set, thumbs counters) are changed exclusively
through single-statement atomic updates or unique inserts, never by
reading a value and writing it back.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from tortoise import timezone
from tortoise.exceptions import DBConnectionError, IntegrityError as DBIntegrityError, OperationalError
from tortoise.expressions import F
from tortoise.transactions import in_transaction

from realeyes.errors import ConflictError, StorageError
from realeyes.models import Feedback, ImageOrigin, ImageRecord, VoteType
from realeyes.services.duplicates import is_near_duplicate

logger = logging.getLogger(__name__)

TALLY_FIELDS = {VoteType.UP: "thumbs_up", VoteType.DOWN: "thumbs_down"}


class RecordExists(Exception):
    """Conditional create lost: a record with this content hash already exists."""

    def __init__(self, content_hash: str):
        super().__init__(content_hash)
        self.content_hash = content_hash


@dataclass(frozen=True)
class NewImage:
    content_hash: str
    perceptual_hash: str
    blob_key: str
    blob_url: str
    original_filename: Optional[str]
    mime_type: str
    file_extension: str
    extension_source: str
    file_size_bytes: int
    image_origin_url: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class StoredImage:
    content_hash: str
    perceptual_hash: str
    blob_key: str
    blob_url: str
    original_filename: Optional[str]
    mime_type: str
    file_extension: str
    extension_source: str
    file_size_bytes: int
    image_origin_url: Optional[str]
    origin_websites: List[str]
    request_count: int
    thumbs_up: int
    thumbs_down: int
    first_seen_at: datetime


@dataclass(frozen=True)
class FeedbackEntry:
    image_hash: str
    user_id: str
    vote_type: VoteType
    comment: Optional[str]
    updated_at: datetime


@contextmanager
def _storage_errors(action: str, image_hash: Optional[str] = None):
    try:
        yield
    except DBIntegrityError:
        raise
    except (OperationalError, DBConnectionError, OSError) as e:
        logger.error("Record store failure during %s (image=%s): %s", action, image_hash, e)
        raise StorageError("Record store unavailable", image_hash=image_hash, details=str(e)) from e


def _feedback_entry(row: Feedback) -> FeedbackEntry:
    return FeedbackEntry(
        image_hash=row.image_hash,
        user_id=row.user_id,
        vote_type=VoteType(row.vote_type),
        comment=row.comment,
        updated_at=row.modified_at,
    )


class RecordStore:
    """Tortoise-backed store; the connection lifecycle belongs to the app (see realeyes.db)."""

    async def _view(self, row: ImageRecord) -> StoredImage:
        origins = await ImageOrigin.filter(image_id=row.content_hash).order_by("id").values_list("origin", flat=True)
        return StoredImage(
            content_hash=row.content_hash,
            perceptual_hash=row.perceptual_hash,
            blob_key=row.blob_key,
            blob_url=row.blob_url,
            original_filename=row.original_filename,
            mime_type=row.mime_type,
            file_extension=row.file_extension,
            extension_source=row.extension_source,
            file_size_bytes=row.file_size_bytes,
            image_origin_url=row.image_origin_url,
            origin_websites=list(origins),
            request_count=row.request_count,
            thumbs_up=row.thumbs_up,
            thumbs_down=row.thumbs_down,
            first_seen_at=row.created_at,
        )

    # -- images -----------------------------------------------------------

    async def get_image(self, content_hash: str) -> Optional[StoredImage]:
        with _storage_errors("get_image", content_hash):
            row = await ImageRecord.get_or_none(content_hash=content_hash)
            if row is None:
                return None
            return await self._view(row)

    async def find_similar(
        self,
        perceptual_hash: str,
        max_distance: int = 0,
        scan_limit: int = 500,
    ) -> Optional[StoredImage]:
        """Oldest record with an identical pHash, else (when max_distance > 0) a recent one within range."""
        with _storage_errors("find_similar"):
            row = await (
                ImageRecord.filter(perceptual_hash=perceptual_hash)
                .order_by("created_at", "content_hash")
                .first()
            )
            if row is None and max_distance > 0:
                candidates = await (
                    ImageRecord.all()
                    .order_by("-created_at")
                    .limit(scan_limit)
                    .values_list("content_hash", "perceptual_hash")
                )
                for content_hash, candidate in candidates:
                    if is_near_duplicate(perceptual_hash, candidate, threshold=max_distance):
                        row = await ImageRecord.get_or_none(content_hash=content_hash)
                        break
            if row is None:
                return None
            return await self._view(row)

    async def create_image(self, new: NewImage, origin: Optional[str]) -> StoredImage:
        """Create the record only if no record exists for the content hash; raises RecordExists otherwise."""
        with _storage_errors("create_image", new.content_hash):
            try:
                async with in_transaction() as conn:
                    row = await ImageRecord.create(
                        content_hash=new.content_hash,
                        perceptual_hash=new.perceptual_hash,
                        blob_key=new.blob_key,
                        blob_url=new.blob_url,
                        original_filename=new.original_filename,
                        mime_type=new.mime_type,
                        file_extension=new.file_extension,
                        extension_source=new.extension_source,
                        file_size_bytes=new.file_size_bytes,
                        image_origin_url=new.image_origin_url,
                        metadata_json=new.metadata,
                        request_count=1,
                        using_db=conn,
                    )
                    if origin:
                        await ImageOrigin.create(image=row, origin=origin, using_db=conn)
            except DBIntegrityError as e:
                raise RecordExists(new.content_hash) from e
            return await self._view(row)

    async def reconcile(self, content_hash: str, origin: Optional[str]) -> StoredImage:
        """Add origin to the provenance set and bump request_count on an existing record."""
        with _storage_errors("reconcile", content_hash):
            if origin:
                try:
                    await ImageOrigin.create(image_id=content_hash, origin=origin)
                except DBIntegrityError:
                    # unique (image, origin): already a member of the set
                    logger.debug("Origin %s already recorded for %s", origin, content_hash)
            updated = await ImageRecord.filter(content_hash=content_hash).update(
                request_count=F("request_count") + 1,
                modified_at=timezone.now(),
            )
            if not updated:
                raise StorageError("Image record missing during reconcile", image_hash=content_hash)
            row = await ImageRecord.get(content_hash=content_hash)
            return await self._view(row)

    # -- feedback ---------------------------------------------------------

    async def get_feedback(self, image_hash: str, user_id: str) -> Optional[FeedbackEntry]:
        with _storage_errors("get_feedback", image_hash):
            row = await Feedback.get_or_none(image_hash=image_hash, user_id=user_id)
            return _feedback_entry(row) if row else None

    async def record_first_vote(
        self,
        image_hash: str,
        user_id: str,
        vote: VoteType,
        comment: Optional[str],
    ) -> FeedbackEntry:
        """Insert the user's feedback and increment the matching counter in one transaction."""
        column = TALLY_FIELDS[vote]
        with _storage_errors("record_first_vote", image_hash):
            try:
                async with in_transaction() as conn:
                    row = await Feedback.create(
                        image_hash=image_hash,
                        user_id=user_id,
                        vote_type=vote,
                        comment=comment,
                        using_db=conn,
                    )
                    updated = await ImageRecord.filter(content_hash=image_hash).using_db(conn).update(
                        **{column: F(column) + 1, "modified_at": timezone.now()}
                    )
                    if not updated:
                        raise StorageError("Image record missing while recording feedback", image_hash=image_hash)
            except DBIntegrityError as e:
                raise ConflictError(
                    "User has already submitted feedback for this image", image_hash=image_hash
                ) from e
            return _feedback_entry(row)

    async def change_vote(
        self,
        image_hash: str,
        user_id: str,
        previous: VoteType,
        vote: VoteType,
        comment: Optional[str],
    ) -> FeedbackEntry:
        """Replace a vote and move one count from the previous counter to the new one, atomically."""
        old_column, new_column = TALLY_FIELDS[previous], TALLY_FIELDS[vote]
        with _storage_errors("change_vote", image_hash):
            async with in_transaction() as conn:
                changed = await Feedback.filter(
                    image_hash=image_hash, user_id=user_id, vote_type=previous
                ).using_db(conn).update(vote_type=vote, comment=comment, modified_at=timezone.now())
                if not changed:
                    raise ConflictError("Feedback was changed by a concurrent request", image_hash=image_hash)
                updated = await ImageRecord.filter(content_hash=image_hash).using_db(conn).update(
                    **{
                        new_column: F(new_column) + 1,
                        old_column: F(old_column) - 1,
                        "modified_at": timezone.now(),
                    }
                )
                if not updated:
                    raise StorageError("Image record missing while updating feedback", image_hash=image_hash)
                row = await Feedback.filter(image_hash=image_hash, user_id=user_id).using_db(conn).get()
            return _feedback_entry(row)
