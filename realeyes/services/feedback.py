"""
Per-user up/down feedback on ingested images.

A user holds at most one vote per image. Re-sending the same vote is a
no-op; switching the vote rewrites the user's record and moves one count
between the thumbs counters in the same transaction, so
thumbs_up + thumbs_down always equals the number of distinct voters.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from realeyes.errors import NotFoundError, ValidationError
from realeyes.models import VoteType
from realeyes.services.records import FeedbackEntry, RecordStore

logger = logging.getLogger(__name__)

# Column widths of image_feedback
MAX_IMAGE_HASH_LENGTH = 64
MAX_USER_ID_LENGTH = 255


class FeedbackOutcome(str, Enum):
    SUBMITTED = "submitted"
    UNCHANGED = "unchanged"
    UPDATED = "updated"


MESSAGES = {
    FeedbackOutcome.SUBMITTED: "Feedback submitted successfully",
    FeedbackOutcome.UNCHANGED: "Feedback already received",
    FeedbackOutcome.UPDATED: "Feedback updated successfully",
}


@dataclass(frozen=True)
class FeedbackResult:
    outcome: FeedbackOutcome
    entry: FeedbackEntry
    previous: Optional[VoteType] = None

    @property
    def message(self) -> str:
        return MESSAGES[self.outcome]


def parse_vote(value) -> VoteType:
    try:
        return VoteType(value)
    except ValueError:
        raise ValidationError('Invalid feedbackType. Must be "up" or "down".') from None


class FeedbackReconciler:
    def __init__(self, records: RecordStore, max_comment_length: int = 2000):
        self.records = records
        self.max_comment_length = max_comment_length

    def validate(self, image_hash, user_id, vote_type, comment):
        if not isinstance(image_hash, str) or not image_hash.strip():
            raise ValidationError("imageHash is required")
        if len(image_hash.strip()) > MAX_IMAGE_HASH_LENGTH:
            raise ValidationError(f"imageHash exceeds {MAX_IMAGE_HASH_LENGTH} characters")
        if not isinstance(user_id, str) or not user_id.strip():
            raise ValidationError("UserId is required")
        if len(user_id.strip()) > MAX_USER_ID_LENGTH:
            raise ValidationError(f"UserId exceeds {MAX_USER_ID_LENGTH} characters")
        vote = parse_vote(vote_type)
        if comment is not None and not isinstance(comment, str):
            raise ValidationError("comment must be a string")
        comment = (comment or "").strip() or None
        if comment and len(comment) > self.max_comment_length:
            raise ValidationError(f"comment exceeds {self.max_comment_length} characters")
        return image_hash.strip(), user_id.strip(), vote, comment

    async def submit(self, image_hash, user_id, vote_type, comment=None) -> FeedbackResult:
        image_hash, user_id, vote, comment = self.validate(image_hash, user_id, vote_type, comment)

        if await self.records.get_image(image_hash) is None:
            raise NotFoundError("Image not found", image_hash=image_hash)

        existing = await self.records.get_feedback(image_hash, user_id)
        if existing is None:
            entry = await self.records.record_first_vote(image_hash, user_id, vote, comment)
            logger.info("Feedback %s from %s on %s", vote.value, user_id, image_hash)
            return FeedbackResult(FeedbackOutcome.SUBMITTED, entry)

        if existing.vote_type == vote:
            return FeedbackResult(FeedbackOutcome.UNCHANGED, existing)

        entry = await self.records.change_vote(image_hash, user_id, existing.vote_type, vote, comment)
        logger.info(
            "Feedback from %s on %s changed %s -> %s",
            user_id, image_hash, existing.vote_type.value, vote.value,
        )
        return FeedbackResult(FeedbackOutcome.UPDATED, entry, previous=existing.vote_type)
