"""Feedback reconciliation and thumbs counters"""

import pytest
from tortoise.exceptions import OperationalError

from realeyes.errors import ConflictError, NotFoundError, StorageError, ValidationError
from realeyes.models import Feedback, VoteType
from realeyes.services import records as records_module
from realeyes.services.decoders import UploadPayload
from realeyes.services.feedback import FeedbackOutcome, FeedbackReconciler, parse_vote
from realeyes.services.ingestion import IngestionPipeline


@pytest.fixture
async def image_hash(records, blobs, make_image):
    result = await IngestionPipeline(records, blobs).ingest(
        UploadPayload(data=make_image(21), filename="photo.png", declared_mime="image/png")
    )
    return result.record.content_hash


class UntouchableStore:
    """Fails the test if validation lets a request reach storage."""

    def __getattr__(self, name):
        raise AssertionError(f"storage accessed: {name}")


async def test_first_vote_then_repeat_is_noop(records, image_hash):
    reconciler = FeedbackReconciler(records)

    first = await reconciler.submit(image_hash, "user-1", "up", "looks real")
    assert first.outcome == FeedbackOutcome.SUBMITTED
    assert first.message == "Feedback submitted successfully"
    assert first.entry.comment == "looks real"

    again = await reconciler.submit(image_hash, "user-1", "up", "different words")
    assert again.outcome == FeedbackOutcome.UNCHANGED
    assert again.previous is None
    assert again.entry.comment == "looks real"

    image = await records.get_image(image_hash)
    assert (image.thumbs_up, image.thumbs_down) == (1, 0)


async def test_changing_vote_moves_the_count(records, image_hash):
    reconciler = FeedbackReconciler(records)
    await reconciler.submit(image_hash, "user-1", "up")

    result = await reconciler.submit(image_hash, "user-1", "down", "changed my mind")
    assert result.outcome == FeedbackOutcome.UPDATED
    assert result.message == "Feedback updated successfully"
    assert result.previous == VoteType.UP
    assert result.entry.vote_type == VoteType.DOWN

    image = await records.get_image(image_hash)
    assert (image.thumbs_up, image.thumbs_down) == (0, 1)
    assert await Feedback.filter(image_hash=image_hash).count() == 1


async def test_tallies_equal_distinct_voters(records, image_hash):
    reconciler = FeedbackReconciler(records)
    votes = {"a": "up", "b": "up", "c": "down", "d": "up"}
    for user, vote in votes.items():
        await reconciler.submit(image_hash, user, vote)
    await reconciler.submit(image_hash, "b", "down")
    await reconciler.submit(image_hash, "a", "up")

    image = await records.get_image(image_hash)
    assert (image.thumbs_up, image.thumbs_down) == (2, 2)
    assert image.thumbs_up + image.thumbs_down == len(votes)


@pytest.mark.parametrize("bad", ["sideways", "", None, "UP", 1])
async def test_invalid_vote_rejected_before_storage(bad):
    reconciler = FeedbackReconciler(UntouchableStore())
    with pytest.raises(ValidationError) as exc:
        await reconciler.submit("abc", "user-1", bad)
    assert exc.value.message == 'Invalid feedbackType. Must be "up" or "down".'


async def test_missing_fields_rejected_before_storage():
    reconciler = FeedbackReconciler(UntouchableStore())
    with pytest.raises(ValidationError):
        await reconciler.submit("", "user-1", "up")
    with pytest.raises(ValidationError) as exc:
        await reconciler.submit("abc", "  ", "up")
    assert exc.value.message == "UserId is required"


async def test_comment_length_limited():
    reconciler = FeedbackReconciler(UntouchableStore(), max_comment_length=5)
    with pytest.raises(ValidationError):
        await reconciler.submit("abc", "user-1", "up", "x" * 6)


async def test_unknown_image_not_found(records):
    reconciler = FeedbackReconciler(records)
    with pytest.raises(NotFoundError) as exc:
        await reconciler.submit("0" * 64, "user-1", "up")
    assert exc.value.status_code == 404
    assert exc.value.image_hash == "0" * 64


async def test_second_first_vote_conflicts(records, image_hash):
    await records.record_first_vote(image_hash, "user-1", VoteType.UP, None)
    with pytest.raises(ConflictError) as exc:
        await records.record_first_vote(image_hash, "user-1", VoteType.DOWN, None)
    assert exc.value.message == "User has already submitted feedback for this image"

    image = await records.get_image(image_hash)
    assert (image.thumbs_up, image.thumbs_down) == (1, 0)


async def test_stale_vote_change_conflicts(records, image_hash):
    await records.record_first_vote(image_hash, "user-1", VoteType.UP, None)
    with pytest.raises(ConflictError):
        await records.change_vote(image_hash, "user-1", VoteType.DOWN, VoteType.UP, None)

    image = await records.get_image(image_hash)
    assert (image.thumbs_up, image.thumbs_down) == (1, 0)


def test_parse_vote():
    assert parse_vote("down") is VoteType.DOWN


async def test_overlong_identifiers_rejected_before_storage():
    reconciler = FeedbackReconciler(UntouchableStore())
    with pytest.raises(ValidationError) as exc:
        await reconciler.submit("abc", "u" * 256, "up")
    assert exc.value.status_code == 400
    with pytest.raises(ValidationError):
        await reconciler.submit("a" * 65, "user-1", "up")


async def test_longest_user_id_accepted(records, image_hash):
    result = await FeedbackReconciler(records).submit(image_hash, "u" * 255, "up")
    assert result.outcome == FeedbackOutcome.SUBMITTED


def fail_tally_updates(monkeypatch):
    def _broken(column):
        raise OperationalError(f"cannot update {column}")
    monkeypatch.setattr(records_module, "F", _broken)


async def test_first_vote_rolled_back_when_tally_fails(records, image_hash, monkeypatch):
    fail_tally_updates(monkeypatch)
    with pytest.raises(StorageError):
        await records.record_first_vote(image_hash, "user-1", VoteType.UP, None)

    assert await Feedback.filter(image_hash=image_hash).count() == 0
    image = await records.get_image(image_hash)
    assert (image.thumbs_up, image.thumbs_down) == (0, 0)


async def test_first_vote_on_missing_image_leaves_no_row(records):
    with pytest.raises(StorageError):
        await records.record_first_vote("0" * 64, "user-1", VoteType.UP, None)
    assert await Feedback.filter(image_hash="0" * 64).count() == 0


async def test_vote_change_rolled_back_when_tally_fails(records, image_hash, monkeypatch):
    await records.record_first_vote(image_hash, "user-1", VoteType.UP, "first")
    fail_tally_updates(monkeypatch)

    with pytest.raises(StorageError):
        await records.change_vote(image_hash, "user-1", VoteType.UP, VoteType.DOWN, "second")

    row = await Feedback.get(image_hash=image_hash, user_id="user-1")
    assert (row.vote_type, row.comment) == (VoteType.UP, "first")
    image = await records.get_image(image_hash)
    assert (image.thumbs_up, image.thumbs_down) == (1, 0)


async def test_vote_change_on_missing_image_rolled_back(records):
    await Feedback.create(image_hash="0" * 64, user_id="user-1", vote_type=VoteType.UP)
    with pytest.raises(StorageError):
        await records.change_vote("0" * 64, "user-1", VoteType.UP, VoteType.DOWN, None)
    row = await Feedback.get(image_hash="0" * 64, user_id="user-1")
    assert row.vote_type == VoteType.UP
