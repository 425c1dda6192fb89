"""Blob store backends"""

import io

import pytest
from botocore.exceptions import ClientError

from realeyes.config import Settings
from realeyes.errors import StorageError
from realeyes.services.storage import LocalBlobStore, S3BlobStore, blob_key_for, build_blob_store


class RecordingS3Client:
    """Minimal put_object/get_object double keyed like a bucket."""

    def __init__(self, fail=False):
        self.objects = {}
        self.fail = fail

    def put_object(self, Bucket, Key, Body, ContentType):
        if self.fail:
            raise ClientError({"Error": {"Code": "503", "Message": "Slow Down"}}, "PutObject")
        self.objects[(Bucket, Key)] = (Body, ContentType)

    def get_object(self, Bucket, Key):
        return {"Body": io.BytesIO(self.objects[(Bucket, Key)][0])}


def test_blob_key_without_prefix():
    assert blob_key_for("ab" * 32, "webp") == f"{'ab' * 32}.webp"


async def test_local_put_get_roundtrip(blobs, blob_dir):
    url = await blobs.put("images/abc.png", b"png-bytes", "image/png")
    assert url == "http://testserver/blobs/images/abc.png"
    assert await blobs.get("images/abc.png") == b"png-bytes"
    # no temp files left behind
    assert [p.name for p in (blob_dir / "images").iterdir()] == ["abc.png"]


async def test_local_put_is_idempotent(blobs):
    await blobs.put("abc.png", b"same", "image/png")
    await blobs.put("abc.png", b"same", "image/png")
    assert await blobs.get("abc.png") == b"same"


async def test_local_missing_blob_is_storage_error(blobs):
    with pytest.raises(StorageError) as exc:
        await blobs.get("missing.png")
    assert exc.value.retryable


@pytest.mark.parametrize("key", ["../escape.png", "a/../../b.png", ""])
async def test_local_rejects_traversal(blobs, key):
    with pytest.raises(ValueError):
        await blobs.put(key, b"x", "image/png")


async def test_s3_put_get_and_url():
    client = RecordingS3Client()
    store = S3BlobStore("realeyes-ai-images", client=client)
    url = await store.put("abc.jpg", b"jpeg", "image/jpeg")
    assert url == "https://realeyes-ai-images.s3.amazonaws.com/abc.jpg"
    assert client.objects[("realeyes-ai-images", "abc.jpg")] == (b"jpeg", "image/jpeg")
    assert await store.get("abc.jpg") == b"jpeg"


def test_s3_url_with_custom_endpoint():
    store = S3BlobStore("bucket", endpoint_url="http://minio:9000/", client=RecordingS3Client())
    assert store.url_for("x/abc.png") == "http://minio:9000/bucket/x/abc.png"


async def test_s3_failure_is_retryable_storage_error():
    store = S3BlobStore("bucket", client=RecordingS3Client(fail=True))
    with pytest.raises(StorageError) as exc:
        await store.put("abc.png", b"x", "image/png")
    assert exc.value.status_code == 500
    assert exc.value.retryable


def test_build_blob_store(tmp_path):
    local = build_blob_store(Settings(STORAGE_DRIVER="local", STORAGE_DIR=str(tmp_path)))
    assert isinstance(local, LocalBlobStore)
    s3 = build_blob_store(Settings(STORAGE_DRIVER="S3", S3_BUCKET="b"))
    assert isinstance(s3, S3BlobStore) and s3.bucket == "b"
    with pytest.raises(ValueError):
        build_blob_store(Settings(STORAGE_DRIVER="ftp"))
