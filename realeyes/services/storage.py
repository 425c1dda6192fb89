"""
Blob storage backends.

Objects are content-addressed: the key is derived from the content hash and
the resolved extension, so storing the same upload twice writes the same
object. Blocking IO runs on worker threads.
"""

import logging
import uuid
from pathlib import Path
from typing import Optional
from urllib.parse import quote

import anyio
import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from realeyes.config import Settings
from realeyes.errors import StorageError

logger = logging.getLogger(__name__)


def blob_key_for(content_hash: str, extension: str, prefix: str = "") -> str:
    prefix = (prefix or "").strip("/")
    name = f"{content_hash}.{extension}"
    return f"{prefix}/{name}" if prefix else name


class LocalBlobStore:
    def __init__(self, base_dir: str, public_base_url: str):
        self.base = Path(base_dir)
        self.public_base_url = public_base_url.rstrip("/")

    def _path(self, key: str) -> Path:
        parts = [p for p in key.replace("\\", "/").split("/") if p]
        if not parts or any(p in (".", "..") for p in parts):
            raise ValueError(f"invalid blob key: {key!r}")
        return self.base.joinpath(*parts)

    def url_for(self, key: str) -> str:
        return f"{self.public_base_url}/{quote(key)}"

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        path = self._path(key)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_name(f"{path.name}.{uuid.uuid4().hex}.part")
            tmp.write_bytes(data)
            tmp.replace(path)

        try:
            await anyio.to_thread.run_sync(_write)
        except OSError as e:
            raise StorageError("Blob store write failed", details=str(e)) from e
        return self.url_for(key)

    async def get(self, key: str) -> bytes:
        path = self._path(key)
        try:
            return await anyio.to_thread.run_sync(path.read_bytes)
        except OSError as e:
            raise StorageError("Blob store read failed", details=str(e)) from e


class S3BlobStore:
    def __init__(
        self,
        bucket: str,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        client=None,
    ):
        self.bucket = bucket
        self.region = region or None
        self.endpoint_url = endpoint_url or None
        self._client = client

    @property
    def client(self):
        if self._client is None:
            session = boto3.session.Session()
            self._client = session.client(
                "s3",
                endpoint_url=self.endpoint_url,
                region_name=self.region,
                config=Config(signature_version="s3v4"),
            )
        return self._client

    def url_for(self, key: str) -> str:
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{quote(key)}"
        return f"https://{self.bucket}.s3.amazonaws.com/{quote(key)}"

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        def _put() -> None:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)

        try:
            await anyio.to_thread.run_sync(_put)
        except (BotoCoreError, ClientError) as e:
            raise StorageError("Blob store write failed", details=str(e)) from e
        return self.url_for(key)

    async def get(self, key: str) -> bytes:
        def _get() -> bytes:
            result = self.client.get_object(Bucket=self.bucket, Key=key)
            return result["Body"].read()

        try:
            return await anyio.to_thread.run_sync(_get)
        except (BotoCoreError, ClientError) as e:
            raise StorageError("Blob store read failed", details=str(e)) from e


def build_blob_store(settings: Settings):
    driver = (settings.STORAGE_DRIVER or "local").strip().lower()
    if driver == "s3":
        logger.info("Using S3 blob store bucket=%s", settings.S3_BUCKET)
        return S3BlobStore(settings.S3_BUCKET, settings.S3_REGION, settings.S3_ENDPOINT_URL)
    if driver != "local":
        raise ValueError(f"Unknown STORAGE_DRIVER: {settings.STORAGE_DRIVER}")
    logger.info("Using local blob store at %s", settings.STORAGE_DIR)
    return LocalBlobStore(settings.STORAGE_DIR, settings.PUBLIC_BASE_URL)
