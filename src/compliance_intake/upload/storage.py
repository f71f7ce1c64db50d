"""Object storage collaborators for uploaded files."""

import asyncio
import io
import threading
from typing import Any, Callable, Optional, Protocol

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import ClientError

from compliance_intake.core import IntakeConfig, StorageError, get_logger

logger = get_logger(__name__)

ProgressCallback = Callable[[int], None]


class ObjectStore(Protocol):
    """Durable storage for uploaded file contents.

    ``on_progress`` receives a percentage (0-100) on the event loop thread.
    """

    async def put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None: ...

    async def remove(self, bucket: str, key: str) -> None: ...


class InMemoryObjectStore:
    """Keeps objects in a dict. Suitable for local development and testing."""

    def __init__(self):
        self.objects: dict[tuple[str, str], bytes] = {}
        self.content_types: dict[tuple[str, str], str] = {}

    async def put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        if (bucket, key) in self.objects:
            raise StorageError("The resource already exists", bucket=bucket, key=key)
        self.objects[(bucket, key)] = data
        self.content_types[(bucket, key)] = content_type
        if on_progress:
            on_progress(100)

    async def remove(self, bucket: str, key: str) -> None:
        self.objects.pop((bucket, key), None)
        self.content_types.pop((bucket, key), None)


class _TransferProgress:
    """boto3 transfer callback that reports percentages on the event loop."""

    def __init__(
        self,
        total: int,
        loop: asyncio.AbstractEventLoop,
        on_progress: ProgressCallback,
    ):
        self._total = total
        self._loop = loop
        self._on_progress = on_progress
        self._seen = 0
        self._lock = threading.Lock()

    def __call__(self, bytes_amount: int) -> None:
        with self._lock:
            self._seen += bytes_amount
            percent = 100 if self._total == 0 else min(100, self._seen * 100 // self._total)
        self._loop.call_soon_threadsafe(self._on_progress, percent)


class S3ObjectStore:
    """Stores uploaded files in S3.

    Category buckets map to S3 buckets named ``<bucket_prefix><bucket>``.
    """

    def __init__(
        self,
        bucket_prefix: str = "",
        region_name: Optional[str] = None,
        s3_client: Optional[Any] = None,
    ):
        """Initialize the store.

        Args:
            bucket_prefix: Prefix added to every category bucket name.
            region_name: AWS region for the boto3 client.
            s3_client: Optional S3 client (for testing).
        """
        self.bucket_prefix = bucket_prefix
        self.region_name = region_name
        self._s3_client = s3_client

    @classmethod
    def from_config(cls, config: IntakeConfig) -> "S3ObjectStore":
        return cls(bucket_prefix=config.bucket_prefix, region_name=config.aws_region)

    @property
    def s3_client(self):
        """Get S3 client."""
        if self._s3_client is None:
            self._s3_client = boto3.client("s3", region_name=self.region_name)
        return self._s3_client

    def bucket_name(self, bucket: str) -> str:
        return f"{self.bucket_prefix}{bucket}"

    async def put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """Upload an object, reporting progress as bytes are sent."""
        callback = None
        if on_progress:
            callback = _TransferProgress(len(data), asyncio.get_running_loop(), on_progress)
        extra_args = {"ContentType": content_type} if content_type else None

        try:
            await asyncio.to_thread(
                self.s3_client.upload_fileobj,
                io.BytesIO(data),
                self.bucket_name(bucket),
                key,
                ExtraArgs=extra_args,
                Callback=callback,
            )
        except (ClientError, S3UploadFailedError) as e:
            logger.error("s3_upload_failed", bucket=bucket, key=key, error=str(e))
            raise StorageError(
                f"Storage upload failed: {e}", bucket=bucket, key=key
            ) from e

        if on_progress:
            on_progress(100)
        logger.info("s3_object_stored", bucket=bucket, key=key, size=len(data))

    async def remove(self, bucket: str, key: str) -> None:
        """Delete an object, e.g. when its queue entry could not be created."""
        try:
            await asyncio.to_thread(
                self.s3_client.delete_object,
                Bucket=self.bucket_name(bucket),
                Key=key,
            )
        except ClientError as e:
            logger.error("s3_delete_failed", bucket=bucket, key=key, error=str(e))
            raise StorageError(
                f"Storage delete failed: {e}", bucket=bucket, key=key
            ) from e
        logger.info("s3_object_removed", bucket=bucket, key=key)
