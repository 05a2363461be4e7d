"""
Object storage adapters for R2 and S3 buckets.

Both providers speak the S3 API, so one boto3-based adapter does the work
and the provider subclasses only differ in how the boto3 client is built.
Folders are emulated on top of the flat key space: listings use a "/"
delimiter and turn common prefixes into folders, folder creation writes a
zero-byte marker, folder deletion drains every key under the prefix.

Error policy: SDK errors (botocore ClientError / BotoCoreError) are logged
and re-raised unchanged. Nothing is retried here beyond botocore's own
defaults.

Mock mode swaps the boto3 client for an in-memory backend (see memory.py)
and keeps everything else identical.
"""

import asyncio
import logging
import threading
from typing import Any, Optional, Protocol
from urllib.parse import quote

from botocore.exceptions import BotoCoreError, ClientError

from ...config.buckets import BucketConfig
from ...core.objects import (
    ObjectContent,
    PaginatedResult,
    StorageObject,
    file_from_entry,
    folder_from_prefix,
    guess_mime_type,
    is_folder_marker,
    normalize_folder_path,
    normalize_prefix,
)
from .memory import InMemoryS3Backend

logger = logging.getLogger(__name__)

# S3 DeleteObjects accepts at most this many keys per request
MAX_BATCH_DELETE = 1000
# and ListObjectsV2 returns at most this many per page
MAX_LIST_KEYS = 1000

DEFAULT_PRESIGN_EXPIRY = 3600

# where mock-mode presigned URLs point; served by the object download route
MOCK_DOWNLOAD_PATH = "/api/buckets/{bucket_id}/objects/{key}"

SDK_ERRORS = (ClientError, BotoCoreError)


class StorageError(Exception):
    """Raised for storage failures that don't come out of the SDK itself."""
    pass


class BatchDeleteError(StorageError):
    """Some keys in a DeleteObjects request were rejected by the provider."""

    def __init__(self, errors: list[dict[str, Any]]) -> None:
        self.errors = errors
        self.failed_keys = [err.get("Key", "") for err in errors]
        details = ", ".join(
            f"{err.get('Key')} ({err.get('Code')}: {err.get('Message')})" for err in errors[:5]
        )
        more = f" and {len(errors) - 5} more" if len(errors) > 5 else ""
        super().__init__(f"Failed to delete {len(errors)} object(s): {details}{more}")


def chunked(items: list[str], size: int) -> list[list[str]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


def build_listing(response: dict[str, Any], prefix: str) -> PaginatedResult:
    """
    Convert a ListObjectsV2 response into folders and files.

    Common prefixes become folders (once each). Keys ending in "/" are
    folder markers and are never shown as files; the marker of the folder
    being listed is the usual case.
    """
    objects: list[StorageObject] = []
    seen_prefixes: set[str] = set()

    for entry in response.get("CommonPrefixes", []) or []:
        common_prefix = entry.get("Prefix")
        if not common_prefix or common_prefix in seen_prefixes:
            continue
        seen_prefixes.add(common_prefix)
        objects.append(folder_from_prefix(common_prefix, prefix))

    for item in response.get("Contents", []) or []:
        key = item.get("Key", "")
        if not key or key == prefix or is_folder_marker(key):
            continue
        objects.append(file_from_entry(
            key,
            prefix,
            size=item.get("Size", 0),
            last_modified=item.get("LastModified"),
            etag=item.get("ETag"),
        ))

    return PaginatedResult(
        objects=objects,
        next_continuation_token=response.get("NextContinuationToken"),
        is_truncated=bool(response.get("IsTruncated", False)),
        total_count=response.get("KeyCount"),
    )


class StorageClient(Protocol):
    """
    Operations every bucket adapter offers.

    Routes depend on this protocol only, so tests and mock mode can hand
    in any implementation.
    """

    async def list_objects(
        self,
        max_keys: int = 100,
        continuation_token: Optional[str] = None,
        prefix: Optional[str] = None,
    ) -> PaginatedResult:
        """One page of folders and files directly under `prefix`."""
        ...

    async def get_object(self, key: str) -> ObjectContent:
        """Fetch an object's body as a stream."""
        ...

    async def generate_presigned_url(
        self,
        key: str,
        expires_in: int = DEFAULT_PRESIGN_EXPIRY,
    ) -> str:
        """Temporary GET URL for direct client access."""
        ...

    async def upload_object(self, key: str, body: bytes, content_type: str) -> None:
        """Single PUT of a fully buffered body."""
        ...

    async def delete_object(self, key: str) -> None:
        ...

    async def delete_objects(self, keys: list[str]) -> int:
        """Delete many keys, chunked per provider limit. Returns count deleted."""
        ...

    async def create_folder(self, path: str) -> str:
        """Write a folder marker. Returns the normalized folder path."""
        ...

    async def delete_folder(self, path: str) -> int:
        """Delete every key under the folder. Returns count deleted."""
        ...


class S3CompatibleStorageClient:
    """
    boto3-backed adapter for one bucket.

    boto3 is synchronous, so each SDK call runs in a worker thread to keep
    the event loop free. One adapter (and one boto3 client) is built per
    request.
    """

    provider = "s3"

    def __init__(self, bucket: BucketConfig, s3_client: Any = None) -> None:
        self._bucket = bucket
        self._s3_client = s3_client if s3_client is not None else self._build_client(bucket)

        logger.debug(
            "Initialized storage client",
            extra={"bucket_id": bucket.id, "bucket": bucket.name, "provider": self.provider},
        )

    @property
    def bucket(self) -> BucketConfig:
        return self._bucket

    def _build_client(self, bucket: BucketConfig) -> Any:
        raise NotImplementedError

    async def _call(self, operation: str, method_name: str, **params: Any) -> Any:
        method = getattr(self._s3_client, method_name)
        try:
            return await asyncio.to_thread(method, Bucket=self._bucket.name, **params)
        except SDK_ERRORS as e:
            logger.error(
                "Storage operation failed",
                extra={
                    "operation": operation,
                    "bucket_id": self._bucket.id,
                    "provider": self.provider,
                    "key": params.get("Key") or params.get("Prefix"),
                    "error": str(e),
                },
            )
            raise

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    async def list_objects(
        self,
        max_keys: int = 100,
        continuation_token: Optional[str] = None,
        prefix: Optional[str] = None,
    ) -> PaginatedResult:
        prefix = normalize_prefix(prefix)
        params: dict[str, Any] = {
            "Prefix": prefix,
            "Delimiter": "/",
            "MaxKeys": max(1, min(max_keys, MAX_LIST_KEYS)),
        }
        if continuation_token:
            params["ContinuationToken"] = continuation_token

        response = await self._call("list", "list_objects_v2", **params)
        result = build_listing(response, prefix)

        logger.debug(
            "Listed objects",
            extra={
                "bucket_id": self._bucket.id,
                "prefix": prefix,
                "count": len(result.objects),
                "is_truncated": result.is_truncated,
            },
        )
        return result

    async def _list_all_keys(self, prefix: str) -> list[str]:
        """Every key under `prefix`, following continuation tokens to the end."""
        keys: list[str] = []
        token: Optional[str] = None

        while True:
            params: dict[str, Any] = {"Prefix": prefix, "MaxKeys": MAX_LIST_KEYS}
            if token:
                params["ContinuationToken"] = token
            response = await self._call("list", "list_objects_v2", **params)

            keys.extend(item["Key"] for item in response.get("Contents", []) or [])

            token = response.get("NextContinuationToken")
            if not response.get("IsTruncated") or not token:
                return keys

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_object(self, key: str) -> ObjectContent:
        response = await self._call("download", "get_object", Key=key)
        return ObjectContent(
            key=key,
            body=response["Body"],
            content_type=response.get("ContentType") or guess_mime_type(key),
            content_length=response.get("ContentLength"),
        )

    async def generate_presigned_url(
        self,
        key: str,
        expires_in: int = DEFAULT_PRESIGN_EXPIRY,
    ) -> str:
        # generate_presigned_url signs locally, no Bucket kwarg
        try:
            return self._s3_client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self._bucket.name, "Key": key},
                ExpiresIn=expires_in,
            )
        except SDK_ERRORS as e:
            logger.error(
                "Failed to generate presigned URL",
                extra={"bucket_id": self._bucket.id, "key": key, "error": str(e)},
            )
            raise

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def upload_object(self, key: str, body: bytes, content_type: str) -> None:
        await self._call(
            "upload",
            "put_object",
            Key=key,
            Body=body,
            ContentType=content_type or guess_mime_type(key),
        )
        logger.info(
            "Uploaded object",
            extra={"bucket_id": self._bucket.id, "key": key, "size_bytes": len(body)},
        )

    async def delete_object(self, key: str) -> None:
        await self._call("delete", "delete_object", Key=key)
        logger.info("Deleted object", extra={"bucket_id": self._bucket.id, "key": key})

    async def delete_objects(self, keys: list[str]) -> int:
        """
        Delete keys in batches of at most MAX_BATCH_DELETE.

        S3 reports per-key failures inside a successful response, so those
        are collected and raised as BatchDeleteError once every batch has
        been sent.
        """
        errors: list[dict[str, Any]] = []
        deleted = 0

        for batch in chunked(keys, MAX_BATCH_DELETE):
            response = await self._call(
                "batch delete",
                "delete_objects",
                Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
            )
            batch_errors = response.get("Errors", []) or []
            errors.extend(batch_errors)
            deleted += len(batch) - len(batch_errors)

        logger.info(
            "Deleted objects",
            extra={"bucket_id": self._bucket.id, "count": deleted, "failed": len(errors)},
        )

        if errors:
            raise BatchDeleteError(errors)
        return deleted

    async def create_folder(self, path: str) -> str:
        folder_path = normalize_folder_path(path)
        await self._call(
            "create folder",
            "put_object",
            Key=folder_path,
            Body=b"",
            ContentType="application/x-directory",
        )
        logger.info("Created folder", extra={"bucket_id": self._bucket.id, "folder": folder_path})
        return folder_path

    async def delete_folder(self, path: str) -> int:
        """
        Delete a folder: enumerate every key under it, then batch-delete.

        If the listing finds nothing, only the marker key is deleted and
        the count is 1. There is no rollback; a failure part way leaves
        the remaining keys in place and deleting again resumes.
        """
        folder_path = normalize_folder_path(path)
        keys = await self._list_all_keys(folder_path)

        if not keys:
            await self._call("delete", "delete_object", Key=folder_path)
            deleted = 1
        else:
            deleted = await self.delete_objects(keys)

        logger.info(
            "Deleted folder",
            extra={"bucket_id": self._bucket.id, "folder": folder_path, "count": deleted},
        )
        return deleted


class R2StorageClient(S3CompatibleStorageClient):
    """Cloudflare R2: custom endpoint, region 'auto', path-style addressing."""

    provider = "r2"

    def _build_client(self, bucket: BucketConfig) -> Any:
        import boto3
        from botocore.config import Config

        # R2 requires v4 signatures and path-style URLs
        return boto3.client(
            "s3",
            endpoint_url=bucket.endpoint,
            aws_access_key_id=bucket.access_key_id,
            aws_secret_access_key=bucket.secret_access_key.get_secret_value(),
            region_name=bucket.effective_region,
            config=Config(
                signature_version="s3v4",
                s3={"addressing_style": "path"},
            ),
        )


class S3StorageClient(S3CompatibleStorageClient):
    """AWS S3: regional endpoint picked by boto3."""

    provider = "s3"

    def _build_client(self, bucket: BucketConfig) -> Any:
        import boto3
        from botocore.config import Config

        return boto3.client(
            "s3",
            endpoint_url=bucket.endpoint or None,
            aws_access_key_id=bucket.access_key_id,
            aws_secret_access_key=bucket.secret_access_key.get_secret_value(),
            region_name=bucket.effective_region,
            config=Config(signature_version="s3v4"),
        )


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockStorageClient(S3CompatibleStorageClient):
    """
    Adapter over an in-memory bucket.

    Same code path as the real adapters, only the boto3 client is replaced.
    Backends are shared per bucket id so uploads survive across requests.
    Presigned URLs point at the API download route, since a browser cannot
    fetch from process memory.
    """

    provider = "mock"

    _backends: dict[str, InMemoryS3Backend] = {}
    _backends_lock = threading.Lock()

    def __init__(self, bucket: BucketConfig, backend: Optional[InMemoryS3Backend] = None) -> None:
        if backend is None:
            backend = self.backend_for(bucket.id)
        self.backend = backend
        super().__init__(bucket, s3_client=backend)

    @classmethod
    def backend_for(cls, bucket_id: str) -> InMemoryS3Backend:
        with cls._backends_lock:
            if bucket_id not in cls._backends:
                cls._backends[bucket_id] = InMemoryS3Backend()
                logger.info("Created in-memory bucket", extra={"bucket_id": bucket_id})
            return cls._backends[bucket_id]

    async def generate_presigned_url(
        self,
        key: str,
        expires_in: int = DEFAULT_PRESIGN_EXPIRY,
    ) -> str:
        await super().generate_presigned_url(key, expires_in=expires_in)
        return MOCK_DOWNLOAD_PATH.format(
            bucket_id=quote(self._bucket.id, safe=""),
            key=quote(key, safe="/"),
        )

    @classmethod
    def reset(cls) -> None:
        """Forget every in-memory bucket."""
        with cls._backends_lock:
            cls._backends.clear()


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(bucket: BucketConfig, mock_mode: bool = False) -> StorageClient:
    """
    Create the adapter matching a bucket's provider.

    Args:
        bucket: Bucket descriptor
        mock_mode: If True, return an in-memory adapter

    Raises:
        ValueError: If the provider is not supported
    """
    if mock_mode:
        return MockStorageClient(bucket)

    if bucket.provider == "r2":
        return R2StorageClient(bucket)
    if bucket.provider == "s3":
        return S3StorageClient(bucket)

    raise ValueError(f"Unsupported storage provider: {bucket.provider}. Must be 'r2' or 's3'.")
