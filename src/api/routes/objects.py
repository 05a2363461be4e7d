"""
Object endpoints: list, upload, download, delete.

All routes are scoped to a bucket (`/api/buckets/{bucket_id}/objects`).
The bucket is resolved by the StorageClientDep dependency, so handlers
only ever see a valid adapter.

Object keys are passed in the path and may contain slashes
(`/objects/photos/2024/cat.jpg`). The key is the full object path, never
the display id from a listing.
"""

import logging
from typing import Annotated, Optional
from urllib.parse import quote

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ...core.objects import PaginatedResult, StorageObject, basename, guess_mime_type, join_key
from ..dependencies import BucketDep, SettingsDep, StorageClientDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StorageObjectResponse(CamelModel):
    """A file or folder row in the browser."""
    id: str = Field(description="Display key for UI lists. Not usable for API calls.")
    name: str = Field(description="Name relative to the listed prefix")
    path: str = Field(description="Full object key")
    type: str = Field(description="MIME type, or 'folder'")
    size: int
    last_modified: Optional[str] = Field(None, description="ISO timestamp; null for folders")
    is_folder: bool

    @classmethod
    def from_domain(cls, obj: StorageObject) -> "StorageObjectResponse":
        return cls(
            id=obj.id,
            name=obj.name,
            path=obj.path,
            type=obj.type,
            size=obj.size,
            last_modified=obj.last_modified.isoformat() if obj.last_modified else None,
            is_folder=obj.is_folder,
        )


class PaginatedResponse(CamelModel):
    objects: list[StorageObjectResponse]
    next_continuation_token: Optional[str] = None
    is_truncated: bool
    total_count: Optional[int] = None

    @classmethod
    def from_domain(cls, result: PaginatedResult) -> "PaginatedResponse":
        return cls(
            objects=[StorageObjectResponse.from_domain(obj) for obj in result.objects],
            next_continuation_token=result.next_continuation_token,
            is_truncated=result.is_truncated,
            total_count=result.total_count,
        )


class UploadResponse(BaseModel):
    message: str
    filename: str
    key: str


class PresignedUrlResponse(CamelModel):
    url: str
    expires_in: int


class MessageResponse(CamelModel):
    message: str
    deleted_count: Optional[int] = None


class BatchDeleteRequest(BaseModel):
    keys: list[str] = Field(default_factory=list, description="Full keys of the objects to delete")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def content_disposition(key: str, disposition: str = "attachment") -> str:
    """Content-Disposition with an RFC 5987 filename for non-ASCII names."""
    filename = basename(key) or "download"
    quoted = quote(filename)
    if quoted != filename:
        return f"{disposition}; filename*=utf-8''{quoted}"
    return f'{disposition}; filename="{filename}"'


def storage_failure(action: str, error: Exception) -> HTTPException:
    """Provider errors surface as 500 with the provider's message."""
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}: {error}",
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=PaginatedResponse,
    status_code=status.HTTP_200_OK,
    summary="List objects",
    description="One page of folders and files directly under `prefix`.",
)
async def list_objects(
    bucket: BucketDep,
    storage: StorageClientDep,
    settings: SettingsDep,
    max_keys: Annotated[Optional[int], Query(alias="maxKeys", ge=1, le=1000)] = None,
    continuation_token: Annotated[Optional[str], Query(alias="continuationToken")] = None,
    prefix: Annotated[str, Query()] = "",
) -> PaginatedResponse:
    try:
        result = await storage.list_objects(
            max_keys=max_keys or settings.default_max_keys,
            continuation_token=continuation_token or None,
            prefix=prefix,
        )
    except Exception as e:
        logger.error("Failed to list objects", extra={"bucket_id": bucket.id, "prefix": prefix, "error": str(e)})
        raise storage_failure("list objects", e)

    return PaginatedResponse.from_domain(result)


@router.post(
    "",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a file",
    description="Upload a file into the folder given by `prefix` (bucket root if empty).",
)
async def upload_object(
    bucket: BucketDep,
    storage: StorageClientDep,
    settings: SettingsDep,
    file: Annotated[Optional[UploadFile], File(description="File to upload")] = None,
    prefix: Annotated[str, Form()] = "",
) -> UploadResponse:
    if file is None or not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No file provided",
        )

    # whole body is buffered; the provider gets a single PUT
    data = await file.read()
    if len(data) > settings.max_upload_size_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large. Maximum size: {settings.max_upload_size_mb}MB",
        )

    filename = basename(file.filename)
    key = join_key(prefix, filename)
    content_type = file.content_type
    if not content_type or content_type == "application/octet-stream":
        content_type = guess_mime_type(filename)

    logger.info(
        "Uploading file",
        extra={
            "bucket_id": bucket.id,
            "key": key,
            "size_bytes": len(data),
            "content_type": content_type,
        },
    )

    try:
        await storage.upload_object(key, data, content_type)
    except Exception as e:
        logger.error("Failed to upload object", extra={"bucket_id": bucket.id, "key": key, "error": str(e)})
        raise storage_failure("upload object", e)

    return UploadResponse(message="File uploaded successfully", filename=filename, key=key)


@router.post(
    "/delete-batch",
    response_model=MessageResponse,
    status_code=status.HTTP_200_OK,
    summary="Delete several objects",
)
async def delete_objects(
    request: BatchDeleteRequest,
    bucket: BucketDep,
    storage: StorageClientDep,
) -> MessageResponse:
    keys = [key for key in request.keys if key]
    if not keys:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No valid keys provided for deletion",
        )

    try:
        deleted = await storage.delete_objects(keys)
    except Exception as e:
        logger.error("Failed to delete objects", extra={"bucket_id": bucket.id, "count": len(keys), "error": str(e)})
        raise storage_failure("delete objects", e)

    return MessageResponse(message=f"Successfully deleted {deleted} objects", deleted_count=deleted)


@router.get(
    "/{key:path}",
    status_code=status.HTTP_200_OK,
    summary="Download an object",
    description=(
        "With `presigned=true`, returns a temporary URL for direct access. "
        "Otherwise streams the object bytes through the API."
    ),
    responses={200: {"model": PresignedUrlResponse, "description": "Presigned URL or object bytes"}},
)
async def get_object(
    key: str,
    bucket: BucketDep,
    storage: StorageClientDep,
    settings: SettingsDep,
    presigned: bool = False,
):
    if presigned:
        try:
            url = await storage.generate_presigned_url(key, expires_in=settings.presign_expiry_seconds)
        except Exception as e:
            logger.error("Failed to generate presigned URL", extra={"bucket_id": bucket.id, "key": key, "error": str(e)})
            raise storage_failure("generate presigned URL", e)
        return PresignedUrlResponse(url=url, expires_in=settings.presign_expiry_seconds)

    try:
        content = await storage.get_object(key)
    except Exception as e:
        logger.error("Failed to get object", extra={"bucket_id": bucket.id, "key": key, "error": str(e)})
        raise storage_failure("get object", e)

    headers = {"Content-Disposition": content_disposition(key)}
    if content.content_length is not None:
        headers["Content-Length"] = str(content.content_length)

    return StreamingResponse(
        content.iter_chunks(settings.download_chunk_size),
        media_type=content.content_type,
        headers=headers,
        # also runs when the client disconnects before the body is drained
        background=BackgroundTask(content.body.close),
    )


@router.delete(
    "/{key:path}",
    response_model=MessageResponse,
    status_code=status.HTTP_200_OK,
    summary="Delete an object",
)
async def delete_object(
    key: str,
    bucket: BucketDep,
    storage: StorageClientDep,
) -> MessageResponse:
    try:
        await storage.delete_object(key)
    except Exception as e:
        logger.error("Failed to delete object", extra={"bucket_id": bucket.id, "key": key, "error": str(e)})
        raise storage_failure("delete object", e)

    return MessageResponse(message=f"Successfully deleted {key}")
