"""
Folder endpoints.

Buckets have no real folders. Creating one writes a zero-byte marker
object ending in "/"; deleting one removes every key under that prefix.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ...core.objects import join_key, normalize_folder_path, sanitize_folder_name
from ..dependencies import BucketDep, StorageClientDep
from .objects import storage_failure

logger = logging.getLogger(__name__)

router = APIRouter()


class CreateFolderRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    folder_name: Optional[str] = Field(None, description="Name of the new folder")
    current_prefix: str = Field("", description="Folder to create it in; empty for bucket root")


class CreateFolderResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message: str
    folder_path: str
    folder_name: str


class DeleteFolderRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    folder_path: Optional[str] = Field(None, description="Full folder path, e.g. 'photos/2024/'")


class DeleteFolderResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message: str
    deleted_count: int
    folder_path: str


@router.post(
    "",
    response_model=CreateFolderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a folder",
)
async def create_folder(
    request: CreateFolderRequest,
    bucket: BucketDep,
    storage: StorageClientDep,
) -> CreateFolderResponse:
    if not request.folder_name or not request.folder_name.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Folder name is required",
        )

    folder_name = sanitize_folder_name(request.folder_name)
    if not folder_name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid folder name",
        )

    folder_path = normalize_folder_path(join_key(request.current_prefix, folder_name))

    try:
        folder_path = await storage.create_folder(folder_path)
    except Exception as e:
        logger.error("Failed to create folder", extra={"bucket_id": bucket.id, "folder": folder_path, "error": str(e)})
        raise storage_failure("create folder", e)

    return CreateFolderResponse(
        message="Folder created successfully",
        folder_path=folder_path,
        folder_name=folder_name,
    )


@router.delete(
    "",
    response_model=DeleteFolderResponse,
    status_code=status.HTTP_200_OK,
    summary="Delete a folder and everything in it",
    description="Not atomic: a failure part way leaves the folder partially deleted. Retrying resumes.",
)
async def delete_folder(
    request: DeleteFolderRequest,
    bucket: BucketDep,
    storage: StorageClientDep,
) -> DeleteFolderResponse:
    if not request.folder_path or not request.folder_path.strip("/ "):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Folder path is required",
        )

    folder_path = normalize_folder_path(request.folder_path)

    try:
        deleted = await storage.delete_folder(folder_path)
    except Exception as e:
        logger.error("Failed to delete folder", extra={"bucket_id": bucket.id, "folder": folder_path, "error": str(e)})
        raise storage_failure("delete folder", e)

    return DeleteFolderResponse(
        message=f"Folder and {deleted} item(s) deleted successfully",
        deleted_count=deleted,
        folder_path=folder_path,
    )
