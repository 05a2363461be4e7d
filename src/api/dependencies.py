"""
FastAPI dependency injection.

Bucket-scoped routes never build their own storage clients. They declare
`BucketDep` / `StorageClientDep` and FastAPI resolves, in order:

1. settings (cached per process)
2. the bucket list (loaded per request, so edits to the JSON file apply
   without a restart)
3. the bucket for the `bucket_id` path parameter, or a 404
4. the storage adapter for that bucket

Because this all happens before the handler runs, an unknown bucket id
is rejected without touching storage.
"""

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, status

from ..config.buckets import BucketConfig, BucketConfigError, find_bucket_config, load_bucket_configs
from ..config.settings import Settings, get_settings
from ..infrastructure.storage.client import StorageClient, create_storage_client

logger = logging.getLogger(__name__)


def get_bucket_configs(
    settings: Annotated[Settings, Depends(get_settings)],
) -> list[BucketConfig]:
    """Load bucket descriptors, turning configuration errors into a 500."""
    try:
        return load_bucket_configs(settings)
    except BucketConfigError as e:
        logger.error("Invalid bucket configuration", extra={"error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Bucket configuration error: {e}",
        )


def get_bucket(
    bucket_id: str,
    configs: Annotated[list[BucketConfig], Depends(get_bucket_configs)],
) -> BucketConfig:
    """Resolve the `bucket_id` path parameter."""
    bucket = find_bucket_config(configs, bucket_id)
    if bucket is None:
        logger.warning("Bucket not found", extra={"bucket_id": bucket_id})
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Bucket not found",
        )
    return bucket


def get_storage_client(
    bucket: Annotated[BucketConfig, Depends(get_bucket)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> StorageClient:
    """
    Provide the storage adapter for the requested bucket.

    A fresh adapter is built per request. In mock mode the adapter wraps
    a shared in-memory bucket so uploads persist between requests.
    """
    try:
        return create_storage_client(bucket, mock_mode=settings.storage_mock_mode)
    except ValueError as e:
        logger.error("Could not create storage client", extra={"bucket_id": bucket.id, "error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        )


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

SettingsDep = Annotated[Settings, Depends(get_settings)]
BucketConfigsDep = Annotated[list[BucketConfig], Depends(get_bucket_configs)]
BucketDep = Annotated[BucketConfig, Depends(get_bucket)]
StorageClientDep = Annotated[StorageClient, Depends(get_storage_client)]
