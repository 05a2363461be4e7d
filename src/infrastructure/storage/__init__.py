"""
Object storage integration for browsing buckets.

Supports R2 (Cloudflare) and S3 (AWS) via the S3-compatible API.
Includes mock mode for local development without credentials.
"""

from .client import (
    BatchDeleteError,
    MockStorageClient,
    R2StorageClient,
    S3StorageClient,
    StorageClient,
    StorageError,
    create_storage_client,
)
from .memory import InMemoryS3Backend

__all__ = [
    "BatchDeleteError",
    "InMemoryS3Backend",
    "MockStorageClient",
    "R2StorageClient",
    "S3StorageClient",
    "StorageClient",
    "StorageError",
    "create_storage_client",
]
