"""
Bucket browsing domain: files, synthetic folders and pages of listings.
"""

from .keys import (
    basename,
    is_folder_marker,
    join_key,
    normalize_folder_path,
    normalize_prefix,
    sanitize_folder_name,
)
from .mime import guess_mime_type, is_previewable
from .models import (
    Folder,
    ObjectContent,
    PaginatedResult,
    StorageObject,
    StoredFile,
    file_from_entry,
    folder_from_prefix,
)

__all__ = [
    "Folder",
    "ObjectContent",
    "PaginatedResult",
    "StorageObject",
    "StoredFile",
    "basename",
    "file_from_entry",
    "folder_from_prefix",
    "guess_mime_type",
    "is_folder_marker",
    "is_previewable",
    "join_key",
    "normalize_folder_path",
    "normalize_prefix",
    "sanitize_folder_name",
]
