"""
Domain models for browsing a bucket.

Object storage is a flat key/value namespace. Folders don't exist there;
they're derived from listing results: every common prefix returned by a
delimiter listing becomes a Folder, every content entry becomes a File.
Nothing here knows about boto3 or HTTP.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import BinaryIO, Optional, Union

from .keys import strip_prefix
from .mime import guess_mime_type

FOLDER_TYPE = "folder"


@dataclass(frozen=True)
class StoredFile:
    """A real object in the bucket."""
    path: str
    name: str
    size: int
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None

    is_folder = False

    @property
    def id(self) -> str:
        """
        Stable display key: key plus ETag, or key plus timestamp.

        Only meant for UI list keys. Storage calls use `path`.
        """
        if self.etag:
            suffix = self.etag.replace('"', "")
        elif self.last_modified is not None:
            suffix = str(int(self.last_modified.timestamp() * 1000))
        else:
            suffix = ""
        return f"{self.path}-{suffix}"

    @property
    def type(self) -> str:
        return guess_mime_type(self.path)


@dataclass(frozen=True)
class Folder:
    """A common prefix, shown as a folder. Has no size or timestamp of its own."""
    path: str
    name: str

    is_folder = True
    size = 0
    last_modified = None

    @property
    def id(self) -> str:
        return f"folder-{self.path}"

    @property
    def type(self) -> str:
        return FOLDER_TYPE


StorageObject = Union[StoredFile, Folder]


@dataclass
class PaginatedResult:
    """One page of a listing. Token and truncation come straight from the provider."""
    objects: list[StorageObject] = field(default_factory=list)
    next_continuation_token: Optional[str] = None
    is_truncated: bool = False
    total_count: Optional[int] = None

    @property
    def folders(self) -> list[Folder]:
        return [obj for obj in self.objects if isinstance(obj, Folder)]

    @property
    def files(self) -> list[StoredFile]:
        return [obj for obj in self.objects if isinstance(obj, StoredFile)]


@dataclass
class ObjectContent:
    """Body and headers of a fetched object."""
    key: str
    body: BinaryIO
    content_type: str
    content_length: Optional[int] = None

    def iter_chunks(self, chunk_size: int = 64 * 1024):
        """Yield the body in chunks, then close it."""
        try:
            while True:
                chunk = self.body.read(chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            self.body.close()


def folder_from_prefix(common_prefix: str, listing_prefix: str) -> Folder:
    """Build a Folder from a common prefix like 'photos/2024/' listed under 'photos/'."""
    name = strip_prefix(common_prefix, listing_prefix).rstrip("/")
    return Folder(path=common_prefix, name=name)


def file_from_entry(
    key: str,
    listing_prefix: str,
    size: int = 0,
    last_modified: Optional[datetime] = None,
    etag: Optional[str] = None,
) -> StoredFile:
    return StoredFile(
        path=key,
        name=strip_prefix(key, listing_prefix),
        size=size or 0,
        last_modified=last_modified,
        etag=etag,
    )
