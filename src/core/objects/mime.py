"""MIME type inference from object keys."""

import mimetypes

DEFAULT_MIME_TYPE = "application/octet-stream"

# Checked before the platform registry, whose answers vary between systems.
MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "ppt": "application/vnd.ms-powerpoint",
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "txt": "text/plain",
    "html": "text/html",
    "css": "text/css",
    "js": "application/javascript",
    "json": "application/json",
    "xml": "application/xml",
    "zip": "application/zip",
    "rar": "application/x-rar-compressed",
    "tar": "application/x-tar",
    "7z": "application/x-7z-compressed",
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "mp4": "video/mp4",
    "mov": "video/quicktime",
    "avi": "video/x-msvideo",
    "webm": "video/webm",
}


def guess_mime_type(key: str) -> str:
    """Infer a content type from the key's extension."""
    name = key.rsplit("/", 1)[-1]
    if "." not in name:
        return DEFAULT_MIME_TYPE

    extension = name.rsplit(".", 1)[-1].lower()
    if extension in MIME_TYPES:
        return MIME_TYPES[extension]

    guessed, _ = mimetypes.guess_type(name)
    return guessed or DEFAULT_MIME_TYPE


def is_previewable(mime_type: str) -> bool:
    """Images and videos can be shown inline from a presigned URL."""
    return mime_type.startswith("image/") or mime_type.startswith("video/")
