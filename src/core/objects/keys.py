"""
Object key helpers for folder emulation.

Keys are plain strings; "/" is the only separator we treat specially.
"""

from typing import Optional

DELIMITER = "/"


def normalize_folder_path(path: str) -> str:
    """Folder paths always end with exactly one trailing slash."""
    return path.rstrip(DELIMITER) + DELIMITER


def normalize_prefix(prefix: Optional[str]) -> str:
    """Listing prefix: empty for the bucket root, otherwise a folder path."""
    if not prefix or not prefix.strip(DELIMITER):
        return ""
    return normalize_folder_path(prefix.lstrip(DELIMITER))


def strip_prefix(key: str, prefix: str) -> str:
    if prefix and key.startswith(prefix):
        return key[len(prefix):]
    return key


def is_folder_marker(key: str) -> bool:
    """Zero-byte marker objects created for empty folders end with '/'."""
    return key.endswith(DELIMITER)


def sanitize_folder_name(folder_name: str) -> str:
    """Remove slashes and backslashes so a name can't escape its parent folder."""
    return folder_name.replace("/", "").replace("\\", "").strip()


def join_key(prefix: Optional[str], name: str) -> str:
    """Place `name` inside the folder `prefix` ('' means bucket root)."""
    return f"{normalize_prefix(prefix)}{name}"


def basename(key: str) -> str:
    """Last path segment, ignoring a trailing slash."""
    return key.rstrip(DELIMITER).rsplit(DELIMITER, 1)[-1]
