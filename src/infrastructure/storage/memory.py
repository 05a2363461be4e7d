"""
In-memory stand-in for a boto3 S3 client.

Implements the handful of S3 calls the storage adapters make, with the same
request parameters and response shapes, so mock mode runs the real adapter
code (folder emulation, pagination, batch chunking) without credentials.
Failures are raised as botocore ClientErrors, like the real client does.

Not suitable for production: objects live in process memory and vanish on
restart.
"""

import base64
import hashlib
import io
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import quote

from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

MAX_DELETE_KEYS = 1000
PRESIGNED_SCHEME = "memory"


@dataclass
class _StoredBlob:
    data: bytes
    content_type: str
    last_modified: datetime
    etag: str


def _client_error(code: str, message: str, operation: str, status_code: int = 400) -> ClientError:
    return ClientError(
        {
            "Error": {"Code": code, "Message": message},
            "ResponseMetadata": {"HTTPStatusCode": status_code},
        },
        operation,
    )


def _encode_token(value: str) -> str:
    return base64.urlsafe_b64encode(value.encode("utf-8")).decode("ascii")


def _decode_token(token: str) -> str:
    try:
        return base64.urlsafe_b64decode(token.encode("ascii")).decode("utf-8")
    except (ValueError, UnicodeError):
        raise _client_error(
            "InvalidArgument", "The continuation token provided is incorrect", "ListObjectsV2"
        )


class InMemoryS3Backend:
    """
    Dict-backed implementation of the boto3 S3 client calls we use.

    With record_calls=True every call is appended to `calls` as
    (operation, params) so callers can inspect what the adapter actually
    sent. Recording is off by default.
    """

    def __init__(self, record_calls: bool = False) -> None:
        self._buckets: dict[str, dict[str, _StoredBlob]] = {}
        self._lock = threading.Lock()
        self.record_calls = record_calls
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def _bucket(self, name: str) -> dict[str, _StoredBlob]:
        return self._buckets.setdefault(name, {})

    def _record(self, operation: str, params: dict[str, Any]) -> None:
        if self.record_calls:
            self.calls.append((operation, params))

    def calls_to(self, operation: str) -> list[dict[str, Any]]:
        return [params for op, params in self.calls if op == operation]

    def keys(self, bucket: str) -> list[str]:
        with self._lock:
            return sorted(self._bucket(bucket))

    # ------------------------------------------------------------------
    # S3 API surface
    # ------------------------------------------------------------------

    def put_object(self, Bucket: str, Key: str, Body: bytes = b"", ContentType: Optional[str] = None, **kwargs):
        self._record("PutObject", {"Bucket": Bucket, "Key": Key, "ContentType": ContentType})
        data = Body.read() if hasattr(Body, "read") else bytes(Body)
        etag = f'"{hashlib.md5(data).hexdigest()}"'
        with self._lock:
            self._bucket(Bucket)[Key] = _StoredBlob(
                data=data,
                content_type=ContentType or "binary/octet-stream",
                last_modified=datetime.now(timezone.utc),
                etag=etag,
            )
        return {"ETag": etag}

    def get_object(self, Bucket: str, Key: str, **kwargs):
        self._record("GetObject", {"Bucket": Bucket, "Key": Key})
        with self._lock:
            blob = self._bucket(Bucket).get(Key)
        if blob is None:
            raise _client_error("NoSuchKey", "The specified key does not exist.", "GetObject", 404)
        return {
            "Body": io.BytesIO(blob.data),
            "ContentType": blob.content_type,
            "ContentLength": len(blob.data),
            "ETag": blob.etag,
            "LastModified": blob.last_modified,
        }

    def delete_object(self, Bucket: str, Key: str, **kwargs):
        self._record("DeleteObject", {"Bucket": Bucket, "Key": Key})
        with self._lock:
            self._bucket(Bucket).pop(Key, None)
        return {}

    def delete_objects(self, Bucket: str, Delete: dict[str, Any], **kwargs):
        objects = Delete.get("Objects", [])
        self._record("DeleteObjects", {"Bucket": Bucket, "Keys": [obj["Key"] for obj in objects]})
        if not objects or len(objects) > MAX_DELETE_KEYS:
            raise _client_error(
                "MalformedXML",
                "The XML you provided was not well-formed or did not validate against our published schema.",
                "DeleteObjects",
            )

        deleted = []
        with self._lock:
            bucket = self._bucket(Bucket)
            for obj in objects:
                bucket.pop(obj["Key"], None)
                deleted.append({"Key": obj["Key"]})

        if Delete.get("Quiet"):
            return {}
        return {"Deleted": deleted}

    def list_objects_v2(
        self,
        Bucket: str,
        Prefix: str = "",
        Delimiter: Optional[str] = None,
        MaxKeys: int = 1000,
        ContinuationToken: Optional[str] = None,
        **kwargs,
    ):
        self._record("ListObjectsV2", {
            "Bucket": Bucket,
            "Prefix": Prefix,
            "Delimiter": Delimiter,
            "MaxKeys": MaxKeys,
            "ContinuationToken": ContinuationToken,
        })
        start_after = _decode_token(ContinuationToken) if ContinuationToken else None

        with self._lock:
            snapshot = sorted(self._bucket(Bucket).items())

        contents = []
        common_prefixes: list[str] = []
        last_value = None
        is_truncated = False

        for key, blob in snapshot:
            if not key.startswith(Prefix):
                continue

            # keys under the same delimiter group collapse into one entry
            value = key
            grouped = False
            if Delimiter:
                rest = key[len(Prefix):]
                index = rest.find(Delimiter)
                if index >= 0:
                    value = Prefix + rest[:index + len(Delimiter)]
                    grouped = True

            if start_after is not None and value <= start_after:
                continue
            if grouped and common_prefixes and common_prefixes[-1] == value:
                continue

            if len(contents) + len(common_prefixes) >= MaxKeys:
                is_truncated = True
                break

            if grouped:
                common_prefixes.append(value)
            else:
                contents.append({
                    "Key": key,
                    "Size": len(blob.data),
                    "LastModified": blob.last_modified,
                    "ETag": blob.etag,
                })
            last_value = value

        response: dict[str, Any] = {
            "IsTruncated": is_truncated,
            "KeyCount": len(contents) + len(common_prefixes),
            "MaxKeys": MaxKeys,
            "Prefix": Prefix,
        }
        if Delimiter:
            response["Delimiter"] = Delimiter
        if contents:
            response["Contents"] = contents
        if common_prefixes:
            response["CommonPrefixes"] = [{"Prefix": p} for p in common_prefixes]
        if ContinuationToken:
            response["ContinuationToken"] = ContinuationToken
        if is_truncated and last_value is not None:
            response["NextContinuationToken"] = _encode_token(last_value)
        return response

    def generate_presigned_url(self, ClientMethod: str, Params: dict[str, Any], ExpiresIn: int = 3600, **kwargs) -> str:
        self._record("GeneratePresignedUrl", {"ClientMethod": ClientMethod, **Params, "ExpiresIn": ExpiresIn})
        return (
            f"{PRESIGNED_SCHEME}://{Params['Bucket']}/{quote(Params['Key'], safe='/')}"
            f"?X-Amz-Expires={ExpiresIn}"
        )
