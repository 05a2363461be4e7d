"""
Bucket configuration loader.

Produces the list of buckets the browser can open. Buckets come from a JSON
file (any number, any provider) and from the Cloudflare/S3 environment
variables (at most one of each). Descriptors are validated here so that a
broken bucket fails loudly at the request that needs it instead of deep
inside boto3.

JSON file format (camelCase keys, either a bare list or {"buckets": [...]})::

    [
      {
        "id": "media",
        "name": "my-media-bucket",
        "displayName": "Media",
        "provider": "r2",
        "endpoint": "https://<account>.r2.cloudflarestorage.com",
        "accessKeyId": "...",
        "secretAccessKey": "..."
      }
    ]
"""

import json
import logging
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from .settings import Settings

logger = logging.getLogger(__name__)

Provider = Literal["r2", "s3"]

DEFAULT_S3_REGION = "us-east-1"
R2_REGION = "auto"


class BucketConfigError(Exception):
    """Raised when a bucket descriptor is missing or invalid."""
    pass


class BucketConfig(BaseModel):
    """
    Credentials and metadata for one bucket.

    Frozen: a descriptor never changes during a request. The secret is a
    SecretStr so it doesn't show up in reprs or logs.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    display_name: Optional[str] = None
    provider: Provider
    region: Optional[str] = None
    endpoint: Optional[str] = None
    access_key_id: str = Field(min_length=1)
    secret_access_key: SecretStr

    @model_validator(mode="after")
    def _check_provider_fields(self) -> "BucketConfig":
        if not self.secret_access_key.get_secret_value():
            raise ValueError("secretAccessKey must not be empty")
        if self.provider == "r2" and not self.endpoint:
            raise ValueError("R2 buckets require an endpoint")
        return self

    @property
    def label(self) -> str:
        return self.display_name or self.name

    @property
    def effective_region(self) -> str:
        if self.provider == "r2":
            return R2_REGION
        return self.region or DEFAULT_S3_REGION

    def public_view(self) -> dict[str, str]:
        """The only fields that may ever reach the client."""
        return {
            "id": self.id,
            "name": self.name,
            "displayName": self.label,
            "provider": self.provider,
        }


def _parse_descriptor(raw: Any, source: str) -> BucketConfig:
    if not isinstance(raw, dict):
        raise BucketConfigError(f"{source}: bucket entry must be an object, got {type(raw).__name__}")
    try:
        return BucketConfig.model_validate(raw)
    except ValidationError as e:
        bucket = raw.get("id") or raw.get("name") or "<unnamed>"
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'bucket'}: {err['msg']}"
            for err in e.errors()
        )
        raise BucketConfigError(f"{source}: invalid bucket '{bucket}': {problems}") from e


def _load_file_configs(path: Path) -> list[BucketConfig]:
    if not path.is_file():
        logger.debug("No bucket config file", extra={"path": str(path)})
        return []

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise BucketConfigError(f"Could not read bucket config file {path}: {e}") from e

    if isinstance(data, dict):
        data = data.get("buckets")
    if not isinstance(data, list):
        raise BucketConfigError(
            f"{path}: expected a list of buckets or an object with a 'buckets' list"
        )

    return [_parse_descriptor(entry, str(path)) for entry in data]


def _load_env_configs(settings: Settings) -> list[BucketConfig]:
    raw_configs = []

    if settings.cloudflare_bucket_name:
        raw_configs.append({
            "id": f"r2-{settings.cloudflare_bucket_name}",
            "name": settings.cloudflare_bucket_name,
            "displayName": settings.cloudflare_bucket_display_name,
            "provider": "r2",
            "endpoint": settings.cloudflare_bucket_api,
            "accessKeyId": settings.cloudflare_access_key_id,
            "secretAccessKey": settings.cloudflare_secret_access_key,
        })

    if settings.s3_upload_bucket:
        raw_configs.append({
            "id": f"s3-{settings.s3_upload_bucket}",
            "name": settings.s3_upload_bucket,
            "displayName": settings.s3_upload_display_name,
            "provider": "s3",
            "region": settings.s3_upload_region or DEFAULT_S3_REGION,
            "accessKeyId": settings.s3_upload_key,
            "secretAccessKey": settings.s3_upload_secret,
        })

    return [_parse_descriptor(raw, "environment") for raw in raw_configs]


def load_bucket_configs(settings: Settings) -> list[BucketConfig]:
    """
    Load every configured bucket, file entries first.

    Raises BucketConfigError if any descriptor is invalid or two
    descriptors share an id.
    """
    configs = _load_file_configs(Path(settings.bucket_config_file))
    configs.extend(_load_env_configs(settings))

    seen: set[str] = set()
    for config in configs:
        if config.id in seen:
            raise BucketConfigError(f"Duplicate bucket id: {config.id}")
        seen.add(config.id)

    return configs


def find_bucket_config(configs: list[BucketConfig], bucket_id: str) -> Optional[BucketConfig]:
    """Return the bucket with the given id, or None."""
    for config in configs:
        if config.id == bucket_id:
            return config
    return None
