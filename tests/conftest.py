"""
Shared test fixtures.

Storage runs against the in-memory S3 backend, so no credentials or
network access are needed. API tests get an app whose settings point at a
temporary bucket config file.
"""

import json

import pytest

from src.config.buckets import BucketConfig
from src.config.settings import Settings, get_settings
from src.infrastructure.storage.client import MockStorageClient
from src.infrastructure.storage.memory import InMemoryS3Backend


BUCKETS = [
    {
        "id": "media",
        "name": "media-bucket",
        "displayName": "Media",
        "provider": "r2",
        "endpoint": "https://account123.r2.cloudflarestorage.com",
        "accessKeyId": "r2-key",
        "secretAccessKey": "r2-secret",
    },
    {
        "id": "archive",
        "name": "archive-bucket",
        "provider": "s3",
        "region": "eu-west-1",
        "accessKeyId": "aws-key",
        "secretAccessKey": "aws-secret",
    },
]


def _make_settings(**overrides) -> Settings:
    """Settings isolated from the developer's environment and .env file."""
    values = {
        "cloudflare_bucket_name": "",
        "cloudflare_bucket_api": None,
        "cloudflare_access_key_id": "",
        "cloudflare_secret_access_key": "",
        "s3_upload_bucket": "",
        "s3_upload_key": "",
        "s3_upload_secret": "",
        "bucket_config_file": "does-not-exist.json",
        "storage_mock_mode": True,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def make_settings():
    return _make_settings


@pytest.fixture
def bucket_entries() -> list[dict]:
    return [dict(entry) for entry in BUCKETS]


@pytest.fixture(autouse=True)
def reset_state():
    """Fresh in-memory buckets and settings cache for every test."""
    MockStorageClient.reset()
    get_settings.cache_clear()
    yield
    MockStorageClient.reset()
    get_settings.cache_clear()


@pytest.fixture
def r2_bucket() -> BucketConfig:
    return BucketConfig.model_validate(BUCKETS[0])


@pytest.fixture
def s3_bucket() -> BucketConfig:
    return BucketConfig.model_validate(BUCKETS[1])


@pytest.fixture
def backend() -> InMemoryS3Backend:
    return InMemoryS3Backend(record_calls=True)


@pytest.fixture
def storage(r2_bucket, backend) -> MockStorageClient:
    return MockStorageClient(r2_bucket, backend=backend)


@pytest.fixture
def bucket_file(tmp_path):
    path = tmp_path / "buckets.json"
    path.write_text(json.dumps(BUCKETS), encoding="utf-8")
    return path
