"""
Application configuration.

Settings come from environment variables via Pydantic settings; bucket
descriptors come from the environment and an optional JSON file.
"""

from .buckets import BucketConfig, BucketConfigError, find_bucket_config, load_bucket_configs
from .settings import Settings, get_settings

__all__ = [
    "BucketConfig",
    "BucketConfigError",
    "Settings",
    "find_bucket_config",
    "get_settings",
    "load_bucket_configs",
]
