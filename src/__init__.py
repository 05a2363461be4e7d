"""
Bucket Browser - a web file manager for R2 and S3 buckets.

This package contains the complete application:
- core: Framework-agnostic object/folder model
- infrastructure: Storage adapters (boto3) and the in-memory backend
- api: FastAPI routes and dependencies
- config: Settings and bucket configuration
"""

__version__ = "0.1.0"
