"""
Infrastructure layer - external service integrations.

- storage: Object storage adapters (R2/S3) plus an in-memory backend

These wrappers translate between boto3 responses and our domain models.
"""
