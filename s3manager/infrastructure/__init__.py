"""
Infrastructure layer - external service integrations.

- storage: Object storage (S3 and S3-compatible endpoints)

These wrappers translate between external formats and our domain models.
"""
