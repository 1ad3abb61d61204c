"""
S3 Manager - a web file manager for S3-compatible object storage.

This package contains the complete application:
- core: Framework-agnostic models, errors and shared-bucket parsing
- infrastructure: The boto3-backed storage client (and an in-memory mock)
- api: FastAPI routes and dependencies
- web: HTML templates and static assets
- config: Application configuration
"""

__version__ = "0.1.0"
