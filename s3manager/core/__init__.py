"""
Core domain for the storage browser.

This module is framework-agnostic - it doesn't import FastAPI or boto3.
Models describe what the storage provider returns; errors describe how
storage operations fail.
"""

from .errors import (
    BucketNotFoundError,
    ConfigurationError,
    InvalidRequestError,
    ObjectNotFoundError,
    SharedBucketsError,
    StorageConflictError,
    StorageError,
    StoragePermissionError,
    StorageUnavailableError,
)
from .models import (
    Breadcrumb,
    Bucket,
    BucketListing,
    ObjectContent,
    ObjectInfo,
    SignatureType,
    SSEConfig,
    SSEType,
)

__all__ = [
    "BucketNotFoundError",
    "ConfigurationError",
    "InvalidRequestError",
    "ObjectNotFoundError",
    "SharedBucketsError",
    "StorageConflictError",
    "StorageError",
    "StoragePermissionError",
    "StorageUnavailableError",
    "Breadcrumb",
    "Bucket",
    "BucketListing",
    "ObjectContent",
    "ObjectInfo",
    "SignatureType",
    "SSEConfig",
    "SSEType",
]
