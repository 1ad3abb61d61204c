"""
Bucket API endpoints.

Creation is always available. Deletion lives on its own router so the
application can leave it unregistered when ALLOW_DELETE is off.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from ..dependencies import StorageClientDep

logger = logging.getLogger(__name__)

router = APIRouter()
delete_router = APIRouter()

# Lowercase letters, digits, dots and hyphens; starts and ends alphanumeric
BUCKET_NAME_PATTERN = r"^[a-z0-9][a-z0-9.-]*[a-z0-9]$"


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class CreateBucketRequest(BaseModel):
    """Request to create a bucket."""
    name: str = Field(
        description="Bucket name, following S3 naming rules",
        min_length=3,
        max_length=63,
        pattern=BUCKET_NAME_PATTERN,
    )


class BucketResponse(BaseModel):
    """A bucket."""
    name: str = Field(description="Bucket name")
    creation_date: Optional[datetime] = Field(None, description="When the bucket was created")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=BucketResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create bucket",
)
async def create_bucket(
    request: CreateBucketRequest,
    storage: StorageClientDep,
) -> BucketResponse:
    logger.info("Creating bucket", extra={"bucket": request.name})

    bucket = await storage.create_bucket(request.name)

    return BucketResponse(name=bucket.name, creation_date=bucket.creation_date)


@delete_router.delete(
    "/{bucket_name}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete bucket",
    description="Delete an empty bucket",
)
async def delete_bucket(
    bucket_name: str,
    storage: StorageClientDep,
) -> None:
    logger.info("Deleting bucket", extra={"bucket": bucket_name})

    await storage.delete_bucket(bucket_name)
