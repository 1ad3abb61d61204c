"""
Object API endpoints.

Keys may contain "/", so every key is captured with a path converter. The
presigned URL route is registered before the download route; otherwise
".../objects/a/b/url" would download an object called "a/b/url".

Deletion lives on its own router so the application can leave it
unregistered when ALLOW_DELETE is off.
"""

import logging
from datetime import datetime
from typing import Annotated, Optional
from urllib.parse import quote

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from ...infrastructure.storage.client import DEFAULT_CONTENT_TYPE
from ..dependencies import SettingsDep, SSEConfigDep, StorageClientDep

logger = logging.getLogger(__name__)

router = APIRouter()
delete_router = APIRouter()

# Longest validity S3 accepts for a SigV4 presigned URL
MAX_PRESIGN_EXPIRY_SECONDS = 7 * 24 * 60 * 60


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class ObjectResponse(BaseModel):
    """An uploaded object."""
    bucket: str = Field(description="Bucket the object was stored in")
    key: str = Field(description="Object key")
    size: int = Field(description="Size in bytes")
    last_modified: Optional[datetime] = Field(None, description="Upload time")


class PresignedUrlResponse(BaseModel):
    """A temporary download link."""
    url: str = Field(description="Presigned GET URL")
    expires_in: int = Field(description="Validity in seconds")


def content_disposition(disposition: str, filename: str) -> str:
    """
    Build a Content-Disposition header value.

    The plain filename parameter is ASCII-only for old clients; filename*
    carries the exact UTF-8 name.
    """
    fallback = filename.encode("ascii", "replace").decode("ascii")
    fallback = fallback.replace("\\", "_").replace('"', "_")
    return f"{disposition}; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/{bucket_name}/objects",
    response_model=ObjectResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload object",
    description="Upload a file. `path` is the full object key; it defaults to the file name.",
)
async def upload_object(
    bucket_name: str,
    file: Annotated[UploadFile, File(description="File to upload")],
    storage: StorageClientDep,
    sse: SSEConfigDep,
    path: Annotated[str, Form()] = "",
) -> ObjectResponse:
    key = path or file.filename or ""
    if not key:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Object key required. Provide a path or a named file."
        )

    logger.info(
        "Uploading object",
        extra={
            "bucket": bucket_name,
            "key": key,
            "content_type": file.content_type,
        }
    )

    info = await storage.put_object(
        bucket_name,
        key,
        file.file,
        content_type=file.content_type or DEFAULT_CONTENT_TYPE,
        sse=sse,
    )

    return ObjectResponse(
        bucket=bucket_name,
        key=info.key,
        size=info.size,
        last_modified=info.last_modified,
    )


@router.get(
    "/{bucket_name}/objects/{object_name:path}/url",
    response_model=PresignedUrlResponse,
    summary="Generate presigned URL",
)
async def generate_url(
    bucket_name: str,
    object_name: str,
    expiry: Annotated[int, Query(
        ge=1,
        le=MAX_PRESIGN_EXPIRY_SECONDS,
        description="Link validity in seconds (1 second to 7 days)",
    )],
    storage: StorageClientDep,
) -> PresignedUrlResponse:
    url = await storage.presigned_url(bucket_name, object_name, expiry_seconds=expiry)

    logger.info(
        "Generated presigned URL",
        extra={"bucket": bucket_name, "key": object_name, "expiry": expiry}
    )

    return PresignedUrlResponse(url=url, expires_in=expiry)


@router.get(
    "/{bucket_name}/objects/{object_name:path}",
    response_class=StreamingResponse,
    summary="Download object",
)
async def download_object(
    bucket_name: str,
    object_name: str,
    storage: StorageClientDep,
    settings: SettingsDep,
    sse: SSEConfigDep,
) -> StreamingResponse:
    """
    Stream an object to the client.

    With FORCE_DOWNLOAD the browser always saves the file; otherwise the
    stored content type is passed through so it can render inline.
    """
    content = await storage.get_object(bucket_name, object_name, sse=sse)

    headers = {}
    if content.content_length is not None:
        headers["Content-Length"] = str(content.content_length)

    if settings.force_download:
        media_type = DEFAULT_CONTENT_TYPE
        headers["Content-Disposition"] = content_disposition("attachment", content.info.filename)
    else:
        media_type = content.content_type
        headers["Content-Disposition"] = content_disposition("inline", content.info.filename)

    return StreamingResponse(content.body, media_type=media_type, headers=headers)


@delete_router.delete(
    "/{bucket_name}/objects/{object_name:path}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete object",
)
async def delete_object(
    bucket_name: str,
    object_name: str,
    storage: StorageClientDep,
) -> None:
    logger.info("Deleting object", extra={"bucket": bucket_name, "key": object_name})

    await storage.delete_object(bucket_name, object_name)
