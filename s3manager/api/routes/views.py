"""
Server-rendered pages.

- /buckets: every bucket the credentials can list, plus shared buckets
- /buckets/{bucket}/{path}: one folder level of a bucket (or every key when
  LIST_RECURSIVE is set)

Storage failures propagate to the StorageError handler, which answers with a
plain-text error page.
"""

import logging

from fastapi import APIRouter, status
from fastapi.responses import HTMLResponse, RedirectResponse

from ...core.models import BucketListing
from ...core.shared_buckets import load_shared_buckets
from ...web.templates import render_bucket_page, render_buckets_page
from ..dependencies import SettingsDep, StorageClientDep

logger = logging.getLogger(__name__)

router = APIRouter(include_in_schema=False)


@router.get("/")
async def root() -> RedirectResponse:
    """Root endpoint - redirect to the bucket list."""
    return RedirectResponse("/buckets", status_code=status.HTTP_308_PERMANENT_REDIRECT)


@router.get("/buckets", response_class=HTMLResponse)
async def buckets_view(
    storage: StorageClientDep,
    settings: SettingsDep,
) -> HTMLResponse:
    """Render all buckets on an HTML page."""
    buckets = await storage.list_buckets()

    if settings.shared_buckets_path:
        buckets.extend(await load_shared_buckets(storage, settings.shared_buckets_path))

    logger.debug("Rendering bucket list", extra={"count": len(buckets)})

    return HTMLResponse(
        render_buckets_page(buckets, settings.allow_delete, settings.app_title)
    )


@router.get("/buckets/{bucket_name}", response_class=HTMLResponse)
@router.get("/buckets/{bucket_name}/{path:path}", response_class=HTMLResponse)
async def bucket_view(
    bucket_name: str,
    storage: StorageClientDep,
    settings: SettingsDep,
    path: str = "",
) -> HTMLResponse:
    """
    Render the objects under one prefix of a bucket.

    The part of the URL after the bucket name is used verbatim as the
    listing prefix, so folder links end in "/".
    """
    objects = await storage.list_objects(
        bucket_name,
        prefix=path,
        recursive=settings.list_recursive,
    )

    listing = BucketListing(bucket_name=bucket_name, prefix=path, objects=objects)

    logger.debug(
        "Rendering bucket view",
        extra={"bucket": bucket_name, "prefix": path, "count": len(objects)}
    )

    return HTMLResponse(
        render_bucket_page(listing, settings.allow_delete, settings.app_title)
    )
