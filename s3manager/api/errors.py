"""
Storage error to HTTP response mapping.

Handlers let StorageError propagate; the exception handler registered here
picks a status from the error type and answers in the format the caller
expects: JSON for /api/ routes, plain text for the HTML pages.
"""

import logging
from http import HTTPStatus

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from ..core.errors import (
    BucketNotFoundError,
    InvalidRequestError,
    ObjectNotFoundError,
    StorageConflictError,
    StorageError,
    StoragePermissionError,
    StorageUnavailableError,
)

logger = logging.getLogger(__name__)

API_PREFIX = "/api/"

STATUS_BY_ERROR: dict[type[StorageError], int] = {
    BucketNotFoundError: status.HTTP_404_NOT_FOUND,
    ObjectNotFoundError: status.HTTP_404_NOT_FOUND,
    StorageConflictError: status.HTTP_409_CONFLICT,
    StoragePermissionError: status.HTTP_403_FORBIDDEN,
    InvalidRequestError: status.HTTP_400_BAD_REQUEST,
    StorageUnavailableError: status.HTTP_502_BAD_GATEWAY,
}


def status_for_error(exc: StorageError) -> int:
    """Best-effort status for a storage failure; unknown errors are 500."""
    for cls in type(exc).__mro__:
        if cls in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def storage_error_handler(request: Request, exc: StorageError) -> Response:
    status_code = status_for_error(exc)

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "Storage request failed",
        extra={
            "path": request.url.path,
            "method": request.method,
            "status": status_code,
            "code": exc.code,
            "error": str(exc),
        }
    )

    if request.url.path.startswith(API_PREFIX):
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    phrase = HTTPStatus(status_code).phrase
    return PlainTextResponse(f"{phrase}: {exc}", status_code=status_code)


async def unhandled_error_handler(request: Request, exc: Exception) -> Response:
    """
    Catch-all exception handler.

    This prevents stack traces from leaking to clients.
    We log the full error server-side but return a generic message.
    """
    logger.error(
        "Unhandled exception",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error": str(exc),
        },
        exc_info=exc,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StorageError, storage_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
