"""
Storage error hierarchy.

Infrastructure code translates SDK failures into these so the API layer can
pick an HTTP status without knowing anything about botocore.
"""


class ConfigurationError(Exception):
    """Raised at startup when settings cannot produce a working client."""
    pass


class StorageError(Exception):
    """Raised when storage operations fail."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class BucketNotFoundError(StorageError):
    pass


class ObjectNotFoundError(StorageError):
    pass


class StorageConflictError(StorageError):
    """Bucket already exists, or is not empty on delete."""
    pass


class StoragePermissionError(StorageError):
    pass


class InvalidRequestError(StorageError):
    pass


class StorageUnavailableError(StorageError):
    """The endpoint could not be reached."""
    pass


class SharedBucketsError(StorageError):
    """The shared buckets file is missing, malformed or unreachable."""
    pass


# Upstream error codes -> exception type. Anything unlisted stays StorageError.
ERROR_CODES: dict[str, type[StorageError]] = {
    "NoSuchBucket": BucketNotFoundError,
    "NoSuchKey": ObjectNotFoundError,
    "404": ObjectNotFoundError,
    "NotFound": ObjectNotFoundError,
    "BucketAlreadyExists": StorageConflictError,
    "BucketAlreadyOwnedByYou": StorageConflictError,
    "BucketNotEmpty": StorageConflictError,
    "AccessDenied": StoragePermissionError,
    "InvalidAccessKeyId": StoragePermissionError,
    "SignatureDoesNotMatch": StoragePermissionError,
    "InvalidBucketName": InvalidRequestError,
    "InvalidRequest": InvalidRequestError,
}


def error_for_code(code: str | None) -> type[StorageError]:
    if code is None:
        return StorageError
    return ERROR_CODES.get(code, StorageError)
