"""
Object storage client for the browser.

Wraps any S3-compatible endpoint (AWS, MinIO, Ceph, R2, ...) behind a small
protocol so route handlers never touch boto3 directly. Every operation is a
single delegated SDK call; errors come back as StorageError subclasses with
the failing operation in the message.

Mock mode stores buckets and objects in memory, enabling API testing without
provisioning actual object storage.
"""

import asyncio
import io
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import BinaryIO, Iterator, Optional, Protocol, Union

import boto3
import botocore.session
from botocore import UNSIGNED
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionError as BotoConnectionError,
    HTTPClientError,
    NoCredentialsError,
    ParamValidationError,
)

from ...core.errors import (
    BucketNotFoundError,
    InvalidRequestError,
    ObjectNotFoundError,
    StorageConflictError,
    StorageError,
    StoragePermissionError,
    StorageUnavailableError,
    error_for_code,
)
from ...core.models import (
    Bucket,
    ObjectContent,
    ObjectInfo,
    SignatureType,
    SSEConfig,
    SSEType,
)

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
DOWNLOAD_CHUNK_SIZE = 64 * 1024

# us-east-1 rejects an explicit LocationConstraint
DEFAULT_REGION = "us-east-1"

ObjectData = Union[bytes, BinaryIO]

_BOTO_SIGNATURE_VERSIONS = {
    SignatureType.V2: "s3",
    SignatureType.V4: "s3v4",
    SignatureType.V4_STREAMING: "s3v4",
}


@dataclass
class StorageConfig:
    """
    Configuration for an S3-compatible endpoint.

    `verify` is passed straight to boto3: True, False, or a CA bundle path.
    """
    endpoint_url: str
    access_key_id: str = ""
    secret_access_key: str = ""
    region: str = ""
    use_iam: bool = False
    iam_endpoint: str = ""
    signature_type: SignatureType = SignatureType.V4
    verify: Union[bool, str] = True
    timeout: int = 600


class StorageClient(Protocol):
    """
    Protocol for object storage operations.

    Using a protocol means tests can provide mocks and we can
    swap storage backends without changing dependent code.
    """

    async def list_buckets(self) -> list[Bucket]:
        """List buckets owned by the credentials."""
        ...

    async def create_bucket(self, name: str) -> Bucket:
        """Create a bucket and return it."""
        ...

    async def delete_bucket(self, name: str) -> None:
        """Delete an empty bucket."""
        ...

    async def list_objects(
        self,
        bucket: str,
        prefix: str = "",
        recursive: bool = False,
    ) -> list[ObjectInfo]:
        """List objects under prefix. Non-recursive listings fold sub-folders."""
        ...

    async def put_object(
        self,
        bucket: str,
        key: str,
        data: ObjectData,
        content_type: str = DEFAULT_CONTENT_TYPE,
        sse: Optional[SSEConfig] = None,
    ) -> ObjectInfo:
        """Upload an object."""
        ...

    async def get_object(
        self,
        bucket: str,
        key: str,
        sse: Optional[SSEConfig] = None,
    ) -> ObjectContent:
        """Open an object for streaming."""
        ...

    async def read_object(self, bucket: str, key: str) -> bytes:
        """Download a whole (small) object into memory."""
        ...

    async def presigned_url(
        self,
        bucket: str,
        key: str,
        expiry_seconds: int = 3600,
    ) -> str:
        """Generate temporary download URL."""
        ...

    async def delete_object(self, bucket: str, key: str) -> None:
        """Delete a single object."""
        ...


def _data_size(data: ObjectData) -> int:
    if isinstance(data, (bytes, bytearray)):
        return len(data)
    position = data.tell()
    data.seek(0, io.SEEK_END)
    size = data.tell() - position
    data.seek(position)
    return size


def _sse_params(sse: Optional[SSEConfig], for_read: bool = False) -> dict:
    """
    Translate an SSE descriptor into put/get request parameters.

    Provider-managed and KMS encryption only matter on write. A customer key
    is also needed to read objects that were written with it.
    """
    if sse is None or not sse.enabled:
        return {}
    if sse.type is SSEType.SSE_C:
        return {
            "SSECustomerAlgorithm": "AES256",
            "SSECustomerKey": sse.key,
        }
    if for_read:
        return {}
    if sse.type is SSEType.KMS:
        return {
            "ServerSideEncryption": "aws:kms",
            "SSEKMSKeyId": sse.key,
        }
    return {"ServerSideEncryption": "AES256"}


def _iter_body(body) -> Iterator[bytes]:
    """Yield a StreamingBody in chunks and close it however iteration ends."""
    try:
        yield from body.iter_chunks(chunk_size=DOWNLOAD_CHUNK_SIZE)
    finally:
        body.close()


class S3StorageClient:
    """
    S3-compatible object storage client.

    Uses boto3 for every call. boto3 is synchronous, so each call runs in a
    worker thread via asyncio.to_thread to keep the event loop free. A single
    boto3 client is shared by all requests; boto3 clients are thread-safe.
    """

    def __init__(self, config: StorageConfig) -> None:
        self._config = config

        if config.signature_type is SignatureType.ANONYMOUS:
            signature_version = UNSIGNED
        else:
            signature_version = _BOTO_SIGNATURE_VERSIONS[config.signature_type]

        # Path-style addressing works with MinIO and other non-AWS endpoints
        boto_config = Config(
            signature_version=signature_version,
            s3={"addressing_style": "path"},
            connect_timeout=config.timeout,
            read_timeout=config.timeout,
        )

        botocore_session = botocore.session.Session()
        if config.use_iam and config.iam_endpoint:
            botocore_session.set_config_variable(
                "ec2_metadata_service_endpoint", config.iam_endpoint
            )
        session = boto3.session.Session(botocore_session=botocore_session)

        client_kwargs = {
            "endpoint_url": config.endpoint_url,
            "verify": config.verify,
            "config": boto_config,
        }
        if config.region:
            client_kwargs["region_name"] = config.region
        if not config.use_iam:
            client_kwargs["aws_access_key_id"] = config.access_key_id
            client_kwargs["aws_secret_access_key"] = config.secret_access_key

        self._s3_client = session.client("s3", **client_kwargs)

        logger.info(
            "Initialized S3 storage client",
            extra={
                "endpoint": config.endpoint_url,
                "region": config.region or None,
                "signature_type": config.signature_type.value,
                "use_iam": config.use_iam,
            }
        )

    def _translate(self, error: Exception, context: str) -> StorageError:
        """Map a botocore failure to our error hierarchy."""
        if isinstance(error, ClientError):
            details = error.response.get("Error", {})
            code = details.get("Code")
            message = details.get("Message") or code or str(error)
            return error_for_code(code)(f"{context}: {message}", code=code)
        if isinstance(error, (BotoConnectionError, HTTPClientError)):
            return StorageUnavailableError(f"{context}: {error}")
        if isinstance(error, ParamValidationError):
            return InvalidRequestError(f"{context}: {error}")
        if isinstance(error, NoCredentialsError):
            return StoragePermissionError(f"{context}: {error}")
        return StorageError(f"{context}: {error}")

    async def _call(self, context: str, func, *args, **kwargs):
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except (ClientError, BotoCoreError) as e:
            error = self._translate(e, context)
            logger.error(
                "Storage operation failed",
                extra={"operation": context, "code": error.code, "error": str(e)}
            )
            raise error from e

    async def list_buckets(self) -> list[Bucket]:
        response = await self._call("error listing buckets", self._s3_client.list_buckets)
        return [
            Bucket(name=b["Name"], creation_date=b.get("CreationDate"))
            for b in response.get("Buckets", [])
        ]

    async def create_bucket(self, name: str) -> Bucket:
        params = {"Bucket": name}
        if self._config.region and self._config.region != DEFAULT_REGION:
            params["CreateBucketConfiguration"] = {
                "LocationConstraint": self._config.region,
            }

        await self._call("error making bucket", self._s3_client.create_bucket, **params)

        logger.info("Created bucket", extra={"bucket": name})
        return Bucket(name=name)

    async def delete_bucket(self, name: str) -> None:
        await self._call(
            "error removing bucket",
            self._s3_client.delete_bucket,
            Bucket=name,
        )
        logger.info("Deleted bucket", extra={"bucket": name})

    def _list_objects_sync(
        self,
        bucket: str,
        prefix: str,
        recursive: bool,
    ) -> list[ObjectInfo]:
        paginator = self._s3_client.get_paginator("list_objects_v2")
        params = {"Bucket": bucket, "Prefix": prefix}
        if not recursive:
            params["Delimiter"] = "/"

        folders: list[ObjectInfo] = []
        files: list[ObjectInfo] = []
        for page in paginator.paginate(**params):
            for common in page.get("CommonPrefixes", []):
                folders.append(ObjectInfo(key=common["Prefix"], prefix=prefix))
            for obj in page.get("Contents", []):
                # Skip the folder placeholder object itself
                if obj["Key"] == prefix and prefix.endswith("/"):
                    continue
                files.append(ObjectInfo(
                    key=obj["Key"],
                    size=obj.get("Size", 0),
                    last_modified=obj.get("LastModified"),
                    storage_class=obj.get("StorageClass"),
                    owner=obj.get("Owner", {}).get("DisplayName"),
                    prefix=prefix,
                ))
        return folders + files

    async def list_objects(
        self,
        bucket: str,
        prefix: str = "",
        recursive: bool = False,
    ) -> list[ObjectInfo]:
        objects = await self._call(
            "error listing objects",
            self._list_objects_sync,
            bucket,
            prefix,
            recursive,
        )
        logger.debug(
            "Listed objects",
            extra={"bucket": bucket, "prefix": prefix, "count": len(objects)}
        )
        return objects

    async def put_object(
        self,
        bucket: str,
        key: str,
        data: ObjectData,
        content_type: str = DEFAULT_CONTENT_TYPE,
        sse: Optional[SSEConfig] = None,
    ) -> ObjectInfo:
        size = _data_size(data)
        await self._call(
            "error putting object",
            self._s3_client.put_object,
            Bucket=bucket,
            Key=key,
            Body=data,
            ContentType=content_type or DEFAULT_CONTENT_TYPE,
            **_sse_params(sse),
        )

        logger.info(
            "Uploaded object",
            extra={
                "bucket": bucket,
                "key": key,
                "size_bytes": size,
                "sse": sse.type.value if sse else "",
            }
        )
        return ObjectInfo(key=key, size=size, last_modified=datetime.now(timezone.utc))

    def _get_object_sync(
        self,
        bucket: str,
        key: str,
        sse: Optional[SSEConfig],
    ) -> dict:
        """
        GET an object, sending the customer key only when S3 asks for it.

        S3 rejects customer-key headers on objects that were not written with
        one, so the plain request goes first and the key is added only after
        an InvalidRequest answer.
        """
        try:
            return self._s3_client.get_object(Bucket=bucket, Key=key)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if sse is None or not sse.is_customer_key or code != "InvalidRequest":
                raise

        logger.debug("Retrying GET with customer key", extra={"bucket": bucket, "key": key})
        return self._s3_client.get_object(
            Bucket=bucket,
            Key=key,
            **_sse_params(sse, for_read=True),
        )

    async def get_object(
        self,
        bucket: str,
        key: str,
        sse: Optional[SSEConfig] = None,
    ) -> ObjectContent:
        response = await self._call(
            "error getting object",
            self._get_object_sync,
            bucket,
            key,
            sse,
        )
        info = ObjectInfo(
            key=key,
            size=response.get("ContentLength", 0),
            last_modified=response.get("LastModified"),
            storage_class=response.get("StorageClass"),
        )
        return ObjectContent(
            info=info,
            body=_iter_body(response["Body"]),
            content_type=response.get("ContentType") or DEFAULT_CONTENT_TYPE,
            content_length=response.get("ContentLength"),
        )

    async def read_object(self, bucket: str, key: str) -> bytes:
        def _read() -> bytes:
            response = self._s3_client.get_object(Bucket=bucket, Key=key)
            return response["Body"].read()

        return await self._call("error getting object", _read)

    async def presigned_url(
        self,
        bucket: str,
        key: str,
        expiry_seconds: int = 3600,
    ) -> str:
        """
        Generate a temporary download URL.

        Signing happens locally; nothing checks that the object exists.
        """
        return await self._call(
            "error generating presigned URL",
            self._s3_client.generate_presigned_url,
            "get_object",
            Params={"Bucket": bucket, "Key": key},
            ExpiresIn=expiry_seconds,
        )

    async def delete_object(self, bucket: str, key: str) -> None:
        await self._call(
            "error removing object",
            self._s3_client.delete_object,
            Bucket=bucket,
            Key=key,
        )
        logger.info("Deleted object", extra={"bucket": bucket, "key": key})


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

@dataclass
class _StoredObject:
    data: bytes
    content_type: str
    last_modified: datetime
    sse: Optional[SSEConfig] = None


class MockStorageClient:
    """
    In-memory storage for local development.

    This mock enables testing the full API flow without provisioning
    real object storage. Buckets are dictionaries of key -> bytes and
    "URLs" are mock URIs. Error behaviour follows S3 closely enough for
    the routes to exercise their error paths.

    Not suitable for production, but perfect for development and testing.
    """

    def __init__(self) -> None:
        self._buckets: dict[str, datetime] = {}
        self._objects: dict[str, dict[str, _StoredObject]] = {}
        logger.info("Initialized mock storage client (in-memory)")

    def _bucket(self, name: str) -> dict[str, _StoredObject]:
        if name not in self._objects:
            raise BucketNotFoundError(
                f"The specified bucket does not exist: {name}",
                code="NoSuchBucket",
            )
        return self._objects[name]

    def _object(self, bucket: str, key: str) -> _StoredObject:
        objects = self._bucket(bucket)
        if key not in objects:
            raise ObjectNotFoundError(
                f"The specified key does not exist: {key}",
                code="NoSuchKey",
            )
        return objects[key]

    async def list_buckets(self) -> list[Bucket]:
        return [
            Bucket(name=name, creation_date=created)
            for name, created in sorted(self._buckets.items())
        ]

    async def create_bucket(self, name: str) -> Bucket:
        if name in self._buckets:
            raise StorageConflictError(
                f"error making bucket: bucket already owned by you: {name}",
                code="BucketAlreadyOwnedByYou",
            )
        created = datetime.now(timezone.utc)
        self._buckets[name] = created
        self._objects[name] = {}
        return Bucket(name=name, creation_date=created)

    async def delete_bucket(self, name: str) -> None:
        if self._bucket(name):
            raise StorageConflictError(
                f"error removing bucket: bucket is not empty: {name}",
                code="BucketNotEmpty",
            )
        del self._buckets[name]
        del self._objects[name]

    async def list_objects(
        self,
        bucket: str,
        prefix: str = "",
        recursive: bool = False,
    ) -> list[ObjectInfo]:
        objects = self._bucket(bucket)

        folders: dict[str, ObjectInfo] = {}
        files: list[ObjectInfo] = []
        for key in sorted(objects):
            if not key.startswith(prefix):
                continue
            if key == prefix and prefix.endswith("/"):
                continue
            rest = key[len(prefix):]
            if not recursive and "/" in rest:
                folder = prefix + rest.split("/", 1)[0] + "/"
                folders.setdefault(folder, ObjectInfo(key=folder, prefix=prefix))
                continue
            stored = objects[key]
            files.append(ObjectInfo(
                key=key,
                size=len(stored.data),
                last_modified=stored.last_modified,
                storage_class="STANDARD",
                prefix=prefix,
            ))
        return list(folders.values()) + files

    async def put_object(
        self,
        bucket: str,
        key: str,
        data: ObjectData,
        content_type: str = DEFAULT_CONTENT_TYPE,
        sse: Optional[SSEConfig] = None,
    ) -> ObjectInfo:
        objects = self._bucket(bucket)
        payload = bytes(data) if isinstance(data, (bytes, bytearray)) else data.read()
        stored = _StoredObject(
            data=payload,
            content_type=content_type or DEFAULT_CONTENT_TYPE,
            last_modified=datetime.now(timezone.utc),
            sse=sse if sse and sse.enabled else None,
        )
        objects[key] = stored

        logger.debug(
            "Stored object in mock storage",
            extra={"bucket": bucket, "key": key, "size_bytes": len(payload)}
        )
        return ObjectInfo(key=key, size=len(payload), last_modified=stored.last_modified)

    async def get_object(
        self,
        bucket: str,
        key: str,
        sse: Optional[SSEConfig] = None,
    ) -> ObjectContent:
        """
        Read an object the way S3StorageClient does.

        A configured customer key is ignored for objects written without one.
        Objects written with a customer key need the same key back.
        """
        stored = self._object(bucket, key)
        if stored.sse is not None and stored.sse.is_customer_key:
            if sse is None or not sse.is_customer_key:
                raise InvalidRequestError(
                    f"error getting object: object was stored with a customer key: {key}",
                    code="InvalidRequest",
                )
            if sse.key != stored.sse.key:
                raise StoragePermissionError(
                    f"error getting object: customer key does not match: {key}",
                    code="AccessDenied",
                )
        info = ObjectInfo(
            key=key,
            size=len(stored.data),
            last_modified=stored.last_modified,
            storage_class="STANDARD",
        )
        return ObjectContent(
            info=info,
            body=iter([stored.data]),
            content_type=stored.content_type,
            content_length=len(stored.data),
        )

    async def read_object(self, bucket: str, key: str) -> bytes:
        return self._object(bucket, key).data

    async def presigned_url(
        self,
        bucket: str,
        key: str,
        expiry_seconds: int = 3600,
    ) -> str:
        """
        Return a mock URL for the object.

        Unlike real signing this checks that the object exists, which keeps
        typos visible during local development.
        """
        self._object(bucket, key)
        return f"mock://storage/{bucket}/{key}?expires={expiry_seconds}"

    async def delete_object(self, bucket: str, key: str) -> None:
        # S3 deletes are idempotent
        self._bucket(bucket).pop(key, None)


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> StorageClient:
    """
    Create storage client based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return mock client for testing

    Returns:
        StorageClient implementation (S3 or Mock)
    """
    if mock_mode:
        return MockStorageClient()

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return S3StorageClient(config)
