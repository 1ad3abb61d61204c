"""
Unit tests for the storage clients.

The boto3-backed client runs against moto's in-process S3, so these tests
exercise real request building, pagination and error translation without
network access. The in-memory mock is held to the same behaviour where the
routes depend on it.
"""

import io

import boto3
import pytest
from botocore import UNSIGNED
from botocore.exceptions import ClientError, EndpointConnectionError, ParamValidationError
from botocore.response import StreamingBody
from moto import mock_aws

from s3manager.core.errors import (
    BucketNotFoundError,
    InvalidRequestError,
    ObjectNotFoundError,
    StorageConflictError,
    StorageError,
    StoragePermissionError,
    StorageUnavailableError,
)
from s3manager.core.models import SignatureType, SSEConfig, SSEType
from s3manager.infrastructure.storage.client import (
    MockStorageClient,
    S3StorageClient,
    StorageConfig,
    _iter_body,
    _sse_params,
    create_storage_client,
)

REGION = "us-east-1"


@pytest.fixture
def aws_credentials(monkeypatch):
    """Keep boto3 away from any real credentials on the machine."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", REGION)


def make_config(**overrides) -> StorageConfig:
    values = {
        "endpoint_url": "https://s3.amazonaws.com",
        "access_key_id": "testing",
        "secret_access_key": "testing",
        "region": REGION,
    }
    values.update(overrides)
    return StorageConfig(**values)


@pytest.fixture
def s3(aws_credentials):
    with mock_aws():
        yield S3StorageClient(make_config())


@pytest.fixture
def raw_s3(s3):
    """Plain boto3 client on the same moto backend, for assertions."""
    return boto3.client("s3", region_name=REGION)


# ---------------------------------------------------------------------------
# Client Construction
# ---------------------------------------------------------------------------

class TestClientConstruction:
    """Tests for building boto3 clients from configuration."""

    def test_v4_signing(self, aws_credentials):
        client = S3StorageClient(make_config(signature_type=SignatureType.V4))
        assert client._s3_client.meta.config.signature_version == "s3v4"

    def test_v2_signing(self, aws_credentials):
        client = S3StorageClient(make_config(signature_type=SignatureType.V2))
        assert client._s3_client.meta.config.signature_version == "s3"

    def test_anonymous_requests_are_unsigned(self, aws_credentials):
        client = S3StorageClient(make_config(signature_type=SignatureType.ANONYMOUS))
        assert client._s3_client.meta.config.signature_version is UNSIGNED

    def test_path_style_addressing(self, aws_credentials):
        client = S3StorageClient(make_config())
        assert client._s3_client.meta.config.s3["addressing_style"] == "path"

    def test_custom_endpoint(self, aws_credentials):
        client = S3StorageClient(make_config(endpoint_url="http://minio.local:9000"))
        assert client._s3_client.meta.endpoint_url == "http://minio.local:9000"

    def test_iam_uses_metadata_endpoint_and_no_static_keys(self, aws_credentials, monkeypatch):
        calls = []
        original_client = boto3.session.Session.client

        def recording_client(session, *args, **kwargs):
            calls.append((session, kwargs))
            return original_client(session, *args, **kwargs)

        monkeypatch.setattr(boto3.session.Session, "client", recording_client)

        S3StorageClient(make_config(
            use_iam=True,
            iam_endpoint="http://169.254.169.254",
            access_key_id="static-key",
            secret_access_key="static-secret",
        ))

        session, kwargs = calls[0]
        assert "aws_access_key_id" not in kwargs
        assert "aws_secret_access_key" not in kwargs
        assert session._session.get_config_variable(
            "ec2_metadata_service_endpoint"
        ) == "http://169.254.169.254"

    def test_factory_requires_config_outside_mock_mode(self):
        with pytest.raises(ValueError, match="config is required"):
            create_storage_client()

    def test_factory_mock_mode(self):
        assert isinstance(create_storage_client(mock_mode=True), MockStorageClient)


# ---------------------------------------------------------------------------
# S3 Client Operations (moto)
# ---------------------------------------------------------------------------

class TestS3StorageClient:
    """Tests for the boto3-backed client."""

    @pytest.mark.asyncio
    async def test_create_and_list_buckets(self, s3):
        await s3.create_bucket("photos")
        await s3.create_bucket("backups")

        buckets = await s3.list_buckets()

        assert sorted(b.name for b in buckets) == ["backups", "photos"]
        assert all(b.creation_date is not None for b in buckets)

    @pytest.mark.asyncio
    async def test_non_recursive_listing_folds_folders(self, s3):
        await s3.create_bucket("media")
        await s3.put_object("media", "readme.txt", b"hi")
        await s3.put_object("media", "photos/cat.jpg", b"meow")
        await s3.put_object("media", "photos/2024/dog.jpg", b"woof")

        root = await s3.list_objects("media")
        photos = await s3.list_objects("media", prefix="photos/")

        assert [o.key for o in root] == ["photos/", "readme.txt"]
        assert root[0].is_folder
        assert [o.key for o in photos] == ["photos/2024/", "photos/cat.jpg"]
        assert photos[1].display_name == "cat.jpg"
        assert photos[1].size == 4

    @pytest.mark.asyncio
    async def test_recursive_listing_returns_every_key(self, s3):
        await s3.create_bucket("media")
        await s3.put_object("media", "a/b/c.txt", b"1")
        await s3.put_object("media", "a/d.txt", b"2")

        objects = await s3.list_objects("media", recursive=True)

        assert sorted(o.key for o in objects) == ["a/b/c.txt", "a/d.txt"]

    @pytest.mark.asyncio
    async def test_listing_skips_folder_placeholder(self, s3):
        await s3.create_bucket("media")
        await s3.put_object("media", "empty/", b"")

        assert await s3.list_objects("media", prefix="empty/") == []

    @pytest.mark.asyncio
    async def test_get_object_streams_body(self, s3):
        await s3.create_bucket("docs")
        await s3.put_object("docs", "notes.txt", b"hello world", content_type="text/plain")

        content = await s3.get_object("docs", "notes.txt")

        assert b"".join(content.body) == b"hello world"
        assert content.content_type == "text/plain"
        assert content.content_length == 11
        assert content.info.filename == "notes.txt"

    @pytest.mark.asyncio
    async def test_put_accepts_file_objects(self, s3, tmp_path):
        await s3.create_bucket("docs")
        source = tmp_path / "upload.bin"
        source.write_bytes(b"x" * 1000)

        with source.open("rb") as f:
            info = await s3.put_object("docs", "upload.bin", f)

        assert info.size == 1000
        assert await s3.read_object("docs", "upload.bin") == b"x" * 1000

    @pytest.mark.asyncio
    async def test_put_applies_provider_managed_encryption(self, s3, raw_s3):
        await s3.create_bucket("secure")

        await s3.put_object("secure", "secret.txt", b"s", sse=SSEConfig(type=SSEType.SSE))

        head = raw_s3.head_object(Bucket="secure", Key="secret.txt")
        assert head["ServerSideEncryption"] == "AES256"

    @pytest.mark.asyncio
    async def test_presigned_url_is_signed(self, s3):
        await s3.create_bucket("share")

        url = await s3.presigned_url("share", "report.pdf", expiry_seconds=900)

        assert "/share/report.pdf" in url
        assert "X-Amz-Expires=900" in url
        assert "X-Amz-Signature=" in url

    @pytest.mark.asyncio
    async def test_delete_object_and_bucket(self, s3):
        await s3.create_bucket("tmp")
        await s3.put_object("tmp", "file.txt", b"x")

        await s3.delete_object("tmp", "file.txt")
        await s3.delete_bucket("tmp")

        assert await s3.list_buckets() == []

    @pytest.mark.asyncio
    async def test_missing_bucket_maps_to_not_found(self, s3):
        with pytest.raises(BucketNotFoundError) as excinfo:
            await s3.list_objects("nope")

        assert excinfo.value.code == "NoSuchBucket"
        assert str(excinfo.value).startswith("error listing objects")

    @pytest.mark.asyncio
    async def test_missing_key_maps_to_not_found(self, s3):
        await s3.create_bucket("docs")

        with pytest.raises(ObjectNotFoundError):
            await s3.get_object("docs", "missing.txt")

    @pytest.mark.asyncio
    async def test_deleting_non_empty_bucket_conflicts(self, s3):
        await s3.create_bucket("full")
        await s3.put_object("full", "file.txt", b"x")

        with pytest.raises(StorageConflictError):
            await s3.delete_bucket("full")

    @pytest.mark.asyncio
    async def test_malformed_bucket_name_is_invalid_request(self, s3):
        with pytest.raises(InvalidRequestError) as excinfo:
            await s3.list_objects("bad bucket")

        assert str(excinfo.value).startswith("error listing objects")


class TestRegionalBuckets:
    """Buckets outside us-east-1 need an explicit location constraint."""

    @pytest.mark.asyncio
    async def test_bucket_is_created_in_configured_region(self, aws_credentials):
        with mock_aws():
            s3 = S3StorageClient(make_config(region="eu-central-1"))
            raw_s3 = boto3.client("s3", region_name="eu-central-1")

            await s3.create_bucket("frankfurt")

            location = raw_s3.get_bucket_location(Bucket="frankfurt")
            assert location["LocationConstraint"] == "eu-central-1"


class TestCustomerKeyReads:
    """GETs add the customer key only for objects that were written with one."""

    CUSTOMER_KEY = SSEConfig(type=SSEType.SSE_C, key="k" * 32)

    @pytest.fixture
    def client(self, aws_credentials):
        return S3StorageClient(make_config())

    def _install_get_object(self, client, monkeypatch, encrypted: bool) -> list[dict]:
        calls = []

        def fake_get_object(**kwargs):
            calls.append(kwargs)
            if encrypted and "SSECustomerKey" not in kwargs:
                raise ClientError(
                    {"Error": {"Code": "InvalidRequest", "Message": "customer key required"}},
                    "GetObject",
                )
            return {
                "Body": StreamingBody(io.BytesIO(b"data"), 4),
                "ContentLength": 4,
                "ContentType": "text/plain",
            }

        monkeypatch.setattr(client._s3_client, "get_object", fake_get_object)
        return calls

    @pytest.mark.asyncio
    async def test_plain_object_is_read_without_key(self, client, monkeypatch):
        calls = self._install_get_object(client, monkeypatch, encrypted=False)

        content = await client.get_object("docs", "plain.txt", sse=self.CUSTOMER_KEY)

        assert b"".join(content.body) == b"data"
        assert calls == [{"Bucket": "docs", "Key": "plain.txt"}]

    @pytest.mark.asyncio
    async def test_encrypted_object_is_retried_with_key(self, client, monkeypatch):
        calls = self._install_get_object(client, monkeypatch, encrypted=True)

        content = await client.get_object("docs", "secret.txt", sse=self.CUSTOMER_KEY)

        assert b"".join(content.body) == b"data"
        assert len(calls) == 2
        assert calls[1]["SSECustomerAlgorithm"] == "AES256"
        assert calls[1]["SSECustomerKey"] == "k" * 32

    @pytest.mark.asyncio
    async def test_encrypted_object_without_configured_key(self, client, monkeypatch):
        calls = self._install_get_object(client, monkeypatch, encrypted=True)

        with pytest.raises(InvalidRequestError):
            await client.get_object("docs", "secret.txt")

        assert len(calls) == 1


class TestBodyStreaming:
    """Tests for download body iteration."""

    def test_body_is_closed_when_iteration_stops_early(self):
        raw = io.BytesIO(b"x" * 200_000)
        chunks = _iter_body(StreamingBody(raw, 200_000))

        assert len(next(chunks)) > 0
        chunks.close()

        assert raw.closed

    def test_body_is_closed_after_full_read(self):
        raw = io.BytesIO(b"hello")

        assert b"".join(_iter_body(StreamingBody(raw, 5))) == b"hello"
        assert raw.closed


class TestErrorTranslation:
    """Tests for mapping botocore failures onto StorageError subclasses."""

    @pytest.fixture
    def client(self, aws_credentials):
        return S3StorageClient(make_config())

    def _client_error(self, code: str) -> ClientError:
        return ClientError({"Error": {"Code": code, "Message": f"{code} happened"}}, "Op")

    @pytest.mark.parametrize("code,expected", [
        ("NoSuchBucket", BucketNotFoundError),
        ("NoSuchKey", ObjectNotFoundError),
        ("BucketAlreadyOwnedByYou", StorageConflictError),
        ("BucketNotEmpty", StorageConflictError),
        ("AccessDenied", StoragePermissionError),
        ("InternalError", StorageError),
    ])
    def test_client_error_codes(self, client, code, expected):
        error = client._translate(self._client_error(code), "error doing thing")

        assert type(error) is expected
        assert error.code == code
        assert str(error) == f"error doing thing: {code} happened"

    def test_rejected_parameters_are_invalid_request(self, client):
        error = client._translate(
            ParamValidationError(report='Invalid bucket name "bad bucket"'),
            "error listing objects",
        )

        assert type(error) is InvalidRequestError
        assert "Invalid bucket name" in str(error)

    def test_connection_failure_is_unavailable(self, client):
        error = client._translate(
            EndpointConnectionError(endpoint_url="https://down.example"),
            "error listing buckets",
        )
        assert isinstance(error, StorageUnavailableError)


class TestSSEParams:
    """Tests for request parameters derived from the SSE descriptor."""

    def test_no_encryption(self):
        assert _sse_params(None) == {}
        assert _sse_params(SSEConfig()) == {}

    def test_kms(self):
        params = _sse_params(SSEConfig(type=SSEType.KMS, key="key-id"))
        assert params == {"ServerSideEncryption": "aws:kms", "SSEKMSKeyId": "key-id"}

    def test_kms_not_sent_on_read(self):
        assert _sse_params(SSEConfig(type=SSEType.KMS, key="key-id"), for_read=True) == {}

    def test_customer_key_sent_on_read_and_write(self):
        sse = SSEConfig(type=SSEType.SSE_C, key="k" * 32)
        expected = {"SSECustomerAlgorithm": "AES256", "SSECustomerKey": "k" * 32}

        assert _sse_params(sse) == expected
        assert _sse_params(sse, for_read=True) == expected


# ---------------------------------------------------------------------------
# Mock Client
# ---------------------------------------------------------------------------

class TestMockStorageClient:
    """Tests for the in-memory client used in mock mode."""

    @pytest.mark.asyncio
    async def test_duplicate_bucket_conflicts(self):
        storage = MockStorageClient()
        await storage.create_bucket("one")

        with pytest.raises(StorageConflictError):
            await storage.create_bucket("one")

    @pytest.mark.asyncio
    async def test_folder_listing_matches_s3(self):
        storage = MockStorageClient()
        await storage.create_bucket("media")
        await storage.put_object("media", "readme.txt", b"hi")
        await storage.put_object("media", "photos/cat.jpg", b"meow")
        await storage.put_object("media", "photos/2024/dog.jpg", b"woof")

        root = await storage.list_objects("media")
        photos = await storage.list_objects("media", prefix="photos/")

        assert [o.key for o in root] == ["photos/", "readme.txt"]
        assert [o.key for o in photos] == ["photos/2024/", "photos/cat.jpg"]

    @pytest.mark.asyncio
    async def test_customer_encrypted_object_needs_key(self):
        storage = MockStorageClient()
        sse = SSEConfig(type=SSEType.SSE_C, key="k" * 32)
        await storage.create_bucket("secure")
        await storage.put_object("secure", "secret.txt", b"s", sse=sse)

        with pytest.raises(InvalidRequestError):
            await storage.get_object("secure", "secret.txt")

        with pytest.raises(StoragePermissionError):
            await storage.get_object("secure", "secret.txt", sse=SSEConfig(type=SSEType.SSE_C, key="x" * 32))

        content = await storage.get_object("secure", "secret.txt", sse=sse)
        assert b"".join(content.body) == b"s"

    @pytest.mark.asyncio
    async def test_customer_key_is_ignored_for_plain_objects(self):
        storage = MockStorageClient()
        await storage.create_bucket("docs")
        await storage.put_object("docs", "plain.txt", b"p")

        content = await storage.get_object("docs", "plain.txt", sse=SSEConfig(type=SSEType.SSE_C, key="k" * 32))

        assert b"".join(content.body) == b"p"

    @pytest.mark.asyncio
    async def test_delete_missing_object_is_idempotent(self):
        storage = MockStorageClient()
        await storage.create_bucket("tmp")

        await storage.delete_object("tmp", "never-existed.txt")

    @pytest.mark.asyncio
    async def test_presigned_url_requires_object(self):
        storage = MockStorageClient()
        await storage.create_bucket("share")

        with pytest.raises(ObjectNotFoundError):
            await storage.presigned_url("share", "missing.pdf")
