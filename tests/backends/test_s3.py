"""S3MultipartClient-specific tests.

Tests for the S3-compatible multipart store using moto for mocking AWS services.

NOTE: S3 tests use moto server mode for proper aiobotocore compatibility.
Tests needing the server are marked as integration tests and can be skipped
with `pytest -m "not integration"`.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

import pytest

from multipart_stream.exceptions import PartUploadError, StoreConnectionError, StoreError
from multipart_stream.retry import RetryConfig

if TYPE_CHECKING:
    from multipart_stream.backends.s3 import S3MultipartClient

pytest.importorskip("aioboto3")

MB = 1024 * 1024


@pytest.mark.unit
class TestS3ClientBasics:
    """Test S3MultipartClient construction and helpers."""

    def test_creation(self) -> None:
        """
        Test creating S3MultipartClient instance.

        Verifies:
        - Can create instance without config
        - Lazy client initialization
        """
        from multipart_stream.backends.s3 import S3MultipartClient

        client = S3MultipartClient()

        assert client.config.region is None
        assert client.config.max_pool_connections == 10
        assert client._client is None

    def test_custom_endpoint_configuration(self) -> None:
        """
        Test Cloudflare R2 / MinIO style configuration.

        Verifies:
        - Endpoint and credentials are stored
        """
        from multipart_stream.backends.s3 import S3Config, S3MultipartClient

        client = S3MultipartClient(
            config=S3Config(
                endpoint_url="https://account.r2.cloudflarestorage.com",
                access_key_id="key",
                secret_access_key="secret",
                max_pool_connections=32,
            )
        )

        assert client.config.endpoint_url == "https://account.r2.cloudflarestorage.com"
        assert client.config.max_pool_connections == 32

    @pytest.mark.parametrize(
        ("prefix", "key", "expected"),
        [
            ("", "file.txt", "file.txt"),
            ("uploads", "file.txt", "uploads/file.txt"),
            ("uploads/", "/file.txt", "uploads/file.txt"),
        ],
    )
    def test_prefix(self, prefix: str, key: str, expected: str) -> None:
        from multipart_stream.backends.s3 import S3Config, S3MultipartClient

        client = S3MultipartClient(config=S3Config(prefix=prefix))

        assert client._get_key(key) == expected

    async def test_aioboto3_import_error(self, monkeypatch) -> None:
        """
        Test error when aioboto3 is not installed.

        Verifies:
        - ConfigurationError raised with helpful message
        - Suggests installation command
        """
        from multipart_stream.backends.s3 import S3MultipartClient
        from multipart_stream.exceptions import ConfigurationError

        client = S3MultipartClient()

        # Mock import to fail
        import builtins

        real_import = builtins.__import__

        def mock_import(name, *args, **kwargs):
            if name == "aioboto3":
                raise ImportError("No module named 'aioboto3'")
            return real_import(name, *args, **kwargs)

        monkeypatch.setattr(builtins, "__import__", mock_import)

        with pytest.raises(ConfigurationError, match="pip install aioboto3"):
            await client.begin_multipart("test-bucket", "file.bin")


@pytest.mark.unit
class TestS3ErrorMapping:
    """Test translation of botocore errors."""

    def test_connection_errors(self) -> None:
        from botocore.exceptions import EndpointConnectionError

        from multipart_stream.backends.s3 import _wrap_error

        error = _wrap_error("Failed to upload part 1 for k", EndpointConnectionError(endpoint_url="http://s3"))

        assert isinstance(error, StoreConnectionError)
        assert str(error).startswith("Failed to upload part 1 for k: ")

    def test_other_errors(self) -> None:
        from botocore.exceptions import ClientError

        from multipart_stream.backends.s3 import _wrap_error

        client_error = ClientError({"Error": {"Code": "AccessDenied", "Message": "denied"}}, "UploadPart")
        error = _wrap_error("Failed", client_error)

        assert type(error) is StoreError

    async def test_upload_part_retries_connection_errors(self) -> None:
        """
        Test the retry policy on part uploads.

        Verifies:
        - Connection failures are retried
        - The ETag of the successful attempt is returned
        """
        from botocore.exceptions import EndpointConnectionError

        from multipart_stream.backends.s3 import S3Config, S3MultipartClient

        client = S3MultipartClient(config=S3Config(retry=RetryConfig(max_retries=2, base_delay=0.001, jitter=False)))
        fake = AsyncMock()
        fake.upload_part.side_effect = [EndpointConnectionError(endpoint_url="http://s3"), {"ETag": '"abc"'}]
        client._client = fake

        etag = await client.upload_part("b", "k", "upload-1", 3, b"data")

        assert etag == '"abc"'
        assert fake.upload_part.await_count == 2
        fake.upload_part.assert_awaited_with(Bucket="b", Key="k", UploadId="upload-1", PartNumber=3, Body=b"data")

    async def test_upload_part_without_retry(self) -> None:
        from botocore.exceptions import EndpointConnectionError

        from multipart_stream.backends.s3 import S3MultipartClient

        client = S3MultipartClient()
        fake = AsyncMock()
        fake.upload_part.side_effect = EndpointConnectionError(endpoint_url="http://s3")
        client._client = fake

        with pytest.raises(StoreConnectionError, match="Failed to upload part 1"):
            await client.upload_part("b", "k", "upload-1", 1, b"data")
        assert fake.upload_part.await_count == 1


@pytest.mark.integration
class TestS3Multipart:
    """Test multipart calls against moto."""

    async def test_full_cycle(self, s3_client: S3MultipartClient, mock_s3_bucket: dict) -> None:
        """
        Test begin, upload and complete.

        Verifies:
        - Each call returns what the next one needs
        - The completed object has the concatenated content
        """
        upload_id = await s3_client.begin_multipart("test-bucket", "large-file.bin")
        etag1 = await s3_client.upload_part("test-bucket", "large-file.bin", upload_id, 1, b"x" * (5 * MB))
        etag2 = await s3_client.upload_part("test-bucket", "large-file.bin", upload_id, 2, b"tail")

        await s3_client.complete_multipart("test-bucket", "large-file.bin", upload_id, [(1, etag1), (2, etag2)])

        body = mock_s3_bucket["client"].get_object(Bucket="test-bucket", Key="large-file.bin")["Body"].read()
        assert body == b"x" * (5 * MB) + b"tail"

    async def test_abort(self, s3_client: S3MultipartClient, mock_s3_bucket: dict) -> None:
        upload_id = await s3_client.begin_multipart("test-bucket", "aborted.bin")
        await s3_client.upload_part("test-bucket", "aborted.bin", upload_id, 1, b"data")

        await s3_client.abort_multipart("test-bucket", "aborted.bin", upload_id)

        uploads = mock_s3_bucket["client"].list_multipart_uploads(Bucket="test-bucket")
        assert uploads.get("Uploads", []) == []

    async def test_nonexistent_bucket(self, s3_client: S3MultipartClient) -> None:
        with pytest.raises(StoreError, match="Failed to start multipart upload for file.bin"):
            await s3_client.begin_multipart("no-such-bucket", "file.bin")

    async def test_complete_with_bad_etag(self, s3_client: S3MultipartClient) -> None:
        upload_id = await s3_client.begin_multipart("test-bucket", "bad.bin")
        await s3_client.upload_part("test-bucket", "bad.bin", upload_id, 1, b"data")

        with pytest.raises(StoreError, match="Failed to complete multipart upload for bad.bin"):
            await s3_client.complete_multipart("test-bucket", "bad.bin", upload_id, [(1, '"0000"')])

    async def test_prefix_applied(self, mock_s3_bucket: dict) -> None:
        from multipart_stream.backends.s3 import S3Config, S3MultipartClient

        client = S3MultipartClient(
            config=S3Config(
                region="us-east-1",
                endpoint_url=mock_s3_bucket["endpoint_url"],
                access_key_id="testing",
                secret_access_key="testing",
                prefix="tenant-a/",
            )
        )
        try:
            async with client.open_stream("test-bucket", "report.csv") as stream:
                await stream.write(b"a,b,c\n")
        finally:
            await client.close()

        body = mock_s3_bucket["client"].get_object(Bucket="test-bucket", Key="tenant-a/report.csv")["Body"].read()
        assert body == b"a,b,c\n"


@pytest.mark.integration
class TestS3Streaming:
    """Test upload streams backed by S3."""

    async def test_stream_multiple_parts(self, s3_client: S3MultipartClient, mock_s3_bucket: dict) -> None:
        """
        Test streaming an 11MB object in 5MB parts.

        Verifies:
        - Three parts are uploaded
        - S3 accepts the small final part
        - Content round-trips exactly
        """
        payload = bytes(range(256)) * (11 * MB // 256)

        async with s3_client.open_stream("test-bucket", "stream.bin", parallelism=3) as stream:
            for offset in range(0, len(payload), 64 * 1024):
                await stream.write(payload[offset : offset + 64 * 1024])

        assert stream.summary is not None
        assert stream.summary.part_count == math.ceil(len(payload) / (5 * MB)) == 3
        body = mock_s3_bucket["client"].get_object(Bucket="test-bucket", Key="stream.bin")["Body"].read()
        assert body == payload

    async def test_empty_stream_creates_nothing(self, s3_client: S3MultipartClient, mock_s3_bucket: dict) -> None:
        async with s3_client.open_stream("test-bucket", "empty.bin") as stream:
            pass

        assert stream.summary is not None
        assert stream.summary.upload_id is None
        listing = mock_s3_bucket["client"].list_objects_v2(Bucket="test-bucket")
        assert listing.get("KeyCount", 0) == 0
        uploads = mock_s3_bucket["client"].list_multipart_uploads(Bucket="test-bucket")
        assert uploads.get("Uploads", []) == []

    async def test_failed_part_aborts_upload(
        self,
        s3_client: S3MultipartClient,
        mock_s3_bucket: dict,
        monkeypatch,
    ) -> None:
        """
        Test a failing part against S3.

        Verifies:
        - The stream raises PartUploadError chained to the store error
        - The multipart upload is aborted on S3
        - No object is created
        """
        original = s3_client.upload_part
        failure = StoreError("Simulated part failure")

        async def flaky_upload(bucket: str, key: str, upload_id: str, part_number: int, data: bytes) -> str:
            if part_number == 2:
                raise failure
            return await original(bucket, key, upload_id, part_number, data)

        monkeypatch.setattr(s3_client, "upload_part", flaky_upload)

        with pytest.raises(PartUploadError) as exc_info:
            async with s3_client.open_stream("test-bucket", "broken.bin", parallelism=2) as stream:
                await stream.write(b"z" * (11 * MB))

        assert exc_info.value.cause is failure
        uploads = mock_s3_bucket["client"].list_multipart_uploads(Bucket="test-bucket")
        assert uploads.get("Uploads", []) == []
        listing = mock_s3_bucket["client"].list_objects_v2(Bucket="test-bucket")
        assert listing.get("KeyCount", 0) == 0
